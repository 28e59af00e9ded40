from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from app.core.exceptions import SessionValidationError, UnresolvedReferenceError
from app.schemas.bulk_import import SessionSeriesRequest, TeacherSource
from app.schemas.operating_schedule import WEEKDAY_CODES
from app.services.assignment import auto_assign_teacher
from app.services.bulk_import import ImportJob, ImportPolicy, ImportRow, assign_title, evaluate_rows
from app.services.snapshot import CatalogSnapshot, SchedulingSnapshot

# Custom weekday patterns stop looking for matching days after this many days.
MAX_SERIES_SPAN_DAYS = 730


@dataclass(frozen=True)
class SeriesSlot:
    start_time: datetime
    chapter_id: str | None = None
    topic_id: str | None = None


def _validate_references(request: SessionSeriesRequest, catalog: CatalogSnapshot) -> None:
    school_class = catalog.school_class(request.class_id)
    if school_class is None:
        raise UnresolvedReferenceError("Class", request.class_id)
    subject = catalog.subject(request.subject_id)
    if subject is None or subject.class_id != school_class.id:
        raise UnresolvedReferenceError(
            "Subject", request.subject_id, f"Subject '{request.subject_id}' does not belong to the class"
        )
    if request.teacher_id is not None and catalog.teacher(request.teacher_id) is None:
        raise UnresolvedReferenceError("Teacher", request.teacher_id)
    if request.mode == "date":
        if request.topic_id is not None and request.chapter_id is None:
            raise SessionValidationError("A topic requires its chapter")
        if request.chapter_id is not None and request.chapter_id not in {
            item.id for item in catalog.chapters_for(subject.id)
        }:
            raise UnresolvedReferenceError("Chapter", request.chapter_id)
        if request.topic_id is not None and request.topic_id not in {
            item.id for item in catalog.topics_for(request.chapter_id)
        }:
            raise UnresolvedReferenceError("Topic", request.topic_id)


def _date_pattern_starts(request: SessionSeriesRequest) -> list[datetime]:
    hours, minutes = (int(part) for part in request.start_time.split(":"))
    current = datetime.combine(request.start_date, time(hours, minutes))
    if request.frequency == "daily":
        return [current + timedelta(days=offset) for offset in range(request.count)]
    if request.frequency == "weekly":
        return [current + timedelta(weeks=offset) for offset in range(request.count)]

    wanted = {WEEKDAY_CODES.index(day) for day in request.custom_days}
    starts: list[datetime] = []
    for offset in range(MAX_SERIES_SPAN_DAYS):
        candidate = current + timedelta(days=offset)
        if candidate.weekday() in wanted:
            starts.append(candidate)
            if len(starts) == request.count:
                break
    return starts


def plan_series(request: SessionSeriesRequest, catalog: CatalogSnapshot) -> list[SeriesSlot]:
    """Start times (and syllabus items) for a repeat pattern, one per session."""
    _validate_references(request, catalog)
    if request.mode == "date":
        return [
            SeriesSlot(start_time=start, chapter_id=request.chapter_id, topic_id=request.topic_id)
            for start in _date_pattern_starts(request)
        ]

    hours, minutes = (int(part) for part in request.start_time.split(":"))
    current = datetime.combine(request.start_date, time(hours, minutes))
    chapters = catalog.chapters_for(request.subject_id)
    if not chapters:
        raise SessionValidationError("Subject has no chapters to schedule")

    slots: list[SeriesSlot] = []
    for chapter in chapters:
        if request.syllabus_mode == "chapter":
            slots.append(SeriesSlot(start_time=current, chapter_id=chapter.id))
            current += timedelta(days=1)
            continue
        for topic in catalog.topics_for(chapter.id):
            slots.append(SeriesSlot(start_time=current, chapter_id=chapter.id, topic_id=topic.id))
            current += timedelta(days=1)
    if not slots:
        raise SessionValidationError("Subject has no topics to schedule")
    return slots


def build_series_job(
    request: SessionSeriesRequest,
    plan: list[SeriesSlot],
    snapshot: SchedulingSnapshot,
    policy: ImportPolicy,
) -> ImportJob:
    catalog = snapshot.catalog
    school_class = catalog.school_class(request.class_id)
    subject = catalog.subject(request.subject_id)
    board = catalog.board(school_class.board_id) if school_class else None
    if school_class is None or subject is None:
        raise UnresolvedReferenceError("Class", request.class_id)
    duration = request.duration_minutes or policy.default_duration_minutes

    rows: list[ImportRow] = []
    for row_number, slot in enumerate(plan, start=1):
        row = ImportRow(
            row_number=row_number,
            board_name=board.name if board else None,
            class_name=school_class.label,
            subject_name=subject.name,
            start_time=slot.start_time,
            end_time=slot.start_time + timedelta(minutes=duration),
            duration_minutes=duration,
            board_id=board.id if board else None,
            class_id=school_class.id,
            subject_id=subject.id,
            chapter_id=slot.chapter_id,
            topic_id=slot.topic_id,
        )
        if request.teacher_id:
            row.teacher_id = request.teacher_id
            row.teacher_source = TeacherSource.row
        else:
            row.teacher_id = auto_assign_teacher(snapshot.allocations, school_class.id, subject.id)
            row.teacher_source = TeacherSource.auto if row.teacher_id else None
        teacher = catalog.teacher(row.teacher_id)
        row.teacher_name = teacher.name if teacher else None
        assign_title(row, catalog, policy)
        rows.append(row)

    evaluate_rows(rows, snapshot, policy)
    return ImportJob(source="series", snapshot=snapshot, policy=policy, rows=rows)
