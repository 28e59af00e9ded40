"""Bulk session import: parse, review and commit.

A job is built from raw spreadsheet rows (or generated series rows) and one
``SchedulingSnapshot`` captured when the job is created. Every later stage,
review edits and commit included, reuses that same snapshot; nothing is
re-read from the database between parse and commit.
"""
from __future__ import annotations

import logging
import time
import uuid
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from threading import Lock

from openpyxl.utils.datetime import from_excel

from app.core.exceptions import PersistenceError, ResourceNotFoundError, UnresolvedReferenceError
from app.schemas.bulk_import import (
    BulkCommitResult,
    ImportJobOut,
    ImportRowOut,
    ImportSummary,
    RowIssue,
    RowIssueKind,
    RowOutcome,
    RowOutcomeStatus,
    TeacherSource,
)
from app.schemas.conflict import ConflictType, ConflictVerdict
from app.services.assignment import auto_assign_teacher, generate_session_title
from app.services.conflicts import SessionDraft, evaluate_conflict
from app.services.local_time import to_school_local
from app.services.snapshot import CatalogSnapshot, ScheduledSlot, SchedulingSnapshot

logger = logging.getLogger(__name__)

MAX_DURATION_MINUTES = 24 * 60

DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d-%m-%Y %H:%M",
)


@dataclass(frozen=True)
class ImportColumn:
    key: str
    header: str
    width: int = 20


# The template writer and the upload reader both use this tuple.
IMPORT_COLUMNS: tuple[ImportColumn, ...] = (
    ImportColumn("start_time", "Date/Time (YYYY-MM-DD HH:MM)", 30),
    ImportColumn("board", "Board", 20),
    ImportColumn("class_name", "Class (with section)", 24),
    ImportColumn("subject", "Subject", 24),
    ImportColumn("duration", "Duration (Minutes)", 20),
    ImportColumn("teacher", "Teacher (blank = auto-assign)", 30),
)
TEMPLATE_HEADERS: tuple[str, ...] = tuple(column.header for column in IMPORT_COLUMNS)


@dataclass(frozen=True)
class RawImportRow:
    row_number: int
    values: Mapping[str, object]

    def text(self, key: str) -> str:
        return cell_text(self.values.get(key))


@dataclass(frozen=True)
class ImportPolicy:
    blocking_conflicts: frozenset[ConflictType] = frozenset()
    default_duration_minutes: int = 60
    academic_year_start_month: int = 4

    def blocks(self, verdict: ConflictVerdict | None) -> bool:
        return bool(
            verdict is not None
            and verdict.has_conflict
            and verdict.conflict_type in self.blocking_conflicts
        )


@dataclass
class ImportRow:
    row_number: int
    board_name: str | None = None
    class_name: str | None = None
    subject_name: str | None = None
    teacher_name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_minutes: int | None = None
    board_id: str | None = None
    class_id: str | None = None
    subject_id: str | None = None
    chapter_id: str | None = None
    topic_id: str | None = None
    teacher_id: str | None = None
    teacher_source: TeacherSource | None = None
    title: str | None = None
    issues: list[RowIssue] = field(default_factory=list)
    conflict: ConflictVerdict | None = None
    included: bool = True

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def will_commit(self) -> bool:
        return self.is_valid and self.included

    @property
    def has_input_errors(self) -> bool:
        return any(issue.kind != RowIssueKind.conflict for issue in self.issues)

    @property
    def slot_id(self) -> str:
        return f"import-row-{self.row_number}"

    def add_issue(self, kind: RowIssueKind, field_name: str | None, message: str) -> None:
        self.issues.append(RowIssue(kind=kind, field=field_name, message=message))

    def clear_issues(self, *, kind: RowIssueKind | None = None, field_name: str | None = None) -> None:
        self.issues = [
            issue
            for issue in self.issues
            if not ((kind is None or issue.kind == kind) and (field_name is None or issue.field == field_name))
        ]

    def can_be_evaluated(self) -> bool:
        return (
            self.included
            and not self.has_input_errors
            and self.class_id is not None
            and self.subject_id is not None
            and self.start_time is not None
            and self.end_time is not None
        )

    def session_values(self) -> dict:
        return {
            "title": self.title,
            "description": None,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "class_id": self.class_id,
            "subject_id": self.subject_id,
            "chapter_id": self.chapter_id,
            "topic_id": self.topic_id,
            "teacher_id": self.teacher_id,
        }


@dataclass
class ImportJob:
    source: str
    snapshot: SchedulingSnapshot
    policy: ImportPolicy
    rows: list[ImportRow]
    filename: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)
    commit_count: int = 0
    lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def row(self, row_number: int) -> ImportRow:
        for row in self.rows:
            if row.row_number == row_number:
                return row
        raise ResourceNotFoundError("Import row", str(row_number))

    def summary(self) -> ImportSummary:
        conflict_counts = Counter(
            row.conflict.conflict_type.value
            for row in self.rows
            if row.conflict is not None and row.conflict.conflict_type is not None
        )
        valid = sum(1 for row in self.rows if row.is_valid)
        return ImportSummary(
            total_rows=len(self.rows),
            valid_rows=valid,
            invalid_rows=len(self.rows) - valid,
            excluded_rows=sum(1 for row in self.rows if not row.included),
            ready_rows=sum(1 for row in self.rows if row.will_commit),
            conflict_counts=dict(sorted(conflict_counts.items())),
        )

    def to_out(self) -> ImportJobOut:
        return ImportJobOut(
            job_id=self.id,
            source=self.source,
            filename=self.filename,
            snapshot_taken_at=self.snapshot.taken_at,
            blocking_conflicts=sorted(self.policy.blocking_conflicts, key=lambda item: item.value),
            commit_count=self.commit_count,
            summary=self.summary(),
            rows=[ImportRowOut.model_validate(row, from_attributes=True) for row in self.rows],
        )


def cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_start_time(value: object) -> datetime | None:
    """Parse a Date/Time cell. Blank gives None; anything unreadable raises ValueError."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, datetime):
        return to_school_local(value)
    if isinstance(value, date):
        raise ValueError("a time of day is required")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            converted = from_excel(value)
        except (OverflowError, ValueError):
            raise ValueError(f"'{value}' is not a date and time") from None
        if not isinstance(converted, datetime):
            raise ValueError(f"'{value}' is not a date and time")
        return converted
    text = cell_text(value)
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"'{text}' is not a date and time (expected YYYY-MM-DD HH:MM)") from None
    if ":" not in text and "T" not in text.upper():
        raise ValueError("a time of day is required")
    return to_school_local(parsed)


def parse_duration(value: object, default: int) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ValueError("duration must be a whole number of minutes")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("duration must be a whole number of minutes")
        minutes = int(value)
    elif isinstance(value, int):
        minutes = value
    else:
        text = cell_text(value)
        if not text.isdigit():
            raise ValueError(f"'{text}' is not a whole number of minutes")
        minutes = int(text)
    if minutes <= 0 or minutes > MAX_DURATION_MINUTES:
        raise ValueError(f"duration must be between 1 and {MAX_DURATION_MINUTES} minutes")
    return minutes


def candidate_window(raw_rows: Iterable[RawImportRow], policy: ImportPolicy) -> tuple[datetime, datetime] | None:
    """Earliest start and latest end among rows whose times can be read."""
    starts: list[datetime] = []
    ends: list[datetime] = []
    for raw in raw_rows:
        try:
            start = parse_start_time(raw.values.get("start_time"))
        except ValueError:
            continue
        if start is None:
            continue
        try:
            minutes = parse_duration(raw.values.get("duration"), policy.default_duration_minutes)
        except ValueError:
            minutes = policy.default_duration_minutes
        starts.append(start)
        ends.append(start + timedelta(minutes=minutes))
    if not starts:
        return None
    return min(starts), max(ends)


def assign_title(row: ImportRow, catalog: CatalogSnapshot, policy: ImportPolicy) -> None:
    board = catalog.board(row.board_id)
    school_class = catalog.school_class(row.class_id)
    subject = catalog.subject(row.subject_id)
    if board is None or school_class is None or subject is None or row.start_time is None:
        return
    row.title = generate_session_title(
        row.start_time,
        board.name,
        school_class.name,
        school_class.section,
        subject.name,
        start_month=policy.academic_year_start_month,
    )


def _resolve_teacher(row: ImportRow, raw_name: str, snapshot: SchedulingSnapshot) -> None:
    if raw_name:
        matches = snapshot.catalog.find_teachers(raw_name)
        if not matches:
            row.add_issue(RowIssueKind.reference, "teacher", f"Teacher '{raw_name}' not found")
        elif len(matches) > 1:
            row.add_issue(
                RowIssueKind.reference,
                "teacher",
                f"Teacher name '{raw_name}' matches {len(matches)} teachers",
            )
        else:
            row.teacher_id = matches[0].id
            row.teacher_source = TeacherSource.row
        return
    if row.class_id is not None and row.subject_id is not None:
        row.teacher_id = auto_assign_teacher(snapshot.allocations, row.class_id, row.subject_id)
        row.teacher_source = TeacherSource.auto if row.teacher_id else None


def resolve_row(raw: RawImportRow, snapshot: SchedulingSnapshot, policy: ImportPolicy) -> ImportRow:
    """Turn one spreadsheet row into a draft with ids resolved and input errors recorded."""
    catalog = snapshot.catalog
    row = ImportRow(
        row_number=raw.row_number,
        board_name=raw.text("board") or None,
        class_name=raw.text("class_name") or None,
        subject_name=raw.text("subject") or None,
        teacher_name=raw.text("teacher") or None,
    )

    try:
        row.start_time = parse_start_time(raw.values.get("start_time"))
        if row.start_time is None:
            row.add_issue(RowIssueKind.validation, "start_time", "Date/Time is required")
    except ValueError as exc:
        row.add_issue(RowIssueKind.validation, "start_time", f"Invalid Date/Time: {exc}")

    try:
        row.duration_minutes = parse_duration(raw.values.get("duration"), policy.default_duration_minutes)
    except ValueError as exc:
        row.add_issue(RowIssueKind.validation, "duration", f"Invalid duration: {exc}")

    if row.start_time is not None and row.duration_minutes is not None:
        row.end_time = row.start_time + timedelta(minutes=row.duration_minutes)

    if not row.board_name:
        row.add_issue(RowIssueKind.validation, "board", "Board is required")
    else:
        board = catalog.find_board(row.board_name)
        if board is None:
            row.add_issue(RowIssueKind.reference, "board", f"Board '{row.board_name}' not found")
        else:
            row.board_id = board.id

    if not row.class_name:
        row.add_issue(RowIssueKind.validation, "class_name", "Class is required")
    elif row.board_id is not None:
        school_class = catalog.find_class(row.board_id, row.class_name)
        if school_class is None:
            row.add_issue(
                RowIssueKind.reference,
                "class_name",
                f"Class '{row.class_name}' not found in {row.board_name}",
            )
        else:
            row.class_id = school_class.id

    if not row.subject_name:
        row.add_issue(RowIssueKind.validation, "subject", "Subject is required")
    elif row.class_id is not None:
        subject = catalog.find_subject(row.class_id, row.subject_name)
        if subject is None:
            row.add_issue(
                RowIssueKind.reference,
                "subject",
                f"Subject '{row.subject_name}' not found in {row.class_name}",
            )
        else:
            row.subject_id = subject.id

    _resolve_teacher(row, row.teacher_name or "", snapshot)
    assign_title(row, catalog, policy)
    return row


def evaluate_rows(rows: list[ImportRow], snapshot: SchedulingSnapshot, policy: ImportPolicy) -> None:
    """(Re)compute every row's verdict against the snapshot plus the rest of the batch.

    Rows with input errors or excluded from commit take no part, neither as
    drafts nor as sessions other rows can overlap with.
    """
    batch = [
        ScheduledSlot(
            id=row.slot_id,
            teacher_id=row.teacher_id,
            start_time=row.start_time,
            end_time=row.end_time,
        )
        for row in rows
        if row.can_be_evaluated()
    ]
    existing = (*snapshot.sessions, *batch)

    for row in rows:
        row.clear_issues(kind=RowIssueKind.conflict)
        if not row.can_be_evaluated():
            row.conflict = None
            continue
        draft = SessionDraft(
            id=row.slot_id,
            class_id=row.class_id,
            subject_id=row.subject_id,
            teacher_id=row.teacher_id,
            start_time=row.start_time,
            end_time=row.end_time,
        )
        row.conflict = evaluate_conflict(draft, existing, snapshot.calendar, snapshot.allocations)
        if policy.blocks(row.conflict):
            row.add_issue(
                RowIssueKind.conflict,
                "conflict",
                f"{row.conflict.conflict_type.value} blocks import: {row.conflict.message}",
            )


def build_import_job(
    raw_rows: Iterable[RawImportRow],
    snapshot: SchedulingSnapshot,
    policy: ImportPolicy,
    *,
    source: str = "upload",
    filename: str | None = None,
) -> ImportJob:
    rows = [resolve_row(raw, snapshot, policy) for raw in raw_rows]
    evaluate_rows(rows, snapshot, policy)
    job = ImportJob(source=source, snapshot=snapshot, policy=policy, rows=rows, filename=filename)
    summary = job.summary()
    logger.info(
        "Import job %s parsed %d row(s): %d valid, %d invalid",
        job.id,
        summary.total_rows,
        summary.valid_rows,
        summary.invalid_rows,
    )
    return job


def override_teacher(job: ImportJob, row_number: int, teacher_id: str | None) -> ImportRow:
    with job.lock:
        row = job.row(row_number)
        if teacher_id is not None and job.snapshot.catalog.teacher(teacher_id) is None:
            raise UnresolvedReferenceError("Teacher", teacher_id)
        row.clear_issues(field_name="teacher")
        row.teacher_id = teacher_id
        row.teacher_source = TeacherSource.override if teacher_id else None
        teacher = job.snapshot.catalog.teacher(teacher_id)
        row.teacher_name = teacher.name if teacher else None
        evaluate_rows(job.rows, job.snapshot, job.policy)
        return row


def set_row_included(job: ImportJob, row_number: int, included: bool) -> ImportRow:
    with job.lock:
        row = job.row(row_number)
        row.included = included
        evaluate_rows(job.rows, job.snapshot, job.policy)
        return row


def commit_import(job: ImportJob, store) -> BulkCommitResult:
    """Persist every row currently marked valid, one row at a time.

    Rows are independent: a failed insert is reported and the remaining rows
    are still attempted, earlier successes are kept. Committing the same job
    again creates the sessions again.
    """
    with job.lock:
        result = BulkCommitResult(job_id=job.id)
        for row in job.rows:
            if not row.is_valid:
                result.invalid_count += 1
                result.outcomes.append(
                    RowOutcome(
                        row_number=row.row_number,
                        status=RowOutcomeStatus.invalid,
                        conflict=row.conflict,
                        errors=[issue.message for issue in row.issues],
                    )
                )
                continue
            if not row.included:
                result.excluded_count += 1
                result.outcomes.append(
                    RowOutcome(row_number=row.row_number, status=RowOutcomeStatus.excluded, conflict=row.conflict)
                )
                continue
            try:
                session = store.create(row.session_values())
            except PersistenceError as exc:
                logger.warning("Import job %s row %d failed to persist: %s", job.id, row.row_number, exc.message)
                result.failed_count += 1
                result.outcomes.append(
                    RowOutcome(
                        row_number=row.row_number,
                        status=RowOutcomeStatus.failed,
                        title=row.title,
                        conflict=row.conflict,
                        errors=[exc.message],
                    )
                )
                continue
            result.created_count += 1
            result.outcomes.append(
                RowOutcome(
                    row_number=row.row_number,
                    status=RowOutcomeStatus.created,
                    session_id=session.id,
                    title=session.title,
                    conflict=row.conflict,
                )
            )
        job.commit_count += 1

    logger.info(
        "Import job %s commit #%d: %d created, %d failed, %d invalid, %d excluded",
        job.id,
        job.commit_count,
        result.created_count,
        result.failed_count,
        result.invalid_count,
        result.excluded_count,
    )
    return result
