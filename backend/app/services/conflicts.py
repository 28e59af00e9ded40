from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from app.models.calendar_entry import CalendarEntryType
from app.models.teaching_session import SessionStatus
from app.schemas.conflict import ConflictType, ConflictVerdict
from app.services.snapshot import AllocationTriple, CalendarException, ScheduledSlot

# Earlier entries outrank later ones when several cover the same date.
CALENDAR_CONFLICT_RANKING: tuple[tuple[CalendarEntryType, ConflictType], ...] = (
    (CalendarEntryType.holiday, ConflictType.holiday),
    (CalendarEntryType.exam_day, ConflictType.exam_day),
)


@dataclass(frozen=True)
class SessionDraft:
    class_id: str
    subject_id: str
    teacher_id: str | None
    start_time: datetime
    end_time: datetime
    # Set when the draft edits a stored session so it is not compared with itself.
    id: str | None = None


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and start_b < end_a


def is_teacher_allocated(
    allocations: Iterable[AllocationTriple],
    *,
    teacher_id: str,
    class_id: str,
    subject_id: str,
) -> bool:
    wanted = AllocationTriple(teacher_id=teacher_id, class_id=class_id, subject_id=subject_id)
    return any(item == wanted for item in allocations)


def find_calendar_conflict(
    draft: SessionDraft,
    calendar_entries: Iterable[CalendarException],
) -> tuple[ConflictType, CalendarException] | None:
    day = draft.start_time.date()
    covering = [entry for entry in calendar_entries if entry.covers(day)]
    for entry_type, conflict_type in CALENDAR_CONFLICT_RANKING:
        match = next((entry for entry in covering if entry.type == entry_type), None)
        if match is not None:
            return conflict_type, match
    return None


def find_overlapping_session(
    draft: SessionDraft,
    sessions: Iterable[ScheduledSlot],
) -> ScheduledSlot | None:
    if draft.teacher_id is None:
        return None
    for other in sessions:
        if draft.id is not None and other.id == draft.id:
            continue
        if other.status == SessionStatus.cancelled or other.teacher_id != draft.teacher_id:
            continue
        if intervals_overlap(draft.start_time, draft.end_time, other.start_time, other.end_time):
            return other
    return None


def evaluate_conflict(
    draft: SessionDraft,
    sessions: Iterable[ScheduledSlot],
    calendar_entries: Iterable[CalendarException],
    allocations: Iterable[AllocationTriple],
) -> ConflictVerdict:
    """Reconcile one draft against the supplied sessions, calendar and allocations.

    The checks run in a fixed order and the first match wins: a missing
    teacher, then a HOLIDAY covering the start date, then an EXAM_DAY, then
    another session of the same teacher whose half-open interval intersects
    the draft. HALF_DAY and SCHOOL_EVENT entries never produce a conflict.
    Nothing is fetched or mutated here; callers pass every data source in.
    """
    if draft.teacher_id is None:
        return ConflictVerdict(
            has_conflict=True,
            conflict_type=ConflictType.no_teacher,
            message="No teacher assigned",
        )

    allocated = is_teacher_allocated(
        allocations,
        teacher_id=draft.teacher_id,
        class_id=draft.class_id,
        subject_id=draft.subject_id,
    )

    calendar_conflict = find_calendar_conflict(draft, calendar_entries)
    if calendar_conflict is not None:
        conflict_type, entry = calendar_conflict
        return ConflictVerdict(
            has_conflict=True,
            conflict_type=conflict_type,
            message=f"{draft.start_time.date().isoformat()} is marked as {entry.type.value}: {entry.title}",
            calendar_entry_title=entry.title,
            teacher_allocated=allocated,
        )

    overlapping = find_overlapping_session(draft, sessions)
    if overlapping is not None:
        return ConflictVerdict(
            has_conflict=True,
            conflict_type=ConflictType.overlap,
            message=f"Teacher is already booked by session {overlapping.id}",
            overlapping_session_id=overlapping.id,
            teacher_allocated=allocated,
        )

    return ConflictVerdict(has_conflict=False, teacher_allocated=allocated)
