from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from app.services.snapshot import AllocationTriple


def candidate_teachers(
    allocations: Iterable[AllocationTriple],
    class_id: str,
    subject_id: str,
) -> list[str]:
    """Distinct teachers allocated to the class/subject pair, in registry order."""
    seen: set[str] = set()
    ordered: list[str] = []
    for allocation in allocations:
        if allocation.class_id != class_id or allocation.subject_id != subject_id:
            continue
        if allocation.teacher_id in seen:
            continue
        seen.add(allocation.teacher_id)
        ordered.append(allocation.teacher_id)
    return ordered


def auto_assign_teacher(
    allocations: Iterable[AllocationTriple],
    class_id: str,
    subject_id: str,
) -> str | None:
    # Several matches are not ranked: the first one in registry order wins.
    candidates = candidate_teachers(allocations, class_id, subject_id)
    return candidates[0] if candidates else None


def resolve_teacher(
    requested_teacher_id: str | None,
    allocations: Iterable[AllocationTriple],
    class_id: str,
    subject_id: str,
    *,
    is_new: bool = True,
) -> tuple[str | None, bool]:
    """Pick the teacher for a draft and report whether it was auto-assigned.

    A teacher chosen by the user always wins, and existing sessions are never
    auto-assigned.
    """
    if requested_teacher_id:
        return requested_teacher_id, False
    if not is_new:
        return None, False
    teacher_id = auto_assign_teacher(allocations, class_id, subject_id)
    return teacher_id, teacher_id is not None


def academic_year_start(day: date, start_month: int = 4) -> int:
    return day.year if day.month >= start_month else day.year - 1


def academic_year_code(day: date, start_month: int = 4) -> str:
    start_year = academic_year_start(day, start_month)
    return f"{start_year % 100:02d}{(start_year + 1) % 100:02d}"


def class_display_name(class_name: str, section: str | None) -> str:
    return f"{class_name}{section or ''}"


def generate_session_title(
    start_time: datetime,
    board_name: str,
    class_name: str,
    section: str | None,
    subject_name: str,
    *,
    start_month: int = 4,
) -> str:
    stamp = start_time.strftime("%y%m%d%H%M")
    academic_year = academic_year_code(start_time.date(), start_month)
    return (
        f"{stamp}-{board_name}-{class_display_name(class_name, section)}-{subject_name} ({academic_year})"
    )
