from datetime import date, datetime

from app.services.assignment import (
    academic_year_code,
    auto_assign_teacher,
    candidate_teachers,
    generate_session_title,
    resolve_teacher,
)
from app.services.snapshot import AllocationTriple


def test_title_follows_stamp_board_class_subject_year_layout():
    title = generate_session_title(datetime(2026, 1, 5, 14, 30), "CBSE", "Class 5", "B", "Science")

    assert title == "2601051430-CBSE-Class 5B-Science (2526)"


def test_academic_year_rolls_over_on_april_first():
    assert academic_year_code(date(2026, 3, 31)) == "2526"
    assert academic_year_code(date(2026, 4, 1)) == "2627"


def test_academic_year_start_month_is_configurable():
    assert academic_year_code(date(2026, 5, 15), start_month=6) == "2526"
    assert academic_year_code(date(2026, 6, 1), start_month=6) == "2627"


def test_title_uses_session_start_not_current_date():
    first = generate_session_title(datetime(2024, 12, 2, 9, 0), "ICSE", "Class 7", None, "History")
    second = generate_session_title(datetime(2024, 12, 2, 9, 0), "ICSE", "Class 7", None, "History")

    assert first == second == "2412020900-ICSE-Class 7-History (2425)"


def test_auto_assign_picks_first_allocation_in_registry_order():
    allocations = (
        AllocationTriple(teacher_id="t2", class_id="c1", subject_id="s1"),
        AllocationTriple(teacher_id="t1", class_id="c1", subject_id="s1"),
        AllocationTriple(teacher_id="t2", class_id="c1", subject_id="s1"),
        AllocationTriple(teacher_id="t3", class_id="c1", subject_id="s2"),
    )

    assert candidate_teachers(allocations, "c1", "s1") == ["t2", "t1"]
    assert auto_assign_teacher(allocations, "c1", "s1") == "t2"
    assert auto_assign_teacher(allocations, "c9", "s1") is None


def test_explicit_teacher_is_never_overwritten():
    allocations = (AllocationTriple(teacher_id="t1", class_id="c1", subject_id="s1"),)

    assert resolve_teacher("t7", allocations, "c1", "s1") == ("t7", False)
    assert resolve_teacher(None, allocations, "c1", "s1") == ("t1", True)


def test_existing_sessions_are_not_auto_assigned():
    allocations = (AllocationTriple(teacher_id="t1", class_id="c1", subject_id="s1"),)

    assert resolve_teacher(None, allocations, "c1", "s1", is_new=False) == (None, False)
