"""Immutable scheduling records.

The conflict evaluator, the auto-assignment helpers and the bulk import
pipeline only ever see these values, never ORM rows, so a snapshot captured
once stays exactly as it was for the lifetime of an import job.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from app.models.calendar_entry import CalendarEntryType
from app.models.teaching_session import SessionStatus


def normalize_name(value: str | None) -> str:
    return " ".join((value or "").split()).casefold()


@dataclass(frozen=True)
class AllocationTriple:
    teacher_id: str
    class_id: str
    subject_id: str


@dataclass(frozen=True)
class CalendarException:
    date: date
    type: CalendarEntryType
    end_date: date | None = None
    title: str = ""
    id: str | None = None

    def covers(self, day: date) -> bool:
        return self.date <= day <= (self.end_date or self.date)


@dataclass(frozen=True)
class ScheduledSlot:
    id: str
    teacher_id: str | None
    start_time: datetime
    end_time: datetime
    status: SessionStatus = SessionStatus.scheduled


@dataclass(frozen=True)
class BoardRef:
    id: str
    name: str


@dataclass(frozen=True)
class ClassRef:
    id: str
    board_id: str
    name: str
    section: str | None = None

    @property
    def label(self) -> str:
        return f"{self.name} ({self.section})" if self.section else self.name

    def matches(self, value: str) -> bool:
        wanted = normalize_name(value)
        candidates = {self.name}
        if self.section:
            candidates = {
                f"{self.name}{self.section}",
                f"{self.name} {self.section}",
                f"{self.name} ({self.section})",
            }
        return wanted in {normalize_name(item) for item in candidates}


@dataclass(frozen=True)
class SubjectRef:
    id: str
    class_id: str
    name: str


@dataclass(frozen=True)
class ChapterRef:
    id: str
    subject_id: str
    name: str
    position: int = 0


@dataclass(frozen=True)
class TopicRef:
    id: str
    chapter_id: str
    name: str
    position: int = 0


@dataclass(frozen=True)
class TeacherRef:
    id: str
    name: str


@dataclass(frozen=True)
class CatalogSnapshot:
    boards: tuple[BoardRef, ...] = ()
    classes: tuple[ClassRef, ...] = ()
    subjects: tuple[SubjectRef, ...] = ()
    teachers: tuple[TeacherRef, ...] = ()
    chapters: tuple[ChapterRef, ...] = ()
    topics: tuple[TopicRef, ...] = ()

    def find_board(self, name: str) -> BoardRef | None:
        wanted = normalize_name(name)
        return next((item for item in self.boards if normalize_name(item.name) == wanted), None)

    def find_class(self, board_id: str, label: str) -> ClassRef | None:
        return next(
            (item for item in self.classes if item.board_id == board_id and item.matches(label)),
            None,
        )

    def find_subject(self, class_id: str, name: str) -> SubjectRef | None:
        wanted = normalize_name(name)
        return next(
            (item for item in self.subjects if item.class_id == class_id and normalize_name(item.name) == wanted),
            None,
        )

    def find_teachers(self, name: str) -> list[TeacherRef]:
        wanted = normalize_name(name)
        return [item for item in self.teachers if normalize_name(item.name) == wanted]

    def board(self, board_id: str | None) -> BoardRef | None:
        return next((item for item in self.boards if item.id == board_id), None)

    def school_class(self, class_id: str | None) -> ClassRef | None:
        return next((item for item in self.classes if item.id == class_id), None)

    def subject(self, subject_id: str | None) -> SubjectRef | None:
        return next((item for item in self.subjects if item.id == subject_id), None)

    def teacher(self, teacher_id: str | None) -> TeacherRef | None:
        return next((item for item in self.teachers if item.id == teacher_id), None)

    def chapters_for(self, subject_id: str) -> list[ChapterRef]:
        items = [item for item in self.chapters if item.subject_id == subject_id]
        return sorted(items, key=lambda item: (item.position, item.name))

    def topics_for(self, chapter_id: str) -> list[TopicRef]:
        items = [item for item in self.topics if item.chapter_id == chapter_id]
        return sorted(items, key=lambda item: (item.position, item.name))


@dataclass(frozen=True)
class SchedulingSnapshot:
    """Point-in-time view shared by every stage of one import job."""

    taken_at: datetime
    catalog: CatalogSnapshot = field(default_factory=CatalogSnapshot)
    sessions: tuple[ScheduledSlot, ...] = ()
    calendar: tuple[CalendarException, ...] = ()
    allocations: tuple[AllocationTriple, ...] = ()
