"""SQLAlchemy-backed collaborators of the scheduling engine.

Each class wraps one request-scoped ``Session``. Writes commit their own unit
of work and turn ``SQLAlchemyError`` into ``PersistenceError`` after rolling
back, so a failed write never leaves the session half-applied.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import (
    PersistenceError,
    ResourceNotFoundError,
    SessionValidationError,
    UnresolvedReferenceError,
)
from app.models.allocation import TeacherAllocation
from app.models.calendar_entry import CalendarEntry
from app.models.catalog import Board, Chapter, SchoolClass, Subject, Topic
from app.models.operating_schedule import OperatingSchedule
from app.models.session_log import SessionLog, StudentSessionNote
from app.models.student import Student
from app.models.teacher import Teacher
from app.models.teaching_session import SessionStatus, TeachingSession
from app.schemas.session_log import SessionLogSubmit
from app.services.lifecycle import SessionAction, next_status
from app.services.snapshot import (
    AllocationTriple,
    BoardRef,
    CalendarException,
    CatalogSnapshot,
    ChapterRef,
    ClassRef,
    ScheduledSlot,
    SchedulingSnapshot,
    SubjectRef,
    TeacherRef,
    TopicRef,
)

logger = logging.getLogger(__name__)


def commit_changes(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to %s", what)
        raise PersistenceError(f"Failed to {what}") from exc


@dataclass(frozen=True)
class SessionFilter:
    status: SessionStatus | None = None
    teacher_id: str | None = None
    class_id: str | None = None
    subject_id: str | None = None
    # Sessions whose [start_time, end_time) intersects the window.
    window_start: datetime | None = None
    window_end: datetime | None = None


def to_slot(session: TeachingSession) -> ScheduledSlot:
    return ScheduledSlot(
        id=session.id,
        teacher_id=session.teacher_id,
        start_time=session.start_time,
        end_time=session.end_time,
        status=session.status,
    )


class SqlSessionStore:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, session_id: str) -> TeachingSession:
        session = self._db.get(TeachingSession, session_id)
        if session is None:
            raise ResourceNotFoundError("Session", session_id)
        return session

    def create(self, values: dict) -> TeachingSession:
        session = TeachingSession(status=SessionStatus.scheduled, **values)
        self._db.add(session)
        commit_changes(self._db, "create session")
        self._db.refresh(session)
        return session

    def update(self, session_id: str, changes: dict) -> TeachingSession:
        session = self.get(session_id)
        start_time = changes.get("start_time", session.start_time)
        end_time = changes.get("end_time", session.end_time)
        if end_time <= start_time:
            raise SessionValidationError("end_time must be after start_time")
        for key, value in changes.items():
            setattr(session, key, value)
        commit_changes(self._db, f"update session {session_id}")
        self._db.refresh(session)
        return session

    def list(self, session_filter: SessionFilter | None = None) -> list[TeachingSession]:
        criteria = session_filter or SessionFilter()
        query = select(TeachingSession)
        if criteria.status is not None:
            query = query.where(TeachingSession.status == criteria.status)
        if criteria.teacher_id is not None:
            query = query.where(TeachingSession.teacher_id == criteria.teacher_id)
        if criteria.class_id is not None:
            query = query.where(TeachingSession.class_id == criteria.class_id)
        if criteria.subject_id is not None:
            query = query.where(TeachingSession.subject_id == criteria.subject_id)
        if criteria.window_end is not None:
            query = query.where(TeachingSession.start_time < criteria.window_end)
        if criteria.window_start is not None:
            query = query.where(TeachingSession.end_time > criteria.window_start)
        query = query.order_by(TeachingSession.start_time, TeachingSession.id)
        return list(self._db.execute(query).scalars())

    def transition(
        self,
        session_id: str,
        action: SessionAction,
        *,
        reason: str | None = None,
    ) -> TeachingSession:
        session = self.get(session_id)
        target = next_status(session.id, session.status, action)
        session.status = target
        if action == SessionAction.cancel and reason:
            session.description = f"[CANCELLED] {reason}\n\n{session.description or ''}".rstrip()
        commit_changes(self._db, f"{action.value} session {session_id}")
        self._db.refresh(session)
        logger.info("Session %s moved to %s", session_id, target.value)
        return session

    def submit_log(self, payload: SessionLogSubmit, *, teacher_id: str | None) -> TeachingSession:
        """Upsert the log and its student notes, then complete the session in one unit of work."""
        session = self.get(payload.session_id)
        target = next_status(session.id, session.status, SessionAction.submit_log)

        log = self._db.execute(
            select(SessionLog).where(SessionLog.session_id == session.id)
        ).scalar_one_or_none()
        if log is None:
            log = SessionLog(session_id=session.id, teacher_id=teacher_id)
            self._db.add(log)
        log.topics_covered = payload.topics_covered
        log.homework = payload.homework
        log.class_notes = payload.class_notes
        log.challenges = payload.challenges
        log.next_steps = payload.next_steps
        try:
            self._db.flush()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.exception("Failed to write log for session %s", session.id)
            raise PersistenceError(f"Failed to write log for session {session.id}") from exc

        existing_notes = {
            note.student_id: note
            for note in self._db.execute(
                select(StudentSessionNote).where(StudentSessionNote.session_log_id == log.id)
            ).scalars()
        }
        for item in payload.student_notes:
            if not item.note and item.flag is None:
                continue
            note = existing_notes.get(item.student_id)
            if note is None:
                note = StudentSessionNote(session_log_id=log.id, student_id=item.student_id)
                self._db.add(note)
                existing_notes[item.student_id] = note
            note.note = item.note
            note.flag = item.flag

        session.status = target
        commit_changes(self._db, f"complete session {session.id}")
        self._db.refresh(session)
        return session

    def get_log(self, session_id: str) -> tuple[SessionLog, list[StudentSessionNote]] | None:
        log = self._db.execute(
            select(SessionLog).where(SessionLog.session_id == session_id)
        ).scalar_one_or_none()
        if log is None:
            return None
        notes = list(
            self._db.execute(
                select(StudentSessionNote)
                .where(StudentSessionNote.session_log_id == log.id)
                .order_by(StudentSessionNote.student_id)
            ).scalars()
        )
        return log, notes


class SqlAllocationRegistry:
    def __init__(self, db: Session) -> None:
        self._db = db

    def list(
        self,
        teacher_id: str | None = None,
        class_id: str | None = None,
        subject_id: str | None = None,
    ) -> list[TeacherAllocation]:
        query = select(TeacherAllocation)
        if teacher_id is not None:
            query = query.where(TeacherAllocation.teacher_id == teacher_id)
        if class_id is not None:
            query = query.where(TeacherAllocation.class_id == class_id)
        if subject_id is not None:
            query = query.where(TeacherAllocation.subject_id == subject_id)
        # Insertion order is the registry order auto-assignment relies on.
        query = query.order_by(TeacherAllocation.created_at, TeacherAllocation.id)
        return list(self._db.execute(query).scalars())

    def triples(self, **filters: str | None) -> tuple[AllocationTriple, ...]:
        return tuple(
            AllocationTriple(teacher_id=item.teacher_id, class_id=item.class_id, subject_id=item.subject_id)
            for item in self.list(**filters)
        )


class SqlCalendarService:
    def __init__(self, db: Session) -> None:
        self._db = db

    def list(self, start: date | None = None, end: date | None = None) -> list[CalendarEntry]:
        """Entries whose inclusive [date, end_date] range intersects [start, end]."""
        query = select(CalendarEntry)
        if end is not None:
            query = query.where(CalendarEntry.date <= end)
        if start is not None:
            query = query.where(func.coalesce(CalendarEntry.end_date, CalendarEntry.date) >= start)
        query = query.order_by(CalendarEntry.date, CalendarEntry.id)
        return list(self._db.execute(query).scalars())

    def exceptions(self, start: date | None = None, end: date | None = None) -> tuple[CalendarException, ...]:
        return tuple(
            CalendarException(
                id=entry.id,
                date=entry.date,
                end_date=entry.end_date,
                type=entry.type,
                title=entry.title,
            )
            for entry in self.list(start, end)
        )


class SqlStudentRoster:
    def __init__(self, db: Session) -> None:
        self._db = db

    def list_by_class(self, class_id: str) -> list[Student]:
        query = select(Student).where(Student.class_id == class_id).order_by(Student.first_name, Student.id)
        return list(self._db.execute(query).scalars())


class SqlCatalog:
    """Read-only view of boards, classes, subjects, syllabus and teachers."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def snapshot(self) -> CatalogSnapshot:
        db = self._db
        return CatalogSnapshot(
            boards=tuple(
                BoardRef(id=item.id, name=item.name)
                for item in db.execute(select(Board).order_by(Board.name)).scalars()
            ),
            classes=tuple(
                ClassRef(id=item.id, board_id=item.board_id, name=item.name, section=item.section)
                for item in db.execute(select(SchoolClass).order_by(SchoolClass.name, SchoolClass.section)).scalars()
            ),
            subjects=tuple(
                SubjectRef(id=item.id, class_id=item.class_id, name=item.name)
                for item in db.execute(select(Subject).order_by(Subject.name)).scalars()
            ),
            teachers=tuple(
                TeacherRef(id=item.id, name=item.full_name)
                for item in db.execute(select(Teacher).order_by(Teacher.first_name, Teacher.last_name)).scalars()
            ),
            chapters=tuple(
                ChapterRef(id=item.id, subject_id=item.subject_id, name=item.name, position=item.position)
                for item in db.execute(select(Chapter)).scalars()
            ),
            topics=tuple(
                TopicRef(id=item.id, chapter_id=item.chapter_id, name=item.name, position=item.position)
                for item in db.execute(select(Topic)).scalars()
            ),
        )

    def get_teacher(self, teacher_id: str) -> Teacher:
        teacher = self._db.get(Teacher, teacher_id)
        if teacher is None:
            raise UnresolvedReferenceError("Teacher", teacher_id)
        return teacher

    def ensure_hierarchy(
        self,
        *,
        class_id: str,
        subject_id: str,
        chapter_id: str | None = None,
        topic_id: str | None = None,
    ) -> tuple[SchoolClass, Subject]:
        school_class = self._db.get(SchoolClass, class_id)
        if school_class is None:
            raise UnresolvedReferenceError("Class", class_id)
        subject = self._db.get(Subject, subject_id)
        if subject is None or subject.class_id != class_id:
            raise UnresolvedReferenceError("Subject", subject_id, f"Subject '{subject_id}' does not belong to the class")
        if topic_id is not None and chapter_id is None:
            raise SessionValidationError("A topic requires its chapter")
        if chapter_id is not None:
            chapter = self._db.get(Chapter, chapter_id)
            if chapter is None or chapter.subject_id != subject_id:
                raise UnresolvedReferenceError(
                    "Chapter", chapter_id, f"Chapter '{chapter_id}' does not belong to the subject"
                )
        if topic_id is not None:
            topic = self._db.get(Topic, topic_id)
            if topic is None or topic.chapter_id != chapter_id:
                raise UnresolvedReferenceError("Topic", topic_id, f"Topic '{topic_id}' does not belong to the chapter")
        return school_class, subject

    def board_for(self, school_class: SchoolClass) -> Board:
        board = self._db.get(Board, school_class.board_id)
        if board is None:
            raise UnresolvedReferenceError("Board", school_class.board_id)
        return board


def get_operating_schedule(db: Session) -> OperatingSchedule | None:
    return db.execute(select(OperatingSchedule).order_by(OperatingSchedule.id)).scalars().first()


def default_duration_minutes(db: Session) -> int:
    schedule = get_operating_schedule(db)
    if schedule is not None and schedule.default_period_duration > 0:
        return schedule.default_period_duration
    return get_settings().default_session_duration_minutes


def capture_snapshot(
    db: Session,
    *,
    window_start: datetime | None = None,
    window_end: datetime | None = None,
) -> SchedulingSnapshot:
    """Read everything the evaluator needs for the given window, once."""
    sessions = SqlSessionStore(db).list(SessionFilter(window_start=window_start, window_end=window_end))
    calendar = SqlCalendarService(db).exceptions(
        window_start.date() if window_start else None,
        window_end.date() if window_end else None,
    )
    return SchedulingSnapshot(
        taken_at=datetime.now(timezone.utc),
        catalog=SqlCatalog(db).snapshot(),
        sessions=tuple(to_slot(item) for item in sessions),
        calendar=calendar,
        allocations=SqlAllocationRegistry(db).triples(),
    )
