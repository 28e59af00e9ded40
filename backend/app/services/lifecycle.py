from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from app.core.exceptions import InvalidTransitionError, UnresolvedReferenceError
from app.models.teaching_session import SessionStatus, TeachingSession
from app.schemas.session_log import SessionLogSubmit

if TYPE_CHECKING:
    from app.services.repositories import SqlSessionStore, SqlStudentRoster

logger = logging.getLogger(__name__)


class SessionAction(str, Enum):
    start = "start"
    end = "end"
    submit_log = "submit_log"
    cancel = "cancel"


SESSION_TRANSITIONS: dict[SessionAction, tuple[frozenset[SessionStatus], SessionStatus]] = {
    SessionAction.start: (frozenset({SessionStatus.scheduled}), SessionStatus.in_progress),
    SessionAction.end: (frozenset({SessionStatus.in_progress}), SessionStatus.pending_log),
    SessionAction.submit_log: (frozenset({SessionStatus.pending_log}), SessionStatus.completed),
    SessionAction.cancel: (
        frozenset({SessionStatus.scheduled, SessionStatus.in_progress}),
        SessionStatus.cancelled,
    ),
}


def next_status(session_id: str, current: SessionStatus, action: SessionAction) -> SessionStatus:
    sources, target = SESSION_TRANSITIONS[action]
    if current not in sources:
        raise InvalidTransitionError(session_id, current.value, action.value)
    return target


def allowed_actions(current: SessionStatus) -> list[SessionAction]:
    return [action for action, (sources, _) in SESSION_TRANSITIONS.items() if current in sources]


class SessionLifecycleController:
    """Moves sessions through SCHEDULED -> IN_PROGRESS -> PENDING_LOG -> COMPLETED.

    CANCELLED is reachable from SCHEDULED and IN_PROGRESS. Every rejected
    action raises InvalidTransitionError before anything is written.
    """

    def __init__(self, store: SqlSessionStore, roster: SqlStudentRoster) -> None:
        self._store = store
        self._roster = roster

    def start(self, session_id: str) -> TeachingSession:
        return self._store.transition(session_id, SessionAction.start)

    def end(self, session_id: str) -> TeachingSession:
        return self._store.transition(session_id, SessionAction.end)

    def cancel(self, session_id: str, reason: str | None = None) -> TeachingSession:
        return self._store.transition(session_id, SessionAction.cancel, reason=reason)

    def submit_log(self, payload: SessionLogSubmit, *, teacher_id: str | None = None) -> TeachingSession:
        session = self._store.get(payload.session_id)
        next_status(session.id, session.status, SessionAction.submit_log)

        roster_ids = {student.id for student in self._roster.list_by_class(session.class_id)}
        for note in payload.student_notes:
            if note.student_id not in roster_ids:
                raise UnresolvedReferenceError(
                    "Student",
                    note.student_id,
                    f"Student '{note.student_id}' is not enrolled in the session's class",
                )

        completed = self._store.submit_log(payload, teacher_id=teacher_id or session.teacher_id)
        logger.info("Session %s completed with log", completed.id)
        return completed
