from __future__ import annotations

import logging
from datetime import datetime, time, timedelta

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.config import get_settings
from app.models.teaching_session import SessionStatus, TeachingSession
from app.schemas.conflict import ConflictCheckRequest, ConflictVerdict
from app.schemas.session import (
    DraftDefaultsOut,
    OperationalFlagOut,
    ScheduleEntryOut,
    SessionCancel,
    SessionCreate,
    SessionDayStatsOut,
    SessionDetailOut,
    SessionOut,
    SessionUpdate,
    SessionWithConflictOut,
)
from app.schemas.session_log import SessionLogFields, SessionLogOut, SessionLogSubmit, StudentNoteOut
from app.services.assignment import candidate_teachers, generate_session_title, resolve_teacher
from app.services.conflicts import SessionDraft, evaluate_conflict
from app.services.daily_overview import operational_flags, session_day_stats
from app.services.lifecycle import SessionLifecycleController, allowed_actions
from app.services.local_time import school_now, to_school_local
from app.services.repositories import (
    SessionFilter,
    SqlAllocationRegistry,
    SqlCalendarService,
    SqlCatalog,
    SqlSessionStore,
    SqlStudentRoster,
    default_duration_minutes,
    to_slot,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _evaluate_draft(db: Session, draft: SessionDraft) -> ConflictVerdict:
    """Gather the sessions, calendar entries and allocations relevant to one draft."""
    sessions = []
    allocations = ()
    if draft.teacher_id:
        sessions = SqlSessionStore(db).list(
            SessionFilter(
                teacher_id=draft.teacher_id,
                window_start=draft.start_time,
                window_end=draft.end_time,
            )
        )
        allocations = SqlAllocationRegistry(db).triples(teacher_id=draft.teacher_id)
    calendar = SqlCalendarService(db).exceptions(draft.start_time.date(), draft.start_time.date())
    return evaluate_conflict(draft, [to_slot(item) for item in sessions], calendar, allocations)


def _draft_for(session: TeachingSession) -> SessionDraft:
    return SessionDraft(
        id=session.id,
        class_id=session.class_id,
        subject_id=session.subject_id,
        teacher_id=session.teacher_id,
        start_time=session.start_time,
        end_time=session.end_time,
    )


def _detail(db: Session, session: TeachingSession) -> SessionDetailOut:
    log_out: SessionLogOut | None = None
    stored = SqlSessionStore(db).get_log(session.id)
    if stored is not None:
        log, notes = stored
        log_out = SessionLogOut.model_validate(log).model_copy(
            update={"student_notes": [StudentNoteOut.model_validate(note) for note in notes]}
        )
    return SessionDetailOut(
        **SessionOut.model_validate(session).model_dump(),
        allowed_actions=[action.value for action in allowed_actions(session.status)],
        log=log_out,
    )


@router.get("", response_model=list[SessionOut])
def list_sessions(
    status_filter: SessionStatus | None = Query(default=None, alias="status"),
    teacher_id: str | None = Query(default=None),
    class_id: str | None = Query(default=None),
    subject_id: str | None = Query(default=None),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[SessionOut]:
    return SqlSessionStore(db).list(
        SessionFilter(
            status=status_filter,
            teacher_id=teacher_id,
            class_id=class_id,
            subject_id=subject_id,
            window_start=to_school_local(start) if start else None,
            window_end=to_school_local(end) if end else None,
        )
    )


@router.get("/schedule", response_model=list[ScheduleEntryOut])
def get_schedule(
    start: datetime = Query(...),
    end: datetime = Query(...),
    teacher_id: str | None = Query(default=None),
    class_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[ScheduleEntryOut]:
    window_start = to_school_local(start)
    window_end = to_school_local(end)
    store = SqlSessionStore(db)
    visible = store.list(
        SessionFilter(teacher_id=teacher_id, class_id=class_id, window_start=window_start, window_end=window_end)
    )
    # Double bookings can span classes, so overlaps are judged against every session in the window.
    slots = [to_slot(item) for item in store.list(SessionFilter(window_start=window_start, window_end=window_end))]
    calendar = SqlCalendarService(db).exceptions(window_start.date(), window_end.date())
    allocations = SqlAllocationRegistry(db).triples()

    entries: list[ScheduleEntryOut] = []
    for session in visible:
        if session.status == SessionStatus.cancelled:
            verdict = ConflictVerdict()
        else:
            verdict = evaluate_conflict(_draft_for(session), slots, calendar, allocations)
        entries.append(ScheduleEntryOut(**SessionOut.model_validate(session).model_dump(), conflict=verdict))
    return entries


def _day_window(at: datetime | None) -> tuple[datetime, datetime, datetime]:
    now = to_school_local(at) if at is not None else school_now()
    day_start = datetime.combine(now.date(), time.min)
    return now, day_start, day_start + timedelta(days=1)


@router.get("/today", response_model=SessionDayStatsOut)
def get_today_stats(
    at: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
) -> SessionDayStatsOut:
    now, day_start, day_end = _day_window(at)
    sessions = SqlSessionStore(db).list(SessionFilter(window_start=day_start, window_end=day_end))
    calendar = SqlCalendarService(db).exceptions(now.date(), now.date())
    return session_day_stats(sessions, calendar, now)


@router.get("/flags", response_model=list[OperationalFlagOut])
def get_operational_flags(
    at: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[OperationalFlagOut]:
    now, day_start, day_end = _day_window(at)
    store = SqlSessionStore(db)
    sessions = store.list(SessionFilter(window_start=day_start, window_end=day_end))
    pending_log = store.list(SessionFilter(status=SessionStatus.pending_log, window_end=now))
    calendar = SqlCalendarService(db).exceptions(now.date(), now.date())
    return operational_flags(sessions, pending_log, calendar, SqlCatalog(db).snapshot(), now)


@router.get("/draft-defaults", response_model=DraftDefaultsOut)
def get_draft_defaults(
    class_id: str = Query(..., min_length=1),
    subject_id: str = Query(..., min_length=1),
    start_time: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
) -> DraftDefaultsOut:
    catalog = SqlCatalog(db)
    school_class, subject = catalog.ensure_hierarchy(class_id=class_id, subject_id=subject_id)
    allocations = SqlAllocationRegistry(db).triples(class_id=class_id, subject_id=subject_id)
    candidates = candidate_teachers(allocations, class_id, subject_id)
    duration = default_duration_minutes(db)

    title = None
    end_time = None
    if start_time is not None:
        local_start = to_school_local(start_time)
        board = catalog.board_for(school_class)
        title = generate_session_title(
            local_start,
            board.name,
            school_class.name,
            school_class.section,
            subject.name,
            start_month=get_settings().academic_year_start_month,
        )
        end_time = local_start + timedelta(minutes=duration)

    return DraftDefaultsOut(
        teacher_id=candidates[0] if candidates else None,
        candidate_teacher_ids=candidates,
        title=title,
        end_time=end_time,
        duration_minutes=duration,
    )


@router.post("/conflicts/check", response_model=ConflictVerdict)
def check_conflicts(payload: ConflictCheckRequest, db: Session = Depends(get_db)) -> ConflictVerdict:
    draft = SessionDraft(
        id=payload.session_id,
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        teacher_id=payload.teacher_id,
        start_time=payload.start_time,
        end_time=payload.end_time,
    )
    return _evaluate_draft(db, draft)


@router.post("", response_model=SessionWithConflictOut, status_code=status.HTTP_201_CREATED)
def create_session(payload: SessionCreate, db: Session = Depends(get_db)) -> SessionWithConflictOut:
    catalog = SqlCatalog(db)
    school_class, subject = catalog.ensure_hierarchy(
        class_id=payload.class_id,
        subject_id=payload.subject_id,
        chapter_id=payload.chapter_id,
        topic_id=payload.topic_id,
    )
    if payload.teacher_id:
        catalog.get_teacher(payload.teacher_id)

    teacher_id, auto_assigned = payload.teacher_id, False
    if payload.auto_assign_teacher:
        allocations = SqlAllocationRegistry(db).triples(class_id=payload.class_id, subject_id=payload.subject_id)
        teacher_id, auto_assigned = resolve_teacher(
            payload.teacher_id, allocations, payload.class_id, payload.subject_id, is_new=True
        )

    title = payload.title
    if title is None:
        board = catalog.board_for(school_class)
        title = generate_session_title(
            payload.start_time,
            board.name,
            school_class.name,
            school_class.section,
            subject.name,
            start_month=get_settings().academic_year_start_month,
        )

    verdict = _evaluate_draft(
        db,
        SessionDraft(
            class_id=payload.class_id,
            subject_id=payload.subject_id,
            teacher_id=teacher_id,
            start_time=payload.start_time,
            end_time=payload.end_time,
        ),
    )
    session = SqlSessionStore(db).create(
        {
            "title": title,
            "description": payload.description,
            "start_time": payload.start_time,
            "end_time": payload.end_time,
            "class_id": payload.class_id,
            "subject_id": payload.subject_id,
            "chapter_id": payload.chapter_id,
            "topic_id": payload.topic_id,
            "teacher_id": teacher_id,
        }
    )
    logger.info(
        "Created session %s (conflict=%s, auto_assigned=%s)",
        session.id,
        verdict.conflict_type.value if verdict.conflict_type else None,
        auto_assigned,
    )
    return SessionWithConflictOut(
        session=SessionOut.model_validate(session),
        conflict=verdict,
        teacher_auto_assigned=auto_assigned,
    )


@router.get("/{session_id}", response_model=SessionDetailOut)
def get_session(session_id: str, db: Session = Depends(get_db)) -> SessionDetailOut:
    return _detail(db, SqlSessionStore(db).get(session_id))


@router.put("/{session_id}", response_model=SessionWithConflictOut)
def update_session(
    session_id: str,
    payload: SessionUpdate,
    db: Session = Depends(get_db),
) -> SessionWithConflictOut:
    store = SqlSessionStore(db)
    existing = store.get(session_id)
    changes = payload.model_dump(exclude_unset=True)

    for key in ("title", "start_time", "end_time", "class_id", "subject_id"):
        if key in changes and changes[key] is None:
            changes.pop(key)

    catalog = SqlCatalog(db)
    if {"class_id", "subject_id", "chapter_id", "topic_id"} & changes.keys():
        catalog.ensure_hierarchy(
            class_id=changes.get("class_id", existing.class_id),
            subject_id=changes.get("subject_id", existing.subject_id),
            chapter_id=changes.get("chapter_id", existing.chapter_id),
            topic_id=changes.get("topic_id", existing.topic_id),
        )
    if changes.get("teacher_id"):
        catalog.get_teacher(changes["teacher_id"])

    session = store.update(session_id, changes)
    verdict = _evaluate_draft(db, _draft_for(session))
    return SessionWithConflictOut(session=SessionOut.model_validate(session), conflict=verdict)


def _lifecycle(db: Session) -> SessionLifecycleController:
    return SessionLifecycleController(SqlSessionStore(db), SqlStudentRoster(db))


@router.post("/{session_id}/start", response_model=SessionOut)
def start_session(session_id: str, db: Session = Depends(get_db)) -> SessionOut:
    return _lifecycle(db).start(session_id)


@router.post("/{session_id}/end", response_model=SessionOut)
def end_session(session_id: str, db: Session = Depends(get_db)) -> SessionOut:
    return _lifecycle(db).end(session_id)


@router.post("/{session_id}/cancel", response_model=SessionOut)
def cancel_session(
    session_id: str,
    payload: SessionCancel | None = None,
    db: Session = Depends(get_db),
) -> SessionOut:
    reason = payload.reason if payload is not None else None
    return _lifecycle(db).cancel(session_id, reason)


@router.post("/{session_id}/log", response_model=SessionDetailOut)
def submit_session_log(
    session_id: str,
    payload: SessionLogFields,
    db: Session = Depends(get_db),
) -> SessionDetailOut:
    submission = SessionLogSubmit(session_id=session_id, **payload.model_dump())
    session = _lifecycle(db).submit_log(submission)
    return _detail(db, session)
