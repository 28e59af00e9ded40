"""Per-day session counts and the operational flags shown to coordinators.

Both views read stored sessions and calendar exceptions only; nothing here
writes. "Today" is always a school-local date supplied by the caller.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime

from app.models.teaching_session import SessionStatus, TeachingSession
from app.schemas.session import FlagSeverity, OperationalFlagOut, OperationalFlagType, SessionDayStatsOut
from app.services.conflicts import CALENDAR_CONFLICT_RANKING
from app.services.snapshot import CalendarException, CatalogSnapshot

AT_RISK_CALENDAR_TYPES = frozenset(entry_type for entry_type, _ in CALENDAR_CONFLICT_RANKING)
OPEN_STATUSES = frozenset({SessionStatus.scheduled, SessionStatus.in_progress})
UNLOGGED_FLAG_LIMIT = 5

SEVERITY_ORDER = {
    FlagSeverity.critical: 0,
    FlagSeverity.warning: 1,
    FlagSeverity.info: 2,
}


def sessions_starting_on(day: date, sessions: Iterable[TeachingSession]) -> list[TeachingSession]:
    return [session for session in sessions if session.start_time.date() == day]


def blocking_entries_on(day: date, calendar: Iterable[CalendarException]) -> list[CalendarException]:
    return [entry for entry in calendar if entry.type in AT_RISK_CALENDAR_TYPES and entry.covers(day)]


def is_at_risk(session: TeachingSession, calendar: Iterable[CalendarException]) -> bool:
    if session.teacher_id is None and session.status not in (SessionStatus.completed, SessionStatus.cancelled):
        return True
    return session.status == SessionStatus.scheduled and bool(
        blocking_entries_on(session.start_time.date(), calendar)
    )


def session_day_stats(
    sessions: Iterable[TeachingSession],
    calendar: Iterable[CalendarException],
    now: datetime,
) -> SessionDayStatsOut:
    """Count the sessions that start on ``now``'s date by where they stand at ``now``."""
    day = now.date()
    calendar = tuple(calendar)
    todays = sessions_starting_on(day, sessions)
    return SessionDayStatsOut(
        day=day,
        total=len(todays),
        completed=sum(1 for item in todays if item.status == SessionStatus.completed),
        in_progress=sum(1 for item in todays if item.status == SessionStatus.in_progress),
        upcoming=sum(1 for item in todays if item.status == SessionStatus.scheduled and item.start_time > now),
        at_risk=sum(1 for item in todays if is_at_risk(item, calendar)),
    )


def _session_label(session: TeachingSession, catalog: CatalogSnapshot) -> tuple[str | None, str | None, str]:
    school_class = catalog.school_class(session.class_id)
    subject = catalog.subject(session.subject_id)
    class_name = school_class.name if school_class else None
    subject_name = subject.name if subject else None
    description = f"{school_class.label if school_class else session.class_id} - {subject_name or session.subject_id}"
    return class_name, subject_name, description


def _session_flag(
    session: TeachingSession,
    catalog: CatalogSnapshot,
    *,
    flag_type: OperationalFlagType,
    severity: FlagSeverity,
    title: str,
    time: datetime,
) -> OperationalFlagOut:
    class_name, subject_name, description = _session_label(session, catalog)
    prefix = "vacant" if flag_type == OperationalFlagType.vacant_session else "unlogged"
    return OperationalFlagOut(
        id=f"{prefix}-{session.id}",
        type=flag_type,
        severity=severity,
        title=title,
        description=description,
        entity_type="session",
        entity_id=session.id,
        time=time,
        class_name=class_name,
        subject_name=subject_name,
    )


def operational_flags(
    sessions: Iterable[TeachingSession],
    pending_log: Iterable[TeachingSession],
    calendar: Iterable[CalendarException],
    catalog: CatalogSnapshot,
    now: datetime,
) -> list[OperationalFlagOut]:
    """Issues needing attention, most severe first.

    * critical: open sessions starting today with no teacher
    * warning: one per HOLIDAY or EXAM_DAY entry covering today, when SCHEDULED sessions fall on it
    * info: up to five PENDING_LOG sessions that have already ended, latest first
    """
    day = now.date()
    todays = sessions_starting_on(day, sessions)
    flags: list[OperationalFlagOut] = []

    for session in todays:
        if session.teacher_id is None and session.status in OPEN_STATUSES:
            flags.append(
                _session_flag(
                    session,
                    catalog,
                    flag_type=OperationalFlagType.vacant_session,
                    severity=FlagSeverity.critical,
                    title="No Teacher Assigned",
                    time=session.start_time,
                )
            )

    scheduled_count = sum(1 for session in todays if session.status == SessionStatus.scheduled)
    if scheduled_count:
        for entry in blocking_entries_on(day, calendar):
            flags.append(
                OperationalFlagOut(
                    id=f"calendar-{entry.id or entry.date.isoformat()}",
                    type=OperationalFlagType.calendar_conflict,
                    severity=FlagSeverity.warning,
                    title=f"Sessions on {entry.type.value.replace('_', ' ')}",
                    description=f'{scheduled_count} session(s) scheduled on "{entry.title}"',
                    entity_type="calendar_entry",
                    entity_id=entry.id or "",
                )
            )

    overdue = sorted(
        (
            session
            for session in pending_log
            if session.status == SessionStatus.pending_log and session.end_time < now
        ),
        key=lambda session: session.end_time,
        reverse=True,
    )
    for session in overdue[:UNLOGGED_FLAG_LIMIT]:
        flags.append(
            _session_flag(
                session,
                catalog,
                flag_type=OperationalFlagType.unlogged_session,
                severity=FlagSeverity.info,
                title="Session Pending Log",
                time=session.end_time,
            )
        )

    return sorted(flags, key=lambda flag: SEVERITY_ORDER[flag.severity])
