from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.exceptions import SessionValidationError
from app.schemas.calendar import CalendarEntryOut
from app.services.repositories import SqlCalendarService

router = APIRouter()


@router.get("", response_model=list[CalendarEntryOut])
def list_calendar_entries(
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[CalendarEntryOut]:
    if start is not None and end is not None and end < start:
        raise SessionValidationError("end must not be before start")
    return SqlCalendarService(db).list(start, end)
