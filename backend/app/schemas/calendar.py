from datetime import date

from pydantic import BaseModel

from app.models.calendar_entry import CalendarEntryType


class CalendarEntryOut(BaseModel):
    id: str
    date: date
    end_date: date | None = None
    type: CalendarEntryType
    title: str
    description: str | None = None

    model_config = {"from_attributes": True}
