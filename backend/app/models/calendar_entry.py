import datetime as dt
import uuid
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class CalendarEntryType(str, Enum):
    holiday = "HOLIDAY"
    school_event = "SCHOOL_EVENT"
    exam_day = "EXAM_DAY"
    half_day = "HALF_DAY"


class CalendarEntry(Base):
    __tablename__ = "calendar_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    date: Mapped[dt.date] = mapped_column(Date, index=True, nullable=False)
    end_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    type: Mapped[CalendarEntryType] = mapped_column(
        SAEnum(CalendarEntryType, name="calendar_entry_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
