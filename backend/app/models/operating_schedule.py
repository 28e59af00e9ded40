import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class OperatingSchedule(Base):
    __tablename__ = "operating_schedules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    working_days: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    school_start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    school_end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    default_period_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
