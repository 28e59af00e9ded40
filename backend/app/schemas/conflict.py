from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from app.services.local_time import to_school_local


class ConflictType(str, Enum):
    no_teacher = "NO_TEACHER"
    holiday = "HOLIDAY"
    exam_day = "EXAM_DAY"
    overlap = "OVERLAP"


class ConflictVerdict(BaseModel):
    """Outcome of evaluating one session draft. Advisory unless a caller's policy says otherwise."""

    model_config = {"frozen": True}

    has_conflict: bool = False
    conflict_type: ConflictType | None = None
    message: str | None = None
    calendar_entry_title: str | None = None
    overlapping_session_id: str | None = None
    # Whether the (teacher, class, subject) triple is declared; None when no teacher is set.
    teacher_allocated: bool | None = None


class ConflictCheckRequest(BaseModel):
    session_id: str | None = Field(default=None, max_length=36)
    class_id: str = Field(min_length=1, max_length=36)
    subject_id: str = Field(min_length=1, max_length=36)
    teacher_id: str | None = Field(default=None, max_length=36)
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_instant(cls, value: datetime) -> datetime:
        return to_school_local(value)

    @model_validator(mode="after")
    def validate_interval(self) -> "ConflictCheckRequest":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self
