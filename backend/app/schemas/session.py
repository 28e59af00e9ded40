from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.teaching_session import SessionStatus
from app.schemas.conflict import ConflictVerdict
from app.schemas.session_log import SessionLogOut
from app.services.local_time import to_school_local


class SessionTimes(BaseModel):
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_instant(cls, value: datetime) -> datetime:
        return to_school_local(value)

    @model_validator(mode="after")
    def validate_interval(self) -> "SessionTimes":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class SessionCreate(SessionTimes):
    # Generated from board/class/subject/start time when omitted.
    title: str | None = Field(default=None, max_length=300)
    description: str | None = Field(default=None, max_length=5000)
    class_id: str = Field(min_length=1, max_length=36)
    subject_id: str = Field(min_length=1, max_length=36)
    chapter_id: str | None = Field(default=None, max_length=36)
    topic_id: str | None = Field(default=None, max_length=36)
    teacher_id: str | None = Field(default=None, max_length=36)
    auto_assign_teacher: bool = True

    @field_validator("title")
    @classmethod
    def blank_title_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class SessionUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = Field(default=None, max_length=5000)
    start_time: datetime | None = None
    end_time: datetime | None = None
    class_id: str | None = Field(default=None, min_length=1, max_length=36)
    subject_id: str | None = Field(default=None, min_length=1, max_length=36)
    chapter_id: str | None = Field(default=None, max_length=36)
    topic_id: str | None = Field(default=None, max_length=36)
    teacher_id: str | None = Field(default=None, max_length=36)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_instant(cls, value: datetime | None) -> datetime | None:
        return to_school_local(value) if value is not None else None


class SessionCancel(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class SessionOut(BaseModel):
    id: str
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    status: SessionStatus
    class_id: str
    subject_id: str
    chapter_id: str | None = None
    topic_id: str | None = None
    teacher_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class SessionWithConflictOut(BaseModel):
    session: SessionOut
    conflict: ConflictVerdict
    teacher_auto_assigned: bool = False


class SessionDetailOut(SessionOut):
    allowed_actions: list[str] = Field(default_factory=list)
    log: SessionLogOut | None = None


class DraftDefaultsOut(BaseModel):
    teacher_id: str | None = None
    candidate_teacher_ids: list[str] = Field(default_factory=list)
    title: str | None = None
    end_time: datetime | None = None
    duration_minutes: int


class ScheduleEntryOut(SessionOut):
    conflict: ConflictVerdict


class SessionDayStatsOut(BaseModel):
    day: date
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    upcoming: int = 0
    # Open sessions with no teacher, or SCHEDULED sessions on a HOLIDAY or EXAM_DAY.
    at_risk: int = 0


class FlagSeverity(str, Enum):
    critical = "critical"
    warning = "warning"
    info = "info"


class OperationalFlagType(str, Enum):
    vacant_session = "VACANT_SESSION"
    calendar_conflict = "CALENDAR_CONFLICT"
    unlogged_session = "UNLOGGED_SESSION"


class OperationalFlagOut(BaseModel):
    id: str
    type: OperationalFlagType
    severity: FlagSeverity
    title: str
    description: str
    entity_type: str
    entity_id: str
    time: datetime | None = None
    class_name: str | None = None
    subject_name: str | None = None
