from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from app.schemas.conflict import ConflictType, ConflictVerdict
from app.schemas.operating_schedule import TIME_PATTERN, WEEKDAY_CODES


class RowIssueKind(str, Enum):
    validation = "VALIDATION"
    reference = "REFERENCE"
    # Only raised for conflict types the import policy marks as blocking.
    conflict = "CONFLICT"


class TeacherSource(str, Enum):
    row = "ROW"
    auto = "AUTO"
    override = "OVERRIDE"


class RowIssue(BaseModel):
    model_config = {"frozen": True}

    kind: RowIssueKind
    field: str | None = None
    message: str


class ImportRowOut(BaseModel):
    row_number: int
    board_name: str | None = None
    class_name: str | None = None
    subject_name: str | None = None
    teacher_name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_minutes: int | None = None
    board_id: str | None = None
    class_id: str | None = None
    subject_id: str | None = None
    chapter_id: str | None = None
    topic_id: str | None = None
    teacher_id: str | None = None
    teacher_source: TeacherSource | None = None
    title: str | None = None
    issues: list[RowIssue] = Field(default_factory=list)
    conflict: ConflictVerdict | None = None
    included: bool = True
    is_valid: bool
    will_commit: bool

    model_config = {"from_attributes": True}


class ImportSummary(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    excluded_rows: int = 0
    ready_rows: int = 0
    conflict_counts: dict[str, int] = Field(default_factory=dict)


class ImportJobOut(BaseModel):
    job_id: str
    source: str
    filename: str | None = None
    snapshot_taken_at: datetime
    blocking_conflicts: list[ConflictType] = Field(default_factory=list)
    commit_count: int = 0
    summary: ImportSummary
    rows: list[ImportRowOut] = Field(default_factory=list)


class ImportRowUpdate(BaseModel):
    """Review edits. Sending ``teacher_id: null`` clears the teacher; omitting it leaves it alone."""

    teacher_id: str | None = Field(default=None, max_length=36)
    included: bool | None = None


class RowOutcomeStatus(str, Enum):
    created = "CREATED"
    failed = "FAILED"
    invalid = "INVALID"
    excluded = "EXCLUDED"


class RowOutcome(BaseModel):
    row_number: int
    status: RowOutcomeStatus
    session_id: str | None = None
    title: str | None = None
    conflict: ConflictVerdict | None = None
    errors: list[str] = Field(default_factory=list)


class BulkCommitResult(BaseModel):
    job_id: str
    created_count: int = 0
    failed_count: int = 0
    invalid_count: int = 0
    excluded_count: int = 0
    outcomes: list[RowOutcome] = Field(default_factory=list)

    @computed_field
    @property
    def error_count(self) -> int:
        return self.failed_count + self.invalid_count


class SessionSeriesRequest(BaseModel):
    class_id: str = Field(min_length=1, max_length=36)
    subject_id: str = Field(min_length=1, max_length=36)
    chapter_id: str | None = Field(default=None, max_length=36)
    topic_id: str | None = Field(default=None, max_length=36)
    teacher_id: str | None = Field(default=None, max_length=36)
    duration_minutes: int | None = Field(default=None, ge=5, le=480)
    mode: Literal["date", "syllabus"] = "date"
    start_date: date
    start_time: str = "09:00"
    # Date-based repeat.
    count: int = Field(default=5, ge=1, le=200)
    frequency: Literal["daily", "weekly", "custom"] = "daily"
    custom_days: list[str] = Field(default_factory=lambda: ["mon", "wed", "fri"], max_length=7)
    # Syllabus-based repeat.
    syllabus_mode: Literal["chapter", "topic"] = "chapter"

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @field_validator("custom_days")
    @classmethod
    def validate_custom_days(cls, value: list[str]) -> list[str]:
        cleaned = [day.strip().lower() for day in value if day.strip()]
        invalid = [day for day in cleaned if day not in WEEKDAY_CODES]
        if invalid:
            raise ValueError(f"Invalid day(s): {', '.join(invalid)}")
        return cleaned

    @model_validator(mode="after")
    def validate_pattern(self) -> "SessionSeriesRequest":
        if self.mode == "date" and self.frequency == "custom" and not self.custom_days:
            raise ValueError("custom frequency needs at least one day")
        return self
