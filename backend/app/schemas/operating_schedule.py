from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator, model_validator

WEEKDAY_CODES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class OperatingScheduleIn(BaseModel):
    working_days: list[str] = Field(min_length=1, max_length=7)
    school_start_time: str
    school_end_time: str
    default_period_duration: int = Field(ge=5, le=480)

    @field_validator("working_days")
    @classmethod
    def validate_working_days(cls, value: list[str]) -> list[str]:
        cleaned = [day.strip().lower() for day in value if day.strip()]
        invalid = [day for day in cleaned if day not in WEEKDAY_CODES]
        if invalid:
            raise ValueError(f"Invalid working day(s): {', '.join(invalid)}")
        if not cleaned:
            raise ValueError("At least one working day is required")
        return sorted(set(cleaned), key=WEEKDAY_CODES.index)

    @field_validator("school_start_time", "school_end_time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_time_order(self) -> "OperatingScheduleIn":
        if parse_time_to_minutes(self.school_end_time) <= parse_time_to_minutes(self.school_start_time):
            raise ValueError("School end time must be after start time")
        return self


class OperatingScheduleOut(OperatingScheduleIn):
    id: str

    model_config = {"from_attributes": True}
