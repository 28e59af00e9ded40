from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.models.session_log import StudentFlag


class StudentNoteIn(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)
    note: str | None = Field(default=None, max_length=2000)
    flag: StudentFlag | None = None


class SessionLogFields(BaseModel):
    topics_covered: str = Field(max_length=5000)
    homework: str | None = Field(default=None, max_length=5000)
    class_notes: str | None = Field(default=None, max_length=5000)
    challenges: str | None = Field(default=None, max_length=5000)
    next_steps: str | None = Field(default=None, max_length=5000)
    student_notes: list[StudentNoteIn] = Field(default_factory=list, max_length=500)

    @field_validator("topics_covered")
    @classmethod
    def validate_topics_covered(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("topics_covered is required")
        return stripped


class SessionLogSubmit(SessionLogFields):
    session_id: str = Field(min_length=1, max_length=36)


class StudentNoteOut(BaseModel):
    student_id: str
    note: str | None = None
    flag: StudentFlag | None = None

    model_config = {"from_attributes": True}


class SessionLogOut(BaseModel):
    id: str
    session_id: str
    teacher_id: str | None = None
    topics_covered: str
    homework: str | None = None
    class_notes: str | None = None
    challenges: str | None = None
    next_steps: str | None = None
    student_notes: list[StudentNoteOut] = Field(default_factory=list)
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
