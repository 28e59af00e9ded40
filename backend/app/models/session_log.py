import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class StudentFlag(str, Enum):
    excellent = "EXCELLENT"
    good = "GOOD"
    needs_attention = "NEEDS_ATTENTION"
    absent = "ABSENT"


class SessionLog(Base):
    __tablename__ = "session_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id: Mapped[str] = mapped_column(String(36), unique=True, index=True, nullable=False)
    teacher_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    topics_covered: Mapped[str] = mapped_column(Text, nullable=False)
    homework: Mapped[str | None] = mapped_column(Text, nullable=True)
    class_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    challenges: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_steps: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class StudentSessionNote(Base):
    __tablename__ = "student_session_notes"
    __table_args__ = (
        UniqueConstraint("session_log_id", "student_id", name="uq_student_session_notes_log_student"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_log_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    student_id: Mapped[str] = mapped_column(String(36), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    flag: Mapped[StudentFlag | None] = mapped_column(
        SAEnum(StudentFlag, name="student_flag", values_callable=lambda e: [m.value for m in e]),
        nullable=True,
    )
