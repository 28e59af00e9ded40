"""create session scheduling tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


calendar_entry_type = sa.Enum("HOLIDAY", "SCHOOL_EVENT", "EXAM_DAY", "HALF_DAY", name="calendar_entry_type")
session_status = sa.Enum(
    "SCHEDULED", "IN_PROGRESS", "PENDING_LOG", "COMPLETED", "CANCELLED", name="session_status"
)
student_flag = sa.Enum("EXCELLENT", "GOOD", "NEEDS_ATTENTION", "ABSENT", name="student_flag")


def upgrade() -> None:
    op.create_table(
        "boards",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_boards_name", "boards", ["name"], unique=True)

    op.create_table(
        "school_classes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("board_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("section", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_school_classes_board_id", "school_classes", ["board_id"], unique=False)

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_subjects_class_id", "subjects", ["class_id"], unique=False)

    op.create_table(
        "chapters",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_chapters_subject_id", "chapters", ["subject_id"], unique=False)

    op.create_table(
        "topics",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("chapter_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_topics_chapter_id", "topics", ["chapter_id"], unique=False)

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("specialization", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "students",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_students_class_id", "students", ["class_id"], unique=False)

    op.create_table(
        "teacher_allocations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_teacher_allocations_teacher_id", "teacher_allocations", ["teacher_id"], unique=False)
    op.create_index(
        "ix_teacher_allocations_class_subject",
        "teacher_allocations",
        ["class_id", "subject_id"],
        unique=False,
    )

    op.create_table(
        "calendar_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("type", calendar_entry_type, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_calendar_entries_date", "calendar_entries", ["date"], unique=False)

    op.create_table(
        "operating_schedules",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("working_days", sa.JSON(), nullable=False),
        sa.Column("school_start_time", sa.String(length=5), nullable=False),
        sa.Column("school_end_time", sa.String(length=5), nullable=False),
        sa.Column("default_period_duration", sa.Integer(), nullable=False, server_default="60"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "teaching_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=False), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=False), nullable=False),
        sa.Column("status", session_status, nullable=False, server_default="SCHEDULED"),
        sa.Column("class_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("chapter_id", sa.String(length=36), nullable=True),
        sa.Column("topic_id", sa.String(length=36), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teaching_sessions_start_time", "teaching_sessions", ["start_time"], unique=False)
    op.create_index("ix_teaching_sessions_class_id", "teaching_sessions", ["class_id"], unique=False)
    op.create_index(
        "ix_teaching_sessions_teacher_start",
        "teaching_sessions",
        ["teacher_id", "start_time"],
        unique=False,
    )

    op.create_table(
        "session_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("session_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("topics_covered", sa.Text(), nullable=False),
        sa.Column("homework", sa.Text(), nullable=True),
        sa.Column("class_notes", sa.Text(), nullable=True),
        sa.Column("challenges", sa.Text(), nullable=True),
        sa.Column("next_steps", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_session_logs_session_id", "session_logs", ["session_id"], unique=True)

    op.create_table(
        "student_session_notes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("session_log_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("flag", student_flag, nullable=True),
        sa.UniqueConstraint("session_log_id", "student_id", name="uq_student_session_notes_log_student"),
    )
    op.create_index(
        "ix_student_session_notes_session_log_id",
        "student_session_notes",
        ["session_log_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_student_session_notes_session_log_id", table_name="student_session_notes")
    op.drop_table("student_session_notes")
    op.drop_index("ix_session_logs_session_id", table_name="session_logs")
    op.drop_table("session_logs")
    op.drop_index("ix_teaching_sessions_teacher_start", table_name="teaching_sessions")
    op.drop_index("ix_teaching_sessions_class_id", table_name="teaching_sessions")
    op.drop_index("ix_teaching_sessions_start_time", table_name="teaching_sessions")
    op.drop_table("teaching_sessions")
    op.drop_table("operating_schedules")
    op.drop_index("ix_calendar_entries_date", table_name="calendar_entries")
    op.drop_table("calendar_entries")
    op.drop_index("ix_teacher_allocations_class_subject", table_name="teacher_allocations")
    op.drop_index("ix_teacher_allocations_teacher_id", table_name="teacher_allocations")
    op.drop_table("teacher_allocations")
    op.drop_index("ix_students_class_id", table_name="students")
    op.drop_table("students")
    op.drop_table("teachers")
    op.drop_index("ix_topics_chapter_id", table_name="topics")
    op.drop_table("topics")
    op.drop_index("ix_chapters_subject_id", table_name="chapters")
    op.drop_table("chapters")
    op.drop_index("ix_subjects_class_id", table_name="subjects")
    op.drop_table("subjects")
    op.drop_index("ix_school_classes_board_id", table_name="school_classes")
    op.drop_table("school_classes")
    op.drop_index("ix_boards_name", table_name="boards")
    op.drop_table("boards")
    student_flag.drop(op.get_bind(), checkfirst=True)
    session_status.drop(op.get_bind(), checkfirst=True)
    calendar_entry_type.drop(op.get_bind(), checkfirst=True)
