from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

import app.models  # noqa: F401
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "boards": {"id", "name"},
    "school_classes": {"id", "board_id", "name", "section"},
    "subjects": {"id", "class_id", "name"},
    "teachers": {"id", "first_name", "last_name"},
    "teacher_allocations": {"id", "teacher_id", "class_id", "subject_id", "created_at"},
    "calendar_entries": {"id", "date", "end_date", "type", "title"},
    "teaching_sessions": {
        "id",
        "title",
        "description",
        "start_time",
        "end_time",
        "status",
        "class_id",
        "subject_id",
        "chapter_id",
        "topic_id",
        "teacher_id",
    },
    "session_logs": {"id", "session_id", "topics_covered"},
    "student_session_notes": {"id", "session_log_id", "student_id", "flag"},
}


def _assert_required_columns() -> None:
    with engine.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        _assert_required_columns()
    except (SQLAlchemyError, RuntimeError) as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema bootstrap failed")
        raise RuntimeError("Runtime schema bootstrap failed") from exc
