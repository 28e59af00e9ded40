import os
import tempfile
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

# The app's startup bootstrap talks to the configured engine, so point it at a throwaway sqlite file.
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+pysqlite:///" + os.path.join(tempfile.gettempdir(), "session-scheduler-tests.db"),
)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Board,
    CalendarEntry,
    CalendarEntryType,
    Chapter,
    SchoolClass,
    Student,
    Subject,
    Teacher,
    TeacherAllocation,
    Topic,
)
from app.services.import_jobs import clear_import_jobs  # noqa: E402


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    clear_import_jobs()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    clear_import_jobs()


@pytest.fixture()
def school(db):
    """One board, class 5B with Science and Maths, three teachers and a small calendar."""
    board = Board(name="CBSE")
    db.add(board)
    db.flush()

    class_5b = SchoolClass(board_id=board.id, name="Class 5", section="B")
    db.add(class_5b)
    db.flush()

    science = Subject(class_id=class_5b.id, name="Science")
    maths = Subject(class_id=class_5b.id, name="Maths")
    db.add_all([science, maths])
    db.flush()

    plants = Chapter(subject_id=science.id, name="Plants", position=1)
    animals = Chapter(subject_id=science.id, name="Animals", position=2)
    db.add_all([plants, animals])
    db.flush()

    roots = Topic(chapter_id=plants.id, name="Roots", position=1)
    leaves = Topic(chapter_id=plants.id, name="Leaves", position=2)
    habitats = Topic(chapter_id=animals.id, name="Habitats", position=1)
    db.add_all([roots, leaves, habitats])

    asha = Teacher(first_name="Asha", last_name="Rao", email="asha@example.com")
    ravi = Teacher(first_name="Ravi", last_name="Kumar", email="ravi@example.com")
    meera = Teacher(first_name="Meera", last_name="Iyer", email="meera@example.com")
    db.add_all([asha, ravi, meera])
    db.flush()

    allocated_at = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
    db.add_all(
        [
            TeacherAllocation(teacher_id=asha.id, class_id=class_5b.id, subject_id=science.id, created_at=allocated_at),
            TeacherAllocation(
                teacher_id=ravi.id,
                class_id=class_5b.id,
                subject_id=science.id,
                created_at=allocated_at + timedelta(minutes=1),
            ),
            TeacherAllocation(
                teacher_id=meera.id,
                class_id=class_5b.id,
                subject_id=maths.id,
                created_at=allocated_at + timedelta(minutes=2),
            ),
        ]
    )

    students = [
        Student(class_id=class_5b.id, first_name="Anil", last_name="Shah"),
        Student(class_id=class_5b.id, first_name="Bina", last_name="Das"),
    ]
    db.add_all(students)

    db.add_all(
        [
            CalendarEntry(date=date(2026, 1, 26), type=CalendarEntryType.holiday, title="Republic Day"),
            CalendarEntry(date=date(2026, 3, 10), type=CalendarEntryType.exam_day, title="Mid-term Exams"),
            CalendarEntry(date=date(2026, 2, 14), type=CalendarEntryType.half_day, title="Staff Meeting"),
        ]
    )
    db.flush()

    ids = SimpleNamespace(
        board_id=board.id,
        class_id=class_5b.id,
        science_id=science.id,
        maths_id=maths.id,
        plants_id=plants.id,
        animals_id=animals.id,
        roots_id=roots.id,
        leaves_id=leaves.id,
        habitats_id=habitats.id,
        asha_id=asha.id,
        ravi_id=ravi.id,
        meera_id=meera.id,
        student_ids=[student.id for student in students],
    )
    db.commit()
    return ids
