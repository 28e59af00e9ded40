from app.models.allocation import TeacherAllocation  # noqa: F401
from app.models.calendar_entry import CalendarEntry, CalendarEntryType  # noqa: F401
from app.models.catalog import Board, Chapter, SchoolClass, Subject, Topic  # noqa: F401
from app.models.operating_schedule import OperatingSchedule  # noqa: F401
from app.models.session_log import SessionLog, StudentFlag, StudentSessionNote  # noqa: F401
from app.models.student import Student  # noqa: F401
from app.models.teacher import Teacher  # noqa: F401
from app.models.teaching_session import SessionStatus, TeachingSession  # noqa: F401
