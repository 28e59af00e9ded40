from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.core.exceptions import ResourceNotFoundError
from app.models.operating_schedule import OperatingSchedule
from app.schemas.operating_schedule import OperatingScheduleIn, OperatingScheduleOut
from app.services.repositories import commit_changes, get_operating_schedule

router = APIRouter()


@router.get("", response_model=OperatingScheduleOut)
def read_operating_schedule(db: Session = Depends(get_db)) -> OperatingScheduleOut:
    schedule = get_operating_schedule(db)
    if schedule is None:
        raise ResourceNotFoundError("Operating schedule", "default")
    return schedule


@router.put("", response_model=OperatingScheduleOut)
def upsert_operating_schedule(payload: OperatingScheduleIn, db: Session = Depends(get_db)) -> OperatingScheduleOut:
    schedule = get_operating_schedule(db)
    if schedule is None:
        schedule = OperatingSchedule(**payload.model_dump())
        db.add(schedule)
    else:
        for key, value in payload.model_dump().items():
            setattr(schedule, key, value)
    commit_changes(db, "save operating schedule")
    db.refresh(schedule)
    return schedule
