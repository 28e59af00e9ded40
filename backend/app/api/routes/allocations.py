from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.allocation import AllocationOut
from app.services.repositories import SqlAllocationRegistry

router = APIRouter()


@router.get("", response_model=list[AllocationOut])
def list_allocations(
    teacher_id: str | None = Query(default=None),
    class_id: str | None = Query(default=None),
    subject_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[AllocationOut]:
    return SqlAllocationRegistry(db).list(teacher_id=teacher_id, class_id=class_id, subject_id=subject_id)
