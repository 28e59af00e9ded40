from datetime import datetime

from pydantic import BaseModel


class AllocationOut(BaseModel):
    id: str
    teacher_id: str
    class_id: str
    subject_id: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
