from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.models.course.enrollment_model import EnrollmentStatus


class EnrollmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    course_id: str
    status: EnrollmentStatus
    enrolled_at: Optional[datetime] = None
