from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from app.models.course.enrollment_model import EnrollmentStatus


class LessonProgressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lesson_id: str
    course_id: str
    completed: bool
    progress_pct: int
    updated_at: Optional[datetime] = None


class LessonCompleteOut(BaseModel):
    message: str
    progress: LessonProgressRead


class LessonProgressItem(BaseModel):
    lesson_id: str
    title: str
    order_index: int
    completed: bool
    progress_pct: int


class CourseProgressOut(BaseModel):
    course_id: str
    total_lessons: int
    completed_lessons: int
    completion_percentage: int
    enrollment_status: EnrollmentStatus
    lessons_progress: List[LessonProgressItem]
