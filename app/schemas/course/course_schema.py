from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from app.models.course.enrollment_model import EnrollmentStatus
from app.schemas.course.lesson_schema import LessonRead


class CourseCreate(BaseModel):
    # Length and range rules are enforced by the service, which reports every
    # violation at once.
    title: str
    description: Optional[str] = None
    price: Optional[Decimal] = None
    is_free: Optional[bool] = None
    is_published: bool = False


class CourseUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    is_free: Optional[bool] = None
    is_published: Optional[bool] = None


class InstructorSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    email: str


class CourseRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    instructor_id: str
    title: str
    description: Optional[str] = None
    price: Decimal
    is_free: bool
    is_published: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CourseListItem(CourseRead):
    instructor: Optional[InstructorSummary] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class CourseListOut(BaseModel):
    items: List[CourseListItem]
    pagination: Pagination


class InstructorCourseListOut(BaseModel):
    items: List[CourseRead]
    pagination: Pagination


class CourseDetail(CourseListItem):
    lessons: List[LessonRead] = []
    enrollment_count: int = 0
    user_enrollment_status: Optional[EnrollmentStatus] = None
    is_enrolled: bool = False


class CourseDeleteOut(BaseModel):
    id: str
    soft_deleted: bool
    message: str
