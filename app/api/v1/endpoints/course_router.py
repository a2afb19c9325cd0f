from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_current_user, get_db, get_optional_user, http_error_from
from app.core.permissions import Capability, require_capability
from app.crud import course_crud, enrollment_crud
from app.models.user.user_model import User
from app.schemas.course import course_schema, enrollment_schema, lesson_schema
from app.services.course_service import CourseService
from app.services.errors import ServiceError

router = APIRouter()


def _course_detail_payload(detail: dict) -> course_schema.CourseDetail:
    course = detail["course"]
    payload = course_schema.CourseListItem.model_validate(course).model_dump()
    payload.update(
        lessons=[lesson_schema.LessonRead.model_validate(lesson) for lesson in course.lessons],
        enrollment_count=detail["enrollment_count"],
        user_enrollment_status=detail["user_enrollment_status"],
        is_enrolled=detail["is_enrolled"],
    )
    return course_schema.CourseDetail(**payload)


@router.get("", response_model=course_schema.CourseListOut)
def list_courses(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    is_free: Optional[bool] = None,
    instructor_id: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    db: Session = Depends(get_db),
):
    """Catalogue public: uniquement les cours publiés et non supprimés."""

    result = course_crud.list_courses(
        db,
        page=page,
        limit=limit,
        search=search,
        is_free=is_free,
        is_published=True,
        instructor_id=instructor_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return course_schema.CourseListOut(
        items=[course_schema.CourseListItem.model_validate(course) for course in result["items"]],
        pagination=course_schema.Pagination(**result["pagination"]),
    )


@router.get("/my-courses", response_model=course_schema.InstructorCourseListOut)
def list_my_courses(
    page: int = 1,
    limit: int = 10,
    is_published: Optional[bool] = None,
    include_deleted: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        require_capability(current_user, Capability.LIST_OWN_COURSES)
    except ServiceError as exc:
        raise http_error_from(exc) from exc

    result = course_crud.list_instructor_courses(
        db,
        current_user.id,
        page=page,
        limit=limit,
        is_published=is_published,
        include_deleted=include_deleted,
    )
    return course_schema.InstructorCourseListOut(
        items=[course_schema.CourseRead.model_validate(course) for course in result["items"]],
        pagination=course_schema.Pagination(**result["pagination"]),
    )


@router.post("", response_model=course_schema.CourseRead, status_code=status.HTTP_201_CREATED)
def create_course(
    course_in: course_schema.CourseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return CourseService(db, current_user).create_course(course_in.model_dump())
    except ServiceError as exc:
        raise http_error_from(exc) from exc


@router.get("/{course_id}", response_model=course_schema.CourseDetail)
def get_course(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    try:
        detail = CourseService(db, current_user).build_course_detail(course_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc
    return _course_detail_payload(detail)


@router.put("/{course_id}", response_model=course_schema.CourseRead)
def update_course(
    course_id: str,
    course_in: course_schema.CourseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return CourseService(db, current_user).update_course(course_id, course_in.model_dump(exclude_unset=True))
    except ServiceError as exc:
        raise http_error_from(exc) from exc


@router.delete("/{course_id}", response_model=course_schema.CourseDeleteOut)
def delete_course(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        soft_deleted = CourseService(db, current_user).delete_course(course_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc

    message = (
        "Course archived: it has enrolled learners and was unpublished"
        if soft_deleted
        else "Course deleted successfully"
    )
    return course_schema.CourseDeleteOut(id=course_id, soft_deleted=soft_deleted, message=message)


@router.post(
    "/{course_id}/enroll",
    response_model=enrollment_schema.EnrollmentRead,
    status_code=status.HTTP_201_CREATED,
)
def enroll_in_course(
    course_id: str,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        enrollment, created = enrollment_crud.enroll(db, current_user, course_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc

    if not created:
        response.status_code = status.HTTP_200_OK
    return enrollment
