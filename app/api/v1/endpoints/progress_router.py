from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_current_user, get_db, http_error_from
from app.models.user.user_model import User
from app.schemas.progress import progress_schema
from app.services.errors import ServiceError
from app.services.progress_service import ProgressService

router = APIRouter()


@router.post("/lessons/{lesson_id}/complete", response_model=progress_schema.LessonCompleteOut)
def complete_lesson(
    lesson_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        progress, newly_completed = ProgressService(db, current_user.id).mark_complete(lesson_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc

    message = "Lesson marked as complete" if newly_completed else "Lesson already completed"
    return progress_schema.LessonCompleteOut(
        message=message,
        progress=progress_schema.LessonProgressRead.model_validate(progress),
    )


@router.get("/progress/{course_id}", response_model=progress_schema.CourseProgressOut)
def get_course_progress(
    course_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        summary = ProgressService(db, current_user.id).get_course_progress(course_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc
    return progress_schema.CourseProgressOut(**summary)
