from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_current_user, get_db, http_error_from
from app.models.user.user_model import User
from app.schemas.course import lesson_schema
from app.services.errors import ServiceError
from app.services.lesson_service import LessonService

router = APIRouter()


@router.get("", response_model=List[lesson_schema.LessonRead])
def list_lessons(course_id: str, db: Session = Depends(get_db)):
    try:
        return LessonService(db).list_lessons(course_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc


@router.post("", response_model=lesson_schema.LessonRead, status_code=status.HTTP_201_CREATED)
def create_lesson(
    course_id: str,
    lesson_in: lesson_schema.LessonCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Insère une leçon à ``order_index`` (ou à la fin) en décalant les suivantes."""

    try:
        return LessonService(db, current_user).insert_lesson(course_id, lesson_in.model_dump(exclude_none=True))
    except ServiceError as exc:
        raise http_error_from(exc) from exc


# Declared before "/{lesson_id}" so "reorder" is not captured as an id.
@router.put("/reorder", response_model=List[lesson_schema.LessonRead])
def reorder_lessons(
    course_id: str,
    reorder_in: lesson_schema.LessonReorderIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return LessonService(db, current_user).reorder(course_id, reorder_in.lesson_ids)
    except ServiceError as exc:
        raise http_error_from(exc) from exc


@router.get("/{lesson_id}", response_model=lesson_schema.LessonRead)
def get_lesson(course_id: str, lesson_id: str, db: Session = Depends(get_db)):
    try:
        return LessonService(db).get_lesson(course_id, lesson_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc


@router.put("/{lesson_id}", response_model=lesson_schema.LessonRead)
def update_lesson(
    course_id: str,
    lesson_id: str,
    lesson_in: lesson_schema.LessonUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return LessonService(db, current_user).update_lesson(
            course_id, lesson_id, lesson_in.model_dump(exclude_unset=True)
        )
    except ServiceError as exc:
        raise http_error_from(exc) from exc


@router.delete("/{lesson_id}")
def delete_lesson(
    course_id: str,
    lesson_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        LessonService(db, current_user).delete_lesson(course_id, lesson_id)
    except ServiceError as exc:
        raise http_error_from(exc) from exc
    return {"message": "Lesson deleted successfully", "id": lesson_id}
