from __future__ import annotations

import logging
import math

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.crud import course_crud, enrollment_crud
from app.models.course.enrollment_model import EnrollmentStatus
from app.models.course.lesson_model import Lesson
from app.models.progress.lesson_progress_model import LessonProgress
from app.services.errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def completion_percentage(completed: int, total: int) -> int:
    """Round ``completed / total`` to the nearest whole percent, halves rounding up."""
    if total <= 0:
        return 0
    return int(math.floor(completed / total * 100 + 0.5))


class ProgressService:
    """Lesson completion for one learner, gated by their enrollment."""

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def mark_complete(self, lesson_id: str) -> tuple[LessonProgress, bool]:
        """Mark a lesson as completed.

        Returns ``(progress, newly_completed)``. A lesson that is already
        completed is returned untouched and nothing is written.
        """

        lesson = self.db.get(Lesson, lesson_id)
        if lesson is None:
            raise NotFoundError("lesson_not_found")

        course = course_crud.get_active_course(self.db, lesson.course_id)
        if course is None:
            raise NotFoundError("course_not_found")

        enrollment = enrollment_crud.get_enrollment(
            self.db, self.user_id, course.id, status=EnrollmentStatus.ACTIVE
        )
        if enrollment is None:
            raise ForbiddenError("enrollment_required")

        progress = self.db.get(LessonProgress, (self.user_id, lesson.id))
        if progress is not None and progress.completed:
            return progress, False

        try:
            if progress is None:
                progress = LessonProgress(
                    user_id=self.user_id,
                    lesson_id=lesson.id,
                    course_id=course.id,
                    completed=True,
                    progress_pct=100,
                )
                self.db.add(progress)
            else:
                progress.completed = True
                progress.progress_pct = 100
            self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the same (user, lesson) row first.
            self.db.rollback()
            progress = self.db.get(LessonProgress, (self.user_id, lesson_id))
            if progress is None or not progress.completed:
                raise
            return progress, False
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(progress)
        logger.info("User %s completed lesson %s", self.user_id, lesson_id)
        return progress, True

    def get_course_progress(self, course_id: str) -> dict:
        """Summarise the learner's completion of a course.

        Only lessons currently in the course are counted; progress records left
        behind by lessons removed from the course are ignored.
        """

        course = course_crud.get_active_course(self.db, course_id)
        if course is None:
            raise NotFoundError("course_not_found")

        enrollment = enrollment_crud.get_enrollment(self.db, self.user_id, course.id)
        if enrollment is None:
            raise ForbiddenError("enrollment_required")

        lessons = (
            self.db.query(Lesson)
            .filter(Lesson.course_id == course.id)
            .order_by(Lesson.order_index.asc())
            .all()
        )
        summary = {
            "course_id": course.id,
            "total_lessons": len(lessons),
            "completed_lessons": 0,
            "completion_percentage": 0,
            "enrollment_status": enrollment.status,
            "lessons_progress": [],
        }
        if not lessons:
            return summary

        records = (
            self.db.query(LessonProgress)
            .filter(
                LessonProgress.user_id == self.user_id,
                LessonProgress.lesson_id.in_([lesson.id for lesson in lessons]),
            )
            .all()
        )
        progress_by_lesson = {record.lesson_id: record for record in records}
        completed_lessons = sum(1 for record in records if record.completed)

        summary["completed_lessons"] = completed_lessons
        summary["completion_percentage"] = completion_percentage(completed_lessons, len(lessons))
        for lesson in lessons:
            record = progress_by_lesson.get(lesson.id)
            summary["lessons_progress"].append(
                {
                    "lesson_id": lesson.id,
                    "title": lesson.title,
                    "order_index": lesson.order_index,
                    "completed": bool(record and record.completed),
                    "progress_pct": record.progress_pct if record else 0,
                }
            )
        return summary
