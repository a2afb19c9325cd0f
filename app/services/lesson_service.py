"""Lesson ordering within a course.

Lessons of a course always carry the dense positions ``0..N-1``. Every write
below keeps that property: inserting opens a slot, moving shifts the range
between the old and the new position, deleting closes the gap and reordering
only accepts a full permutation of the course's lessons.

Each write runs in a single transaction that starts by locking the course row,
so two writers on the same course cannot interleave their index shifts.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Optional, Sequence

from sqlalchemy import delete, func, update
from sqlalchemy.orm import Session

from app.core.permissions import Capability, require_capability
from app.crud import course_crud
from app.models.course.course_model import Course
from app.models.course.lesson_model import Lesson
from app.models.progress.lesson_progress_model import LessonProgress
from app.models.user.user_model import User
from app.services.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
CONTENT_TEXT_MAX_LENGTH = 50000

YOUTUBE_REGEX = re.compile(
    r"^(?:https?://)?(?:www\.)?"
    r"(?:youtube\.com/(?:watch\?v=|embed/|v/)|youtu\.be/)"
    r"([a-zA-Z0-9_-]{11})(?:\S*)?$"
)


def extract_youtube_video_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = YOUTUBE_REGEX.match(url)
    return match.group(1) if match else None


def validate_lesson_data(data: Mapping[str, Any], *, is_update: bool = False) -> list[str]:
    """Collect every validation error for a lesson payload (partial on update)."""

    errors: list[str] = []

    if not is_update or "title" in data:
        title = data.get("title")
        if not title or not isinstance(title, str):
            errors.append("Title is required")
        elif len(title.strip()) < TITLE_MIN_LENGTH:
            errors.append(f"Title must be at least {TITLE_MIN_LENGTH} characters")
        elif len(title.strip()) > TITLE_MAX_LENGTH:
            errors.append(f"Title must not exceed {TITLE_MAX_LENGTH} characters")

    youtube_url = data.get("youtube_url")
    if youtube_url and not extract_youtube_video_id(youtube_url):
        errors.append("Invalid YouTube URL. Supported formats: youtube.com/watch?v=ID, youtu.be/ID")

    content_text = data.get("content_text")
    if content_text is not None:
        if not isinstance(content_text, str):
            errors.append("Content text must be a string")
        elif len(content_text) > CONTENT_TEXT_MAX_LENGTH:
            errors.append(f"Content text must not exceed {CONTENT_TEXT_MAX_LENGTH} characters")

    order_index = data.get("order_index")
    if order_index is not None:
        if isinstance(order_index, bool) or not isinstance(order_index, int) or order_index < 0:
            errors.append("Order index must be a non-negative integer")

    return errors


class LessonService:
    """Lesson CRUD for a course, keeping ``order_index`` dense."""

    def __init__(self, db: Session, user: User | None = None):
        self.db = db
        self.user = user

    # ------------------------------------------------------------------
    # Lecture
    # ------------------------------------------------------------------
    def list_lessons(self, course_id: str) -> list[Lesson]:
        course = self._get_course(course_id)
        return self._course_lessons(course.id)

    def get_lesson(self, course_id: str, lesson_id: str) -> Lesson:
        course = self._get_course(course_id)
        return self._get_course_lesson(course.id, lesson_id)

    # ------------------------------------------------------------------
    # Écriture
    # ------------------------------------------------------------------
    def insert_lesson(self, course_id: str, data: Mapping[str, Any]) -> Lesson:
        """Create a lesson at ``data["order_index"]`` or, when absent, at the end."""

        errors = validate_lesson_data(data)
        with self._atomic():
            course = self._lock_manageable_course(course_id)
            if errors:
                raise InvalidInputError("invalid_lesson", details={"errors": errors})

            desired_index = data.get("order_index")
            if desired_index is None:
                new_index = self._max_index(course.id) + 1
            else:
                lesson_count = self._count(course.id)
                if desired_index > lesson_count:
                    raise InvalidInputError("order_index_out_of_range", details={"max_index": lesson_count})
                # Indices only grow here, so no two rows can collide mid-update.
                self._shift(course.id, 1, Lesson.order_index >= desired_index)
                new_index = desired_index

            lesson = Lesson(
                course_id=course.id,
                title=data["title"].strip(),
                youtube_video_id=extract_youtube_video_id(data.get("youtube_url")),
                content_text=(data.get("content_text") or "").strip() or None,
                order_index=new_index,
            )
            self.db.add(lesson)

        self.db.refresh(lesson)
        logger.info("Lesson %s inserted in course %s at index %s", lesson.id, course_id, new_index)
        return lesson

    def update_lesson(self, course_id: str, lesson_id: str, data: Mapping[str, Any]) -> Lesson:
        """Partially update a lesson; a new ``order_index`` moves it within the course."""

        errors = validate_lesson_data(data, is_update=True)
        with self._atomic():
            course = self._lock_manageable_course(course_id)
            lesson = self._get_course_lesson(course.id, lesson_id)
            if errors:
                raise InvalidInputError("invalid_lesson", details={"errors": errors})

            new_index = data.get("order_index")
            moving = new_index is not None and new_index != lesson.order_index
            if moving:
                last_index = self._count(course.id) - 1
                if new_index > last_index:
                    raise InvalidInputError("order_index_out_of_range", details={"max_index": last_index})

            if "title" in data:
                lesson.title = data["title"].strip()
            if "youtube_url" in data:
                lesson.youtube_video_id = extract_youtube_video_id(data["youtube_url"])
            if "content_text" in data:
                lesson.content_text = (data["content_text"] or "").strip() or None
            if moving:
                self._move(course.id, lesson, new_index)

        self.db.refresh(lesson)
        return lesson

    def move_lesson(self, course_id: str, lesson_id: str, new_index: int) -> Lesson:
        return self.update_lesson(course_id, lesson_id, {"order_index": new_index})

    def delete_lesson(self, course_id: str, lesson_id: str) -> None:
        """Delete a lesson and its progress records, then close the gap it leaves."""

        with self._atomic():
            course = self._lock_manageable_course(course_id)
            lesson = self._get_course_lesson(course.id, lesson_id)
            deleted_index = lesson.order_index

            self.db.execute(delete(LessonProgress).where(LessonProgress.lesson_id == lesson.id))
            self.db.delete(lesson)
            self.db.flush()
            self._shift(course.id, -1, Lesson.order_index > deleted_index)

        logger.info("Lesson %s deleted from course %s (index %s)", lesson_id, course_id, deleted_index)

    def reorder(self, course_id: str, lesson_ids: Sequence[str]) -> list[Lesson]:
        """Assign ``order_index = position`` following ``lesson_ids``.

        The list must name each lesson of the course exactly once; unknown,
        repeated and missing ids are all reported before anything is written.
        """

        if not lesson_ids:
            raise InvalidInputError("lesson_ids_required")

        with self._atomic():
            course = self._lock_manageable_course(course_id)
            lessons = self._course_lessons(course.id)
            by_id = {lesson.id: lesson for lesson in lessons}

            invalid_ids: list[str] = []
            duplicate_ids: list[str] = []
            seen: set[str] = set()
            for lesson_id in lesson_ids:
                if lesson_id not in by_id:
                    if lesson_id not in invalid_ids:
                        invalid_ids.append(lesson_id)
                elif lesson_id in seen:
                    if lesson_id not in duplicate_ids:
                        duplicate_ids.append(lesson_id)
                seen.add(lesson_id)
            missing_ids = [lesson.id for lesson in lessons if lesson.id not in seen]

            if invalid_ids:
                raise InvalidInputError(
                    "invalid_lesson_ids",
                    details={"invalid_ids": invalid_ids, "duplicate_ids": duplicate_ids, "missing_ids": missing_ids},
                )
            if duplicate_ids or missing_ids:
                raise InvalidInputError(
                    "incomplete_lesson_order",
                    details={"duplicate_ids": duplicate_ids, "missing_ids": missing_ids},
                )

            for position, lesson_id in enumerate(lesson_ids):
                by_id[lesson_id].order_index = position

        logger.info("Course %s lessons reordered (%s lessons)", course_id, len(lesson_ids))
        return self._course_lessons(course_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _atomic(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _get_course(self, course_id: str) -> Course:
        course = course_crud.get_active_course(self.db, course_id)
        if course is None:
            raise NotFoundError("course_not_found")
        return course

    def _lock_manageable_course(self, course_id: str) -> Course:
        course = course_crud.get_active_course(self.db, course_id, for_update=True)
        if course is None:
            raise NotFoundError("course_not_found")
        require_capability(self.user, Capability.MANAGE_COURSE, owner_id=course.instructor_id)
        return course

    def _get_course_lesson(self, course_id: str, lesson_id: str) -> Lesson:
        lesson = (
            self.db.query(Lesson)
            .filter(Lesson.id == lesson_id, Lesson.course_id == course_id)
            .first()
        )
        if lesson is None:
            raise NotFoundError("lesson_not_found")
        return lesson

    def _course_lessons(self, course_id: str) -> list[Lesson]:
        return (
            self.db.query(Lesson)
            .filter(Lesson.course_id == course_id)
            .order_by(Lesson.order_index.asc())
            .all()
        )

    def _count(self, course_id: str) -> int:
        return int(self.db.query(func.count(Lesson.id)).filter(Lesson.course_id == course_id).scalar() or 0)

    def _max_index(self, course_id: str) -> int:
        return int(
            self.db.query(func.coalesce(func.max(Lesson.order_index), -1))
            .filter(Lesson.course_id == course_id)
            .scalar()
        )

    def _shift(self, course_id: str, delta: int, *criteria) -> None:
        self.db.execute(
            update(Lesson)
            .where(Lesson.course_id == course_id, *criteria)
            .values(order_index=Lesson.order_index + delta)
        )

    def _move(self, course_id: str, lesson: Lesson, new_index: int) -> None:
        old_index = lesson.order_index
        if new_index > old_index:
            self._shift(
                course_id,
                -1,
                Lesson.order_index > old_index,
                Lesson.order_index <= new_index,
            )
        else:
            self._shift(
                course_id,
                1,
                Lesson.order_index >= new_index,
                Lesson.order_index < old_index,
            )
        lesson.order_index = new_index
