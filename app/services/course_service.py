from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.permissions import Capability, require_capability
from app.crud import course_crud, enrollment_crud
from app.models.course.course_model import Course
from app.models.user.user_model import User
from app.services.errors import InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 5000
MIN_PRICE = Decimal("0")
MAX_PRICE = Decimal("999999.99")
FREE_PRICE = Decimal("0.00")


def validate_course_data(data: Mapping[str, Any], *, is_update: bool = False) -> list[str]:
    """Collect every validation error for a course payload (partial on update)."""

    errors: list[str] = []

    if not is_update or "title" in data:
        title = data.get("title")
        if not title or not isinstance(title, str):
            errors.append("Title is required")
        elif len(title.strip()) < TITLE_MIN_LENGTH:
            errors.append(f"Title must be at least {TITLE_MIN_LENGTH} characters")
        elif len(title.strip()) > TITLE_MAX_LENGTH:
            errors.append(f"Title must not exceed {TITLE_MAX_LENGTH} characters")

    description = data.get("description")
    if description is not None:
        if not isinstance(description, str):
            errors.append("Description must be a string")
        elif len(description) > DESCRIPTION_MAX_LENGTH:
            errors.append(f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters")

    if data.get("price") is not None:
        price = _parse_price(data["price"])
        if price is None:
            errors.append("Price must be a valid number")
        elif price < MIN_PRICE:
            errors.append(f"Price must be at least {MIN_PRICE}")
        elif price > MAX_PRICE:
            errors.append(f"Price must not exceed {MAX_PRICE}")

    return errors


def _parse_price(value: Any) -> Optional[Decimal]:
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return price if price.is_finite() else None


def _raise_if_invalid(errors: list[str]) -> None:
    if errors:
        raise InvalidInputError("invalid_course", details={"errors": errors})


class CourseService:
    """Course lifecycle: creation, partial updates and (soft) deletion."""

    def __init__(self, db: Session, user: User | None):
        self.db = db
        self.user = user

    def create_course(self, data: Mapping[str, Any]) -> Course:
        require_capability(self.user, Capability.CREATE_COURSE)
        _raise_if_invalid(validate_course_data(data))

        price = _parse_price(data["price"]) if data.get("price") is not None else None
        is_free = data.get("is_free")
        if is_free is None:
            is_free = price is None or price == 0

        course = Course(
            instructor_id=self.user.id,
            title=data["title"].strip(),
            description=(data.get("description") or "").strip() or None,
            price=FREE_PRICE if is_free else (price or FREE_PRICE),
            is_free=is_free,
            is_published=bool(data.get("is_published", False)),
        )
        self.db.add(course)
        self.db.commit()
        self.db.refresh(course)
        logger.info("Course %s created by %s", course.id, self.user.id)
        return course

    def get_manageable_course(self, course_id: str, *, for_update: bool = False) -> Course:
        """Return a non-deleted course the current user may manage."""

        course = course_crud.get_active_course(self.db, course_id, for_update=for_update)
        if course is None:
            raise NotFoundError("course_not_found")
        require_capability(self.user, Capability.MANAGE_COURSE, owner_id=course.instructor_id)
        return course

    def update_course(self, course_id: str, data: Mapping[str, Any]) -> Course:
        course = self.get_manageable_course(course_id)
        _raise_if_invalid(validate_course_data(data, is_update=True))

        if "title" in data:
            course.title = data["title"].strip()
        if "description" in data:
            course.description = (data["description"] or "").strip() or None
        if data.get("price") is not None:
            course.price = _parse_price(data["price"])
        if data.get("is_free") is not None:
            course.is_free = data["is_free"]
            if course.is_free:
                course.price = FREE_PRICE
        if data.get("is_published") is not None:
            course.is_published = data["is_published"]

        self.db.commit()
        self.db.refresh(course)
        return course

    def delete_course(self, course_id: str) -> bool:
        """Delete a course; return ``True`` when only a soft delete was applied.

        A published course that already has learners is kept (unpublished and
        marked deleted) so their enrollments and progress stay readable.
        """

        course = self.get_manageable_course(course_id)
        has_enrollments = enrollment_crud.count_enrollments(self.db, course.id) > 0

        if course.is_published and has_enrollments:
            course.deleted_at = datetime.now(timezone.utc)
            course.is_published = False
            self.db.commit()
            logger.info("Course %s soft deleted", course.id)
            return True

        self.db.delete(course)
        self.db.commit()
        logger.info("Course %s permanently deleted", course_id)
        return False

    def build_course_detail(self, course_id: str) -> dict:
        """Serialize a public course with its enrollment figures for the viewer."""

        course = course_crud.get_active_course(self.db, course_id)
        if course is None:
            raise NotFoundError("course_not_found")

        enrollment_status = None
        if self.user is not None:
            enrollment = enrollment_crud.get_enrollment(self.db, self.user.id, course.id)
            enrollment_status = enrollment.status if enrollment else None

        return {
            "course": course,
            "enrollment_count": enrollment_crud.count_enrollments(self.db, course.id),
            "user_enrollment_status": enrollment_status,
            "is_enrolled": enrollment_status is not None,
        }
