from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.crud import course_crud
from app.models.course.enrollment_model import Enrollment, EnrollmentStatus
from app.models.user.user_model import User
from app.services.errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)


def get_enrollment(
    db: Session,
    user_id: str,
    course_id: str,
    status: Optional[EnrollmentStatus] = None,
) -> Optional[Enrollment]:
    query = db.query(Enrollment).filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
    if status is not None:
        query = query.filter(Enrollment.status == status)
    return query.first()


def count_enrollments(db: Session, course_id: str) -> int:
    return int(
        db.query(func.count(Enrollment.id)).filter(Enrollment.course_id == course_id).scalar() or 0
    )


def enroll(db: Session, user: User, course_id: str) -> tuple[Enrollment, bool]:
    """Inscrit ``user`` au cours. Retourne ``(enrollment, created)``."""

    course = course_crud.get_active_course(db, course_id)
    if course is None:
        raise NotFoundError("course_not_found")
    if not course.is_published:
        raise ForbiddenError("course_not_published")

    existing = get_enrollment(db, user.id, course.id)
    if existing is not None:
        return existing, False

    enrollment = Enrollment(user_id=user.id, course_id=course.id, status=EnrollmentStatus.ACTIVE)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    logger.info("User %s enrolled in course %s", user.id, course.id)
    return enrollment, True
