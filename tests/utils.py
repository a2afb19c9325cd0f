"""Utility helpers for test factories."""

from __future__ import annotations

from decimal import Decimal
from itertools import count

from app.core.permissions import Role
from app.models.course.course_model import Course
from app.models.course.enrollment_model import Enrollment, EnrollmentStatus
from app.models.course.lesson_model import Lesson
from app.models.user.user_model import User

_sequence = count(1)


def create_user(db, *, role: Role = Role.LEARNER, **kwargs) -> User:
    number = next(_sequence)
    defaults = {
        "name": f"User {number}",
        "email": f"user{number}@example.com",
        "hashed_password": "x",
        "role": role,
    }
    defaults.update(kwargs)
    user = User(**defaults)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_instructor(db, **kwargs) -> User:
    return create_user(db, role=Role.INSTRUCTOR, **kwargs)


def create_course(db, instructor: User, **kwargs) -> Course:
    defaults = {
        "instructor_id": instructor.id,
        "title": "Introduction à Python",
        "description": None,
        "price": Decimal("0.00"),
        "is_free": True,
        "is_published": True,
    }
    defaults.update(kwargs)
    course = Course(**defaults)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def create_lessons(db, course: Course, titles: list[str]) -> list[Lesson]:
    """Append lessons with dense indices after the course's existing ones."""

    start = len(course.lessons)
    lessons = [
        Lesson(course_id=course.id, title=title, order_index=start + offset)
        for offset, title in enumerate(titles)
    ]
    db.add_all(lessons)
    db.commit()
    for lesson in lessons:
        db.refresh(lesson)
    db.expire(course, ["lessons"])
    return lessons


def enroll(db, user: User, course: Course, status: EnrollmentStatus = EnrollmentStatus.ACTIVE) -> Enrollment:
    enrollment = Enrollment(user_id=user.id, course_id=course.id, status=status)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment


def lesson_order(db, course: Course) -> list[tuple[str, int]]:
    """Return ``(title, order_index)`` pairs as stored, sorted by index."""

    db.expire_all()
    rows = db.query(Lesson).filter(Lesson.course_id == course.id).order_by(Lesson.order_index).all()
    return [(lesson.title, lesson.order_index) for lesson in rows]
