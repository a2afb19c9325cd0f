from decimal import Decimal

import pytest

from app.core.permissions import Role
from app.crud import course_crud, enrollment_crud
from app.models.course.course_model import Course
from app.models.course.enrollment_model import EnrollmentStatus
from app.models.course.lesson_model import Lesson
from app.models.progress.lesson_progress_model import LessonProgress
from app.services.course_service import CourseService, validate_course_data
from app.services.errors import ForbiddenError, InvalidInputError, NotFoundError
from tests.utils import create_course, create_instructor, create_lessons, create_user, enroll


def test_validation_collects_every_error():
    errors = validate_course_data({"title": "ab", "description": "x" * 5001, "price": "-1"})

    assert len(errors) == 3


def test_validation_on_update_only_checks_sent_fields():
    assert validate_course_data({"price": "12.50"}, is_update=True) == []
    assert validate_course_data({"price": "1000000"}, is_update=True) == ["Price must not exceed 999999.99"]


def test_create_course_defaults(db_session):
    instructor = create_instructor(db_session)

    course = CourseService(db_session, instructor).create_course({"title": "  Django avancé  "})

    assert course.title == "Django avancé"
    assert course.instructor_id == instructor.id
    assert course.is_free is True
    assert course.price == Decimal("0.00")
    assert course.is_published is False


def test_create_paid_course(db_session):
    instructor = create_instructor(db_session)

    course = CourseService(db_session, instructor).create_course({"title": "Paid course", "price": Decimal("49.90")})

    assert course.is_free is False
    assert course.price == Decimal("49.90")


def test_learner_cannot_create_course(db_session):
    learner = create_user(db_session)

    with pytest.raises(ForbiddenError) as exc_info:
        CourseService(db_session, learner).create_course({"title": "Nope"})

    assert exc_info.value.code == "insufficient_permissions"


def test_invalid_course_reports_errors(db_session):
    instructor = create_instructor(db_session)

    with pytest.raises(InvalidInputError) as exc_info:
        CourseService(db_session, instructor).create_course({"title": "x"})

    assert exc_info.value.code == "invalid_course"
    assert exc_info.value.details["errors"] == ["Title must be at least 3 characters"]


def test_update_course_by_other_instructor_is_forbidden(db_session):
    owner = create_instructor(db_session)
    other = create_instructor(db_session)
    course = create_course(db_session, owner)

    with pytest.raises(ForbiddenError) as exc_info:
        CourseService(db_session, other).update_course(course.id, {"title": "Hijacked"})

    assert exc_info.value.code == "not_resource_owner"


def test_update_unknown_course_is_not_found(db_session):
    instructor = create_instructor(db_session)

    with pytest.raises(NotFoundError):
        CourseService(db_session, instructor).update_course("missing", {"title": "Whatever"})


def test_setting_course_free_resets_price(db_session):
    owner = create_instructor(db_session)
    course = create_course(db_session, owner, is_free=False, price=Decimal("20.00"))

    updated = CourseService(db_session, owner).update_course(course.id, {"is_free": True})

    assert updated.is_free is True
    assert updated.price == Decimal("0.00")


def test_delete_published_course_with_learners_is_soft(db_session):
    owner = create_instructor(db_session)
    course = create_course(db_session, owner, is_published=True)
    enroll(db_session, create_user(db_session), course)

    soft_deleted = CourseService(db_session, owner).delete_course(course.id)

    assert soft_deleted is True
    stored = course_crud.get_course(db_session, course.id)
    assert stored.deleted_at is not None
    assert stored.is_published is False
    assert course_crud.get_active_course(db_session, course.id) is None


def test_delete_course_without_learners_is_permanent(db_session):
    owner = create_instructor(db_session)
    course = create_course(db_session, owner)
    create_lessons(db_session, course, ["One", "Two"])

    soft_deleted = CourseService(db_session, owner).delete_course(course.id)

    assert soft_deleted is False
    assert db_session.get(Course, course.id) is None
    assert db_session.query(Lesson).count() == 0


def test_admin_can_delete_any_course(db_session):
    course = create_course(db_session, create_instructor(db_session), is_published=False)
    admin = create_user(db_session, role=Role.ADMIN)
    learner = create_user(db_session)
    lesson = create_lessons(db_session, course, ["Only"])[0]
    db_session.add(LessonProgress(user_id=learner.id, lesson_id=lesson.id, course_id=course.id, completed=True))
    db_session.commit()

    assert CourseService(db_session, admin).delete_course(course.id) is False
    assert db_session.query(LessonProgress).count() == 0


def test_course_detail_reports_viewer_enrollment(db_session):
    course = create_course(db_session, create_instructor(db_session))
    learner = create_user(db_session)
    enroll(db_session, learner, course)
    enroll(db_session, create_user(db_session), course)

    detail = CourseService(db_session, learner).build_course_detail(course.id)
    anonymous = CourseService(db_session, None).build_course_detail(course.id)

    assert detail["enrollment_count"] == 2
    assert detail["user_enrollment_status"] == EnrollmentStatus.ACTIVE
    assert detail["is_enrolled"] is True
    assert anonymous["is_enrolled"] is False
    assert anonymous["user_enrollment_status"] is None


def test_list_courses_filters_and_paginates(db_session):
    instructor = create_instructor(db_session)
    for index in range(3):
        create_course(db_session, instructor, title=f"Python {index}")
    create_course(db_session, instructor, title="Draft", is_published=False)
    create_course(db_session, instructor, title="Rust", is_free=False, price=Decimal("10.00"))

    result = course_crud.list_courses(
        db_session, page=1, limit=2, search="python", is_published=True, sort_by="title", sort_order="asc"
    )

    assert [course.title for course in result["items"]] == ["Python 0", "Python 1"]
    assert result["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "total_pages": 2,
        "has_next": True,
        "has_prev": False,
    }
    paid = course_crud.list_courses(db_session, is_free=False)
    assert [course.title for course in paid["items"]] == ["Rust"]


def test_list_courses_clamps_pagination(db_session):
    result = course_crud.list_courses(db_session, page=0, limit=1000, sort_by="unknown")

    assert result["pagination"]["page"] == 1
    assert result["pagination"]["limit"] == course_crud.MAX_PAGE_SIZE
    assert result["pagination"]["total_pages"] == 0


def test_list_instructor_courses_hides_deleted_unless_asked(db_session):
    instructor = create_instructor(db_session)
    create_course(db_session, instructor, title="Kept")
    archived = create_course(db_session, instructor, title="Archived")
    enroll(db_session, create_user(db_session), archived)
    CourseService(db_session, instructor).delete_course(archived.id)
    create_course(db_session, create_instructor(db_session), title="Someone else's")

    visible = course_crud.list_instructor_courses(db_session, instructor.id)
    everything = course_crud.list_instructor_courses(db_session, instructor.id, include_deleted=True)

    assert [course.title for course in visible["items"]] == ["Kept"]
    assert {course.title for course in everything["items"]} == {"Kept", "Archived"}


def test_enroll_is_idempotent(db_session):
    course = create_course(db_session, create_instructor(db_session))
    learner = create_user(db_session)

    first, created = enrollment_crud.enroll(db_session, learner, course.id)
    second, created_again = enrollment_crud.enroll(db_session, learner, course.id)

    assert created is True
    assert created_again is False
    assert first.id == second.id


def test_enroll_requires_published_course(db_session):
    course = create_course(db_session, create_instructor(db_session), is_published=False)

    with pytest.raises(ForbiddenError) as exc_info:
        enrollment_crud.enroll(db_session, create_user(db_session), course.id)

    assert exc_info.value.code == "course_not_published"
