import pytest
from fastapi import HTTPException

from app.api.v1.endpoints import lesson_router
from app.schemas.course.lesson_schema import LessonCreate, LessonReorderIn, LessonUpdate
from tests.utils import create_course, create_instructor, create_lessons, create_user, lesson_order


@pytest.fixture()
def owner(db_session):
    return create_instructor(db_session)


@pytest.fixture()
def course(db_session, owner):
    return create_course(db_session, owner)


def test_create_lesson_at_position(db_session, owner, course):
    create_lessons(db_session, course, ["A", "B"])

    lesson = lesson_router.create_lesson(
        course_id=course.id,
        lesson_in=LessonCreate(title="Between", order_index=1),
        db=db_session,
        current_user=owner,
    )

    assert lesson.order_index == 1
    assert lesson_order(db_session, course) == [("A", 0), ("Between", 1), ("B", 2)]


def test_create_lesson_out_of_range_is_400(db_session, owner, course):
    with pytest.raises(HTTPException) as exc_info:
        lesson_router.create_lesson(
            course_id=course.id,
            lesson_in=LessonCreate(title="Far away", order_index=5),
            db=db_session,
            current_user=owner,
        )

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == {"code": "order_index_out_of_range", "max_index": 0}


def test_update_without_order_index_keeps_position(db_session, owner, course):
    a, b = create_lessons(db_session, course, ["A", "B"])

    lesson = lesson_router.update_lesson(
        course_id=course.id,
        lesson_id=b.id,
        lesson_in=LessonUpdate(content_text="Texte du cours"),
        db=db_session,
        current_user=owner,
    )

    assert lesson.order_index == 1
    assert lesson.content_text == "Texte du cours"


def test_update_with_order_index_moves_lesson(db_session, owner, course):
    a, b, c = create_lessons(db_session, course, ["A", "B", "C"])

    lesson_router.update_lesson(
        course_id=course.id,
        lesson_id=a.id,
        lesson_in=LessonUpdate(order_index=2),
        db=db_session,
        current_user=owner,
    )

    assert lesson_order(db_session, course) == [("B", 0), ("C", 1), ("A", 2)]


def test_reorder_route_returns_new_order(db_session, owner, course):
    a, b = create_lessons(db_session, course, ["A", "B"])

    lessons = lesson_router.reorder_lessons(
        course_id=course.id,
        reorder_in=LessonReorderIn(lesson_ids=[b.id, a.id]),
        db=db_session,
        current_user=owner,
    )

    assert [lesson.title for lesson in lessons] == ["B", "A"]


def test_reorder_route_reports_invalid_ids(db_session, owner, course):
    (a,) = create_lessons(db_session, course, ["A"])

    with pytest.raises(HTTPException) as exc_info:
        lesson_router.reorder_lessons(
            course_id=course.id,
            reorder_in=LessonReorderIn(lesson_ids=[a.id, "ghost"]),
            db=db_session,
            current_user=owner,
        )

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == "invalid_lesson_ids"
    assert exc_info.value.detail["invalid_ids"] == ["ghost"]


def test_delete_lesson_by_learner_is_forbidden(db_session, course):
    (a,) = create_lessons(db_session, course, ["A"])

    with pytest.raises(HTTPException) as exc_info:
        lesson_router.delete_lesson(
            course_id=course.id, lesson_id=a.id, db=db_session, current_user=create_user(db_session)
        )

    assert exc_info.value.status_code == 403


def test_delete_lesson_compacts_order(db_session, owner, course):
    a, b, c = create_lessons(db_session, course, ["A", "B", "C"])

    payload = lesson_router.delete_lesson(course_id=course.id, lesson_id=a.id, db=db_session, current_user=owner)

    assert payload["id"] == a.id
    assert lesson_order(db_session, course) == [("B", 0), ("C", 1)]


def test_get_lesson_of_unknown_course_is_404(db_session):
    with pytest.raises(HTTPException) as exc_info:
        lesson_router.get_lesson(course_id="missing", lesson_id="missing", db=db_session)

    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "course_not_found"
