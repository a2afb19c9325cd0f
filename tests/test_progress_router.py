import pytest
from fastapi import HTTPException

from app.api.v1.endpoints import progress_router
from tests.utils import create_course, create_instructor, create_lessons, create_user, enroll


@pytest.fixture()
def course(db_session):
    return create_course(db_session, create_instructor(db_session))


def test_complete_lesson_messages(db_session, course):
    (lesson,) = create_lessons(db_session, course, ["Intro"])
    learner = create_user(db_session)
    enroll(db_session, learner, course)

    first = progress_router.complete_lesson(lesson_id=lesson.id, db=db_session, current_user=learner)
    second = progress_router.complete_lesson(lesson_id=lesson.id, db=db_session, current_user=learner)

    assert first.message == "Lesson marked as complete"
    assert second.message == "Lesson already completed"
    assert second.progress.completed is True


def test_complete_lesson_without_enrollment_is_403(db_session, course):
    (lesson,) = create_lessons(db_session, course, ["Intro"])

    with pytest.raises(HTTPException) as exc_info:
        progress_router.complete_lesson(lesson_id=lesson.id, db=db_session, current_user=create_user(db_session))

    assert exc_info.value.status_code == 403
    assert exc_info.value.detail == "enrollment_required"


def test_complete_unknown_lesson_is_404(db_session):
    with pytest.raises(HTTPException) as exc_info:
        progress_router.complete_lesson(lesson_id="missing", db=db_session, current_user=create_user(db_session))

    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "lesson_not_found"


def test_course_progress_summary(db_session, course):
    lessons = create_lessons(db_session, course, ["One", "Two", "Three"])
    learner = create_user(db_session)
    enroll(db_session, learner, course)
    progress_router.complete_lesson(lesson_id=lessons[1].id, db=db_session, current_user=learner)

    summary = progress_router.get_course_progress(course_id=course.id, db=db_session, current_user=learner)

    assert summary.total_lessons == 3
    assert summary.completed_lessons == 1
    assert summary.completion_percentage == 33
    assert [item.completed for item in summary.lessons_progress] == [False, True, False]
