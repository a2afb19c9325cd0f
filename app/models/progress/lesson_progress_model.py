from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from ..user.user_model import User
    from ..course.course_model import Course


class LessonProgress(Base):
    """Avancement d'un utilisateur sur une leçon.

    ``course_id`` is denormalised for course-scoped queries. A record may
    outlive its lesson's membership in the course; readers must filter on the
    course's current lessons.
    """

    __tablename__ = "lesson_progress"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), primary_key=True)
    lesson_id: Mapped[str] = mapped_column(String(36), ForeignKey("lessons.id"), primary_key=True)
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), index=True, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    progress_pct: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped["User"] = relationship(back_populates="lesson_progress")
    course: Mapped["Course"] = relationship(back_populates="lesson_progress")
