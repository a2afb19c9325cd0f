import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base_class import Base

if TYPE_CHECKING:
    from .course_model import Course

YOUTUBE_EMBED_URL = "https://www.youtube.com/embed/{video_id}"


class Lesson(Base):
    """Leçon d'un cours, positionnée par ``order_index`` (0..N-1, sans trou)."""

    __tablename__ = "lessons"
    # Not unique: index shifts are issued as a single UPDATE which may
    # transiently hold duplicates while rows are rewritten.
    __table_args__ = (Index("ix_lessons_course_order", "course_id", "order_index"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id: Mapped[str] = mapped_column(String(36), ForeignKey("courses.id"), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    youtube_video_id: Mapped[Optional[str]] = mapped_column(String(11), nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    course: Mapped["Course"] = relationship(back_populates="lessons")

    @property
    def embed_url(self) -> Optional[str]:
        if not self.youtube_video_id:
            return None
        return YOUTUBE_EMBED_URL.format(video_id=self.youtube_video_id)

    def __repr__(self):
        return f"<Lesson(id={self.id}, title='{self.title}', order_index={self.order_index})>"
