from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LessonCreate(BaseModel):
    title: str
    content_text: Optional[str] = None
    youtube_url: Optional[str] = None
    # Absent: the lesson is appended at the end of the course.
    order_index: Optional[int] = None


class LessonUpdate(BaseModel):
    """Partial update; only the fields actually sent are applied."""

    title: Optional[str] = None
    content_text: Optional[str] = None
    youtube_url: Optional[str] = None
    order_index: Optional[int] = None


class LessonRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    course_id: str
    title: str
    content_text: Optional[str] = None
    youtube_video_id: Optional[str] = None
    embed_url: Optional[str] = None
    order_index: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LessonReorderIn(BaseModel):
    lesson_ids: List[str] = Field(default_factory=list)
