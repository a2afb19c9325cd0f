# Fichier: backend/app/crud/course_crud.py

from __future__ import annotations

import math
from typing import Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query, Session, joinedload

from app.models.course.course_model import Course

SORTABLE_FIELDS = {
    "created_at": Course.created_at,
    "title": Course.title,
    "price": Course.price,
    "updated_at": Course.updated_at,
}
MAX_PAGE_SIZE = 100


def get_course(db: Session, course_id: str) -> Optional[Course]:
    """Retourne un cours, y compris supprimé logiquement."""
    return db.get(Course, course_id)


def get_active_course(db: Session, course_id: str, *, for_update: bool = False) -> Optional[Course]:
    """Retourne un cours non supprimé.

    ``for_update`` takes a row lock on the course (ignored by SQLite) so that
    concurrent writers touching the same course are serialised until commit.
    """
    query = db.query(Course).filter(Course.id == course_id, Course.deleted_at.is_(None))
    if for_update:
        query = query.with_for_update()
    return query.first()


def _normalize_pagination(page: int | None, limit: int | None) -> tuple[int, int]:
    page_num = max(1, int(page or 1))
    limit_num = min(MAX_PAGE_SIZE, max(1, int(limit or 10)))
    return page_num, limit_num


def _paginate(query: Query, page: int, limit: int, order_by, options=()) -> dict:
    total = query.count()
    items = query.options(*options).order_by(order_by).offset((page - 1) * limit).limit(limit).all()
    total_pages = math.ceil(total / limit) if total else 0
    return {
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def list_courses(
    db: Session,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    is_free: Optional[bool] = None,
    is_published: Optional[bool] = None,
    instructor_id: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    include_deleted: bool = False,
) -> dict:
    page, limit = _normalize_pagination(page, limit)

    query = db.query(Course)
    if not include_deleted:
        query = query.filter(Course.deleted_at.is_(None))
    if search:
        query = query.filter(Course.title.ilike(f"%{search}%"))
    if is_free is not None:
        query = query.filter(Course.is_free.is_(is_free))
    if is_published is not None:
        query = query.filter(Course.is_published.is_(is_published))
    if instructor_id:
        query = query.filter(Course.instructor_id == instructor_id)

    column = SORTABLE_FIELDS.get(sort_by, Course.created_at)
    direction = asc if sort_order == "asc" else desc
    return _paginate(query, page, limit, direction(column), options=(joinedload(Course.instructor),))


def list_instructor_courses(
    db: Session,
    instructor_id: str,
    *,
    page: int = 1,
    limit: int = 10,
    is_published: Optional[bool] = None,
    include_deleted: bool = False,
) -> dict:
    page, limit = _normalize_pagination(page, limit)

    query = db.query(Course).filter(Course.instructor_id == instructor_id)
    if not include_deleted:
        query = query.filter(Course.deleted_at.is_(None))
    if is_published is not None:
        query = query.filter(Course.is_published.is_(is_published))

    return _paginate(query, page, limit, Course.created_at.desc())

