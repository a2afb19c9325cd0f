# Fichier: backend/app/api/v1/api.py
from fastapi import APIRouter

from .endpoints import auth_router, course_router, lesson_router, progress_router

api_router = APIRouter()

api_router.include_router(auth_router.router, prefix="/auth", tags=["Auth"])
api_router.include_router(course_router.router, prefix="/courses", tags=["Courses"])
api_router.include_router(lesson_router.router, prefix="/courses/{course_id}/lessons", tags=["Lessons"])
api_router.include_router(progress_router.router, tags=["Progress"])
