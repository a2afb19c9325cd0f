"""Déclare l'ensemble des modèles SQLAlchemy pour que ``Base.metadata`` soit complet."""

from app.db.base_class import Base

# Utilisateurs et sessions
from app.models.user.user_model import User
from app.models.user.session_model import UserSession

# Cours, leçons & inscriptions
from app.models.course.course_model import Course
from app.models.course.lesson_model import Lesson
from app.models.course.enrollment_model import Enrollment, EnrollmentStatus

# Progression
from app.models.progress.lesson_progress_model import LessonProgress

__all__ = (
    "Base",
    "User",
    "UserSession",
    "Course",
    "Lesson",
    "Enrollment",
    "EnrollmentStatus",
    "LessonProgress",
)
