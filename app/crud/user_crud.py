# Fichier: backend/app/crud/user_crud.py

from typing import Optional

from sqlalchemy.orm import Session

from app.core.permissions import Role
from app.core.security import get_password_hash
from app.models.user.user_model import User


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """
    Récupère un utilisateur par son adresse email.

    Args:
        db: La session de base de données.
        email: L'email de l'utilisateur à rechercher (comparé sans tenir compte de la casse).

    Returns:
        L'objet User s'il est trouvé, sinon None.
    """
    return db.query(User).filter(User.email == email.strip().lower()).first()


def create_user(db: Session, *, name: Optional[str], email: str, password: str, role: Role = Role.LEARNER) -> User:
    """
    Crée un nouvel utilisateur dans la base de données.

    Args:
        db: La session de base de données.
        name: Nom affiché.
        email: Adresse email, stockée en minuscules.
        password: Mot de passe en clair, haché avant stockage.
        role: Rôle attribué au compte.

    Returns:
        L'objet User qui vient d'être créé.
    """
    db_user = User(
        name=name.strip() if name else None,
        email=email.strip().lower(),
        hashed_password=get_password_hash(password),
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
