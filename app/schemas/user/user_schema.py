# Fichier: backend/app/schemas/user/user_schema.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.permissions import Role


# --- Schéma pour l'inscription ---
class UserCreate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)


# --- Connexion ---
class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


# --- Schéma pour la Réponse de l'API ---
# Pas de mot de passe ici.
class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    email: EmailStr
    role: Role
    created_at: Optional[datetime] = None
