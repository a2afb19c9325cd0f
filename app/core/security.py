# Fichier: backend/app/core/security.py

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwe, jwt
from passlib.context import CryptContext

from app.core.config import settings

# --- Configuration de la Sécurité ---
ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Tokens ---
def create_access_token(user: Any, expires_delta: timedelta | None = None) -> str:
    """Crée un token d'accès JWT portant l'identifiant et le rôle de l'utilisateur."""
    expire = _utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    role = getattr(user.role, "value", user.role)
    to_encode = {"exp": expire, "sub": str(user.id), "role": role}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def create_refresh_token(session_id: str, expires_delta: timedelta | None = None) -> str:
    """Crée un refresh token lié à une session (claim ``sid``).

    Each call embeds a fresh ``jti`` so two tokens minted for the same session
    within the same second still differ.
    """
    expire = _utcnow() + (expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))
    to_encode = {"exp": expire, "sid": str(session_id), "jti": uuid.uuid4().hex}
    return jwt.encode(to_encode, settings.REFRESH_SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])


def decode_refresh_token(token: str) -> dict:
    return jwt.decode(token, settings.REFRESH_SECRET_KEY, algorithms=[ALGORITHM])


# --- Chiffrement des refresh tokens stockés ---
def _encryption_key() -> bytes:
    # A256GCM needs exactly 32 bytes of key material.
    return hashlib.sha256(settings.REFRESH_TOKEN_ENCRYPTION_KEY.encode("utf-8")).digest()


def encrypt_token(token: str) -> str:
    """Chiffre un token (JWE compact, ``dir`` + ``A256GCM``) avant stockage."""
    encrypted = jwe.encrypt(token, _encryption_key(), algorithm="dir", encryption="A256GCM")
    return encrypted.decode("ascii") if isinstance(encrypted, bytes) else encrypted


def decrypt_token(payload: str) -> str:
    return jwe.decrypt(payload, _encryption_key()).decode("utf-8")


# --- Mots de passe ---
def verify_password(plain_password: str | None, hashed_password: str | None) -> bool:
    """Vérifie si un mot de passe en clair correspond à un mot de passe haché."""

    if not plain_password or not hashed_password:
        return False

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as exc:
        logger.warning("Password verification failed: %s", exc)
        return False


def get_password_hash(password: str) -> str:
    """Hache un mot de passe."""
    return pwd_context.hash(password)
