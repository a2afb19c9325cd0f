import logging
import re
from typing import Optional
from urllib.parse import unquote

from fastapi import Depends, HTTPException, Request, status
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.orm import Session

from app.core import security
from app.db.session import get_db
from app.models.user.user_model import User
from app.services.errors import ServiceError

log = logging.getLogger(__name__)


def http_error_from(exc: ServiceError) -> HTTPException:
    """Translate a domain error into the HTTP error returned to clients."""

    detail = {"code": exc.code, **exc.details} if exc.details else exc.code
    return HTTPException(status_code=exc.status_code, detail=detail)


def _normalize_token_value(raw_token: str | None) -> str | None:
    """Return a clean JWT string extracted from various transport formats.

    Browsers can percent-encode cookie values (``Bearer%20…``) and some
    frontends send quoted strings. We normalise those cases and also accept
    case-insensitive ``Bearer`` prefixes.
    """

    if raw_token is None:
        return None

    token = raw_token.strip().strip('"').strip("'")
    if not token:
        return None

    token = unquote(token)

    match = re.match(r"^(bearer|token)[\s,:]+(.+)$", token, flags=re.IGNORECASE)
    if match:
        token = match.group(2)

    token = token.strip()
    return token or None


def _decode_user_from_token(token: str | None, db: Session) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = _normalize_token_value(token)
    if not token:
        log.warning("Validation échouée: Pas de token fourni.")
        raise credentials_exception

    try:
        payload = security.decode_access_token(token)
    except ExpiredSignatureError:
        log.warning("Validation échouée: Le token a expiré.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
    except JWTError:
        log.warning("Validation échouée: Le token est invalide ou mal formé.")
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        log.warning("Validation échouée: Le token ne contient pas de 'sub'.")
        raise credentials_exception

    user = db.get(User, str(user_id))
    if user is None:
        log.warning("Validation échouée: Utilisateur avec ID %s non trouvé.", user_id)
        raise credentials_exception

    log.debug("Utilisateur %s validé via token.", user.id)
    return user


def _token_candidates(request: Request) -> tuple[Optional[str], ...]:
    return (
        request.headers.get("Authorization"),
        request.headers.get("X-Access-Token"),
        request.cookies.get("access_token"),
    )


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    last_unauthorized_error: HTTPException | None = None

    for candidate in _token_candidates(request):
        token = _normalize_token_value(candidate)
        if not token:
            continue

        try:
            return _decode_user_from_token(token, db)
        except HTTPException as exc:
            if exc.status_code != status.HTTP_401_UNAUTHORIZED:
                raise
            last_unauthorized_error = exc

    if last_unauthorized_error is not None:
        raise last_unauthorized_error

    return _decode_user_from_token(None, db)


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Same as :func:`get_current_user` but anonymous or invalid credentials yield ``None``."""

    try:
        return get_current_user(request, db)
    except HTTPException as exc:
        if exc.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        return None
