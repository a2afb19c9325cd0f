import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from app.api.v1.dependencies import get_current_user, get_db, http_error_from
from app.core.config import settings
from app.core.permissions import Role
from app.models.user.user_model import User
from app.schemas.user import user_schema
from app.services.auth_service import AuthService
from app.services.errors import ServiceError

router = APIRouter()
logger = logging.getLogger(__name__)


def _set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=refresh_token,
        httponly=True,
        samesite="strict",
        secure=settings.ENVIRONMENT == "production",
        path=settings.REFRESH_COOKIE_PATH,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _clear_refresh_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        path=settings.REFRESH_COOKIE_PATH,
        samesite="strict",
        secure=settings.ENVIRONMENT == "production",
        httponly=True,
    )


def _register(db: Session, user_in: user_schema.UserCreate, role: Role) -> User:
    try:
        return AuthService(db).register(
            name=user_in.name,
            email=user_in.email,
            password=user_in.password,
            role=role,
        )
    except ServiceError as exc:
        raise http_error_from(exc) from exc


@router.post("/register", response_model=user_schema.UserRead, status_code=status.HTTP_201_CREATED)
def register(user_in: user_schema.UserCreate, db: Session = Depends(get_db)):
    return _register(db, user_in, Role.LEARNER)


@router.post("/register/instructor", response_model=user_schema.UserRead, status_code=status.HTTP_201_CREATED)
def register_instructor(user_in: user_schema.UserCreate, db: Session = Depends(get_db)):
    return _register(db, user_in, Role.INSTRUCTOR)


@router.post("/login", response_model=user_schema.TokenOut)
def login(
    credentials: user_schema.LoginIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    """Ouvre une session: access token dans le corps, refresh token en cookie httpOnly."""

    try:
        tokens = AuthService(db).login(
            email=credentials.email,
            password=credentials.password,
            user_agent=request.headers.get("user-agent"),
            ip_address=request.client.host if request.client else None,
        )
    except ServiceError as exc:
        raise http_error_from(exc) from exc

    _set_refresh_cookie(response, tokens.refresh_token)
    return user_schema.TokenOut(access_token=tokens.access_token)


@router.post("/refresh", response_model=user_schema.TokenOut)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)):
    refresh_token: Optional[str] = request.cookies.get(settings.REFRESH_COOKIE_NAME)
    try:
        tokens = AuthService(db).refresh(refresh_token)
    except ServiceError as exc:
        raise http_error_from(exc) from exc

    _set_refresh_cookie(response, tokens.refresh_token)
    return user_schema.TokenOut(access_token=tokens.access_token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(request: Request, db: Session = Depends(get_db)) -> Response:
    AuthService(db).logout(request.cookies.get(settings.REFRESH_COOKIE_NAME))
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    _clear_refresh_cookie(response)
    return response


@router.get("/me", response_model=user_schema.UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    return current_user
