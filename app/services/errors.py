from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class ServiceError(Exception):
    """Domain-specific exception raised when an operation cannot be applied.

    Routers translate it to an ``HTTPException`` carrying ``status_code`` and
    either the bare ``code`` or ``{"code": ..., **details}``.
    """

    code: str
    status_code: int = 400
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:  # pragma: no cover - human readable message
        return self.code


@dataclass(eq=False)
class NotFoundError(ServiceError):
    code: str = "not_found"
    status_code: int = 404


@dataclass(eq=False)
class InvalidInputError(ServiceError):
    code: str = "invalid_input"
    status_code: int = 400


@dataclass(eq=False)
class ForbiddenError(ServiceError):
    code: str = "forbidden"
    status_code: int = 403


@dataclass(eq=False)
class UnauthorizedError(ServiceError):
    code: str = "unauthorized"
    status_code: int = 401
