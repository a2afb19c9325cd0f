"""Role and ownership checks for course management.

Permissions are expressed as capabilities granted to a :class:`Role`. The only
capability that depends on the resource is ``MANAGE_COURSE``: instructors hold
it for the courses they own, administrators for every course.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from app.services.errors import ForbiddenError


class Role(str, enum.Enum):
    LEARNER = "learner"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class Capability(str, enum.Enum):
    CREATE_COURSE = "create_course"
    MANAGE_COURSE = "manage_course"
    LIST_OWN_COURSES = "list_own_courses"


_ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.LEARNER: frozenset(),
    Role.INSTRUCTOR: frozenset(
        {Capability.CREATE_COURSE, Capability.MANAGE_COURSE, Capability.LIST_OWN_COURSES}
    ),
    Role.ADMIN: frozenset(Capability),
}

_OWNER_BOUND = {Capability.MANAGE_COURSE}


def is_authorized(user: Any, capability: Capability, owner_id: Optional[str] = None) -> bool:
    """Return ``True`` when *user* may exercise *capability* on a resource owned by *owner_id*."""

    if user is None:
        return False

    role = Role(user.role)
    if capability not in _ROLE_CAPABILITIES[role]:
        return False

    if role is Role.ADMIN or capability not in _OWNER_BOUND:
        return True

    return owner_id is not None and str(owner_id) == str(user.id)


def require_capability(user: Any, capability: Capability, owner_id: Optional[str] = None) -> None:
    if is_authorized(user, capability, owner_id):
        return

    role = Role(user.role) if user is not None else None
    if role is not None and capability in _ROLE_CAPABILITIES[role]:
        raise ForbiddenError("not_resource_owner")
    raise ForbiddenError("insufficient_permissions")
