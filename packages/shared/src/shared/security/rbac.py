from __future__ import annotations

from enum import StrEnum


class UserRole(StrEnum):
    VISITOR = "VISITOR"
    JOBSEEKER = "JOBSEEKER"
    MANNING_AGENCY = "MANNING_AGENCY"
    SUPERADMIN = "SUPERADMIN"
    EXHIBITOR = "EXHIBITOR"
    SPONSOR = "SPONSOR"


ADMIN_ROLES = frozenset({UserRole.SUPERADMIN})


def ensure_roles(role: str | None, allowed: set[UserRole] | frozenset[UserRole]) -> bool:
    try:
        parsed = UserRole(role)
    except ValueError:
        return False
    return parsed in allowed
