from __future__ import annotations

from collections.abc import Callable

from portal_auth.models import UserType

JOB_SEEKER = "Job Seeker"
MANNING_AGENCY = "Manning Agency"

_RolePredicate = Callable[[str | None], bool]

ELIGIBILITY_RULES: dict[str, _RolePredicate] = {
    UserType.CORPORATE_PROFESSIONAL: lambda _role: True,
    UserType.SEAFARER: lambda role: role == JOB_SEEKER,
    UserType.STUDENTS: lambda role: role == JOB_SEEKER,
    UserType.OTHERS: lambda role: role in (MANNING_AGENCY, JOB_SEEKER),
}


def is_eligible(user_type: str | None, user_role: str | None) -> bool:
    """Whether a legacy (userType, userRole) pair may be migrated or keep access.

    Unknown or missing user types are never eligible.
    """
    if not user_type:
        return False
    rule = ELIGIBILITY_RULES.get(user_type)
    if rule is None:
        return False
    return rule(user_role)


def describe_classification(user_type: str | None, user_role: str | None) -> str:
    """Human-readable ``user type X with role Y`` for denial messages."""
    return f"user type {user_type or 'missing'} with role {user_role or 'missing'}"
