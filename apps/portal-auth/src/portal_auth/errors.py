from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class DenialReason(StrEnum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_INACTIVE = "account_inactive"
    INELIGIBLE = "access_denied_ineligible"
    NOT_IN_LEGACY_DIRECTORY = "access_denied_not_in_legacy_directory"
    SERVICE_ERROR = "authentication_service_error"
    MIGRATION_FAILED = "migration_failed"


DENIAL_STATUS_CODES: dict[DenialReason, int] = {
    DenialReason.INVALID_CREDENTIALS: 401,
    DenialReason.ACCOUNT_INACTIVE: 403,
    DenialReason.INELIGIBLE: 403,
    DenialReason.NOT_IN_LEGACY_DIRECTORY: 403,
    DenialReason.SERVICE_ERROR: 500,
    DenialReason.MIGRATION_FAILED: 500,
}

_DENIAL_ERRORS: dict[DenialReason, str] = {
    DenialReason.INVALID_CREDENTIALS: "Invalid credentials",
    DenialReason.ACCOUNT_INACTIVE: "ACCOUNT IS INACTIVE",
    DenialReason.INELIGIBLE: "Access denied",
    DenialReason.NOT_IN_LEGACY_DIRECTORY: "Access denied",
    DenialReason.SERVICE_ERROR: "Authentication service error",
    DenialReason.MIGRATION_FAILED: "Migration failed",
}


@dataclass
class LoginDenied(Exception):
    reason: DenialReason
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return DENIAL_STATUS_CODES[self.reason]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error": _DENIAL_ERRORS[self.reason],
            "code": self.reason.value,
        }
        if self.message:
            payload["message"] = self.message
        payload.update(self.details)
        return payload


class LegacyDirectoryError(RuntimeError):
    """The legacy directory could not be queried or answered with garbage."""


class DuplicateUserError(RuntimeError):
    pass


class UserNotFoundError(LookupError):
    pass
