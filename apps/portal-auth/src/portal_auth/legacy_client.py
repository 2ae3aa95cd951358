from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import StrEnum
import logging

from opentelemetry import trace

from portal_auth.errors import LegacyDirectoryError
from portal_auth.legacy_directory import LegacyDirectory
from portal_auth.models import LegacyIdentity, LegacyProfile
from portal_auth.passwords import detect_legacy_format, verify_legacy_password

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class LegacyAuthError(StrEnum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    SERVICE_ERROR = "SERVICE_ERROR"


@dataclass(frozen=True)
class LegacyAuthResult:
    success: bool
    identity: LegacyIdentity | None = None
    profile: LegacyProfile | None = None
    error: LegacyAuthError | None = None

    @property
    def service_failed(self) -> bool:
        return self.error is LegacyAuthError.SERVICE_ERROR

    @property
    def user_type(self) -> str | None:
        return self.profile.user_type if self.profile else None

    @property
    def user_role(self) -> str | None:
        return self.profile.user_role if self.profile else None


class LegacyDirectoryClient:
    """Authenticates email/password pairs against the legacy directory.

    Lookup failures never masquerade as "not found": a directory that cannot
    be reached yields ``SERVICE_ERROR`` so callers can answer 500 instead of
    rejecting the user.
    """

    def __init__(self, directory: LegacyDirectory) -> None:
        self._directory = directory

    async def authenticate(self, email: str, password: str) -> LegacyAuthResult:
        with tracer.start_as_current_span("legacy_directory.authenticate"):
            try:
                identity = await self._directory.find_identity_by_email(email)
            except LegacyDirectoryError:
                logger.exception("legacy_identity_lookup_failed", extra={"component": "legacy", "email": email})
                return LegacyAuthResult(success=False, error=LegacyAuthError.SERVICE_ERROR)
            if identity is None:
                logger.info("legacy_identity_not_found", extra={"component": "legacy", "email": email})
                return LegacyAuthResult(success=False, error=LegacyAuthError.NOT_FOUND)

            password_valid = await asyncio.to_thread(verify_legacy_password, password, identity.password)
            logger.info(
                "legacy_password_checked",
                extra={
                    "component": "legacy",
                    "email": email,
                    "format": detect_legacy_format(identity.password).value,
                    "valid": password_valid,
                },
            )
            if not password_valid:
                return LegacyAuthResult(success=False, identity=identity, error=LegacyAuthError.INVALID_PASSWORD)

            return await self._with_profile(identity)

    async def lookup(self, email: str) -> LegacyAuthResult:
        """Identity and profile for ``email`` without checking a password."""
        with tracer.start_as_current_span("legacy_directory.lookup"):
            try:
                identity = await self._directory.find_identity_by_email(email)
            except LegacyDirectoryError:
                logger.exception("legacy_identity_lookup_failed", extra={"component": "legacy", "email": email})
                return LegacyAuthResult(success=False, error=LegacyAuthError.SERVICE_ERROR)
            if identity is None:
                return LegacyAuthResult(success=False, error=LegacyAuthError.NOT_FOUND)
            return await self._with_profile(identity)

    async def exists(self, email: str) -> bool:
        with tracer.start_as_current_span("legacy_directory.exists"):
            return await self._directory.exists(email)

    async def ping(self) -> None:
        await self._directory.ping()

    async def _with_profile(self, identity: LegacyIdentity) -> LegacyAuthResult:
        # A missing details row is a valid answer; a failed query is not.
        try:
            profile = await self._directory.find_profile_by_id(identity.legacy_id)
        except LegacyDirectoryError:
            logger.exception(
                "legacy_profile_lookup_failed",
                extra={"component": "legacy", "legacy_user_id": identity.legacy_id},
            )
            return LegacyAuthResult(success=False, identity=identity, error=LegacyAuthError.SERVICE_ERROR)
        if profile is None:
            logger.info("legacy_profile_missing", extra={"component": "legacy", "legacy_user_id": identity.legacy_id})
        return LegacyAuthResult(success=True, identity=identity, profile=profile)
