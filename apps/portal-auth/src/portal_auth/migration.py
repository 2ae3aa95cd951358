from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from uuid import uuid4

from portal_auth.eligibility import describe_classification, is_eligible
from portal_auth.errors import DuplicateUserError, LegacyDirectoryError
from portal_auth.legacy_client import LegacyDirectoryClient
from portal_auth.models import (
    AccountStatus,
    Credential,
    CurrentJobStatus,
    LegacyIdentity,
    LegacyProfile,
    LocalIdentity,
    Sex,
    UserType,
)
from portal_auth.passwords import DEFAULT_ROUNDS, credential_from_legacy
from portal_auth.store import LocalStore
from shared.security import UserRole

logger = logging.getLogger(__name__)

INVALID_USER_CREDENTIALS = "INVALID_USER_CREDENTIALS"
DUPLICATE_USER = "DUPLICATE_USER"
MIGRATION_FAILED = "MIGRATION_FAILED"
LEGACY_NOT_FOUND = "NOT_FOUND"
LEGACY_SERVICE_ERROR = "SERVICE_ERROR"

ROLE_BY_LEGACY_ROLE: dict[str, UserRole] = {
    "Job Seeker": UserRole.JOBSEEKER,
    "Manning Agency": UserRole.MANNING_AGENCY,
    "SUPERADMIN": UserRole.SUPERADMIN,
    "EXHIBITOR": UserRole.EXHIBITOR,
    "SPONSOR": UserRole.SPONSOR,
}
_PASS_THROUGH_USER_TYPES = frozenset(
    {UserType.SEAFARER, UserType.CORPORATE_PROFESSIONAL, UserType.STUDENTS, UserType.SUPERADMIN}
)


def map_role(legacy_role: str | None) -> UserRole:
    return ROLE_BY_LEGACY_ROLE.get(legacy_role or "", UserRole.VISITOR)


def map_user_type(legacy_type: str | None) -> UserType:
    if legacy_type in _PASS_THROUGH_USER_TYPES:
        return UserType(legacy_type)
    return UserType.OTHERS


def map_sex(legacy_sex: str | None) -> Sex:
    return Sex.FEMALE if legacy_sex == Sex.FEMALE.value else Sex.MALE


def display_name(profile: LegacyProfile | None) -> str:
    if profile is None:
        return ""
    return f"{profile.first_name or ''} {profile.last_name or ''}".strip()


@dataclass
class MigrationResult:
    success: bool
    message: str
    email: str | None = None
    user: LocalIdentity | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {"success": self.success, "message": self.message}
        if self.email is not None:
            payload["email"] = self.email
        if self.user is not None:
            payload["userId"] = self.user.user_id
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class MigrationStatus:
    needs_migration: bool
    is_migrated: bool
    migration_date: datetime | None = None
    legacy_user_id: str | None = None

    def to_dict(self) -> dict:
        payload: dict = {"needsMigration": self.needs_migration, "isMigrated": self.is_migrated}
        if self.migration_date is not None:
            payload["migrationDate"] = self.migration_date.isoformat()
        if self.legacy_user_id is not None:
            payload["legacyUserId"] = self.legacy_user_id
        return payload


@dataclass
class BulkMigrationReport:
    total: int
    successful: int = 0
    failed: int = 0
    results: list[MigrationResult] = field(default_factory=list)

    def record(self, result: MigrationResult) -> None:
        if result.success:
            self.successful += 1
        else:
            self.failed += 1
        self.results.append(result)


class MigrationEngine:
    """Copies verified legacy identities into the local store, once per email."""

    def __init__(
        self,
        *,
        store: LocalStore,
        legacy: LegacyDirectoryClient,
        hash_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._store = store
        self._legacy = legacy
        self._hash_rounds = hash_rounds

    async def migrate(self, identity: LegacyIdentity, profile: LegacyProfile | None = None) -> MigrationResult:
        user_type = profile.user_type if profile else None
        user_role = profile.user_role if profile else None
        if not is_eligible(user_type, user_role):
            logger.info(
                "migration_rejected_ineligible",
                extra={"component": "migration", "email": identity.email, "user_type": user_type, "user_role": user_role},
            )
            return MigrationResult(
                success=False,
                email=identity.email,
                message=f"Migration is not permitted for {describe_classification(user_type, user_role)}",
                error=INVALID_USER_CREDENTIALS,
            )

        if await self._store.find_user_by_email(identity.email) is not None:
            return self._duplicate(identity.email)

        password_hash = await asyncio.to_thread(credential_from_legacy, identity.password, self._hash_rounds)
        user = LocalIdentity(
            user_id=uuid4().hex,
            email=identity.email,
            name=display_name(profile),
            sex=map_sex(profile.sex if profile else None),
            role=map_role(user_role),
            user_type=map_user_type(user_type),
            current_job_status=CurrentJobStatus.NOT_LOOKING,
            is_email_verified=True,
            migrated_from_supabase=True,
            legacy_user_id=identity.legacy_id,
            migration_date=datetime.now(timezone.utc),
        )
        credential = Credential(
            credential_id=uuid4().hex,
            user_id=user.user_id,
            email=identity.email,
            password_hash=password_hash,
            status=AccountStatus.ACTIVE,
        )
        try:
            saved = await self._store.create_user_and_credential(user, credential)
        except DuplicateUserError:
            # Lost the race against a concurrent migration of the same email.
            return self._duplicate(identity.email)
        except Exception as exc:
            logger.exception("migration_failed", extra={"component": "migration", "email": identity.email})
            return MigrationResult(
                success=False,
                email=identity.email,
                message="Failed to migrate user",
                error=f"{MIGRATION_FAILED}: {type(exc).__name__}",
            )

        logger.info(
            "user_migrated",
            extra={
                "component": "migration",
                "email": saved.email,
                "user_id": saved.user_id,
                "legacy_user_id": saved.legacy_user_id,
                "role": saved.role.value,
            },
        )
        return MigrationResult(
            success=True,
            email=saved.email,
            user=saved,
            message="User successfully migrated from legacy directory",
        )

    async def needs_migration(self, email: str) -> bool:
        if await self._store.find_user_by_email(email) is not None:
            return False
        legacy = await self._legacy.lookup(email)
        if legacy.service_failed:
            raise LegacyDirectoryError(f"legacy directory unavailable while checking {email}")
        return legacy.success and is_eligible(legacy.user_type, legacy.user_role)

    async def get_migration_status(self, email: str) -> MigrationStatus:
        user = await self._store.find_user_by_email(email)
        if user is None:
            return MigrationStatus(needs_migration=await self.needs_migration(email), is_migrated=False)
        return MigrationStatus(
            needs_migration=False,
            is_migrated=user.migrated_from_supabase,
            migration_date=user.migration_date,
            legacy_user_id=user.legacy_user_id,
        )

    async def bulk_migrate(self, emails: list[str]) -> BulkMigrationReport:
        """Migrate each email in turn; one failure never stops the batch."""
        report = BulkMigrationReport(total=len(emails))
        for email in emails:
            try:
                result = await self._migrate_by_email(email)
            except Exception as exc:
                logger.exception("bulk_migration_item_failed", extra={"component": "migration", "email": email})
                result = MigrationResult(
                    success=False,
                    email=email,
                    message="Migration failed",
                    error=f"{MIGRATION_FAILED}: {type(exc).__name__}",
                )
            report.record(result)
        logger.info(
            "bulk_migration_finished",
            extra={
                "component": "migration",
                "total": report.total,
                "successful": report.successful,
                "failed": report.failed,
            },
        )
        return report

    async def _migrate_by_email(self, email: str) -> MigrationResult:
        legacy = await self._legacy.lookup(email)
        if legacy.service_failed:
            return MigrationResult(
                success=False,
                email=email,
                message="Legacy directory unavailable",
                error=LEGACY_SERVICE_ERROR,
            )
        if not legacy.success or legacy.identity is None:
            return MigrationResult(
                success=False,
                email=email,
                message="User not found in legacy directory",
                error=LEGACY_NOT_FOUND,
            )
        return await self.migrate(legacy.identity, legacy.profile)

    def _duplicate(self, email: str) -> MigrationResult:
        return MigrationResult(
            success=False,
            email=email,
            message="User already exists in local database",
            error=DUPLICATE_USER,
        )
