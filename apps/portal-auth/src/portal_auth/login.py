"""Login orchestration across the local store and the legacy directory.

A request walks one state machine::

    LOOKUP_LOCAL -> LOCAL_VALIDATED | LOCAL_REVALIDATE_LEGACY | LEGACY_FALLBACK
                 -> SESSION_ISSUED | DENIED

Local users that were never migrated must still pass the legacy directory and
the eligibility policy on every login. Unknown users are checked against the
legacy directory and migrated on success. Migrated users whose local hash no
longer matches get one legacy retry, and a success rewrites the local hash.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
import logging

from portal_auth.eligibility import describe_classification, is_eligible
from portal_auth.errors import DenialReason, LoginDenied
from portal_auth.legacy_client import LegacyAuthResult, LegacyDirectoryClient
from portal_auth.migration import DUPLICATE_USER, INVALID_USER_CREDENTIALS, MigrationEngine
from portal_auth.models import AccountStatus, Credential, LocalIdentity, SessionUser
from portal_auth.passwords import DEFAULT_ROUNDS, hash_password, verify_password
from portal_auth.store import LocalStore

logger = logging.getLogger(__name__)

NOT_IN_DIRECTORY_MESSAGE = "Account not found in authorization system"


class LoginState(StrEnum):
    LOOKUP_LOCAL = "LOOKUP_LOCAL"
    LOCAL_VALIDATED = "LOCAL_VALIDATED"
    LOCAL_REVALIDATE_LEGACY = "LOCAL_REVALIDATE_LEGACY"
    LEGACY_FALLBACK = "LEGACY_FALLBACK"
    SESSION_ISSUED = "SESSION_ISSUED"
    DENIED = "DENIED"


@dataclass(frozen=True)
class LoginResult:
    user: SessionUser
    is_local_user: bool
    migrated: bool = False
    migration_message: str | None = None
    credential_repaired: bool = False
    states: tuple[LoginState, ...] = ()


@dataclass
class _Attempt:
    email: str
    password: str
    states: list[LoginState] = field(default_factory=list)
    legacy: LegacyAuthResult | None = None
    relookup_allowed: bool = True

    def enter(self, state: LoginState) -> None:
        self.states.append(state)


def _ineligible(result: LegacyAuthResult) -> LoginDenied:
    user_type = result.user_type
    user_role = result.user_role
    return LoginDenied(
        DenialReason.INELIGIBLE,
        message=f"Access is not permitted for {describe_classification(user_type, user_role)}",
        details={"userType": user_type, "userRole": user_role},
    )


class LoginService:
    def __init__(
        self,
        *,
        store: LocalStore,
        legacy: LegacyDirectoryClient,
        migration: MigrationEngine,
        hash_rounds: int = DEFAULT_ROUNDS,
    ) -> None:
        self._store = store
        self._legacy = legacy
        self._migration = migration
        self._hash_rounds = hash_rounds

    async def login(self, email: str, password: str) -> LoginResult:
        attempt = _Attempt(email=email.strip(), password=password)
        try:
            result = await self._lookup_local(attempt)
        except LoginDenied as exc:
            attempt.enter(LoginState.DENIED)
            logger.info(
                "login_denied",
                extra={
                    "component": "login",
                    "email": attempt.email,
                    "reason": exc.reason.value,
                    "states": [state.value for state in attempt.states],
                },
            )
            raise
        logger.info(
            "login_succeeded",
            extra={
                "component": "login",
                "email": attempt.email,
                "migrated": result.migrated,
                "credential_repaired": result.credential_repaired,
                "states": [state.value for state in result.states],
            },
        )
        return result

    async def _lookup_local(self, attempt: _Attempt) -> LoginResult:
        attempt.enter(LoginState.LOOKUP_LOCAL)
        user = await self._store.find_user_by_email(attempt.email)
        if user is None:
            return await self._migrate_from_legacy(attempt)
        return await self._authenticate_local(attempt, user)

    async def _authenticate_local(self, attempt: _Attempt, user: LocalIdentity) -> LoginResult:
        if not user.migrated_from_supabase:
            user = await self._revalidate_with_legacy(attempt, user)

        credential = user.password_credential()
        if credential is None:
            raise LoginDenied(DenialReason.INVALID_CREDENTIALS)
        if credential.status == AccountStatus.INACTIVE:
            raise LoginDenied(DenialReason.ACCOUNT_INACTIVE)

        if await asyncio.to_thread(verify_password, attempt.password, credential.password_hash):
            attempt.enter(LoginState.LOCAL_VALIDATED)
            return self._issue(attempt, user, is_local_user=True)

        if not user.migrated_from_supabase:
            raise LoginDenied(DenialReason.INVALID_CREDENTIALS)

        attempt.enter(LoginState.LEGACY_FALLBACK)
        legacy = await self._legacy_authenticate(attempt)
        if legacy.service_failed:
            raise LoginDenied(DenialReason.SERVICE_ERROR)
        if not legacy.success:
            raise LoginDenied(DenialReason.INVALID_CREDENTIALS)
        await self._repair_credential(credential, attempt.password)
        return self._issue(attempt, user, is_local_user=True, credential_repaired=True)

    async def _revalidate_with_legacy(self, attempt: _Attempt, user: LocalIdentity) -> LocalIdentity:
        attempt.enter(LoginState.LOCAL_REVALIDATE_LEGACY)
        legacy = await self._legacy_authenticate(attempt)
        if legacy.service_failed:
            raise LoginDenied(DenialReason.SERVICE_ERROR)
        if not legacy.success or legacy.identity is None:
            raise LoginDenied(DenialReason.NOT_IN_LEGACY_DIRECTORY, message=NOT_IN_DIRECTORY_MESSAGE)
        if not is_eligible(legacy.user_type, legacy.user_role):
            raise _ineligible(legacy)
        return await self._store.update_user(
            user.user_id,
            migrated_from_supabase=True,
            legacy_user_id=legacy.identity.legacy_id,
            migration_date=datetime.now(timezone.utc),
        )

    async def _migrate_from_legacy(self, attempt: _Attempt) -> LoginResult:
        attempt.enter(LoginState.LEGACY_FALLBACK)
        legacy = await self._legacy_authenticate(attempt)
        if legacy.service_failed:
            raise LoginDenied(DenialReason.SERVICE_ERROR)
        if not legacy.success or legacy.identity is None:
            raise LoginDenied(DenialReason.INVALID_CREDENTIALS)
        if not is_eligible(legacy.user_type, legacy.user_role):
            raise _ineligible(legacy)

        migration = await self._migration.migrate(legacy.identity, legacy.profile)
        if not migration.success:
            if migration.error == DUPLICATE_USER:
                return await self._relookup_after_duplicate(attempt)
            if migration.error == INVALID_USER_CREDENTIALS:
                raise _ineligible(legacy)
            raise LoginDenied(DenialReason.MIGRATION_FAILED, details={"details": migration.error})

        user = await self._store.find_user_by_email(attempt.email)
        if user is None:
            raise LoginDenied(
                DenialReason.MIGRATION_FAILED,
                details={"details": "Migration successful but user not found"},
            )
        return self._issue(
            attempt,
            user,
            is_local_user=False,
            migrated=True,
            migration_message=migration.message,
        )

    async def _relookup_after_duplicate(self, attempt: _Attempt) -> LoginResult:
        # A concurrent request migrated this email first; the row should exist now.
        if not attempt.relookup_allowed:
            raise LoginDenied(DenialReason.INVALID_CREDENTIALS)
        attempt.relookup_allowed = False
        logger.info("migration_race_relookup", extra={"component": "login", "email": attempt.email})
        attempt.enter(LoginState.LOOKUP_LOCAL)
        user = await self._store.find_user_by_email(attempt.email)
        if user is None:
            raise LoginDenied(DenialReason.INVALID_CREDENTIALS)
        return await self._authenticate_local(attempt, user)

    async def _legacy_authenticate(self, attempt: _Attempt) -> LegacyAuthResult:
        # One directory round trip per request; later states reuse the answer.
        if attempt.legacy is None:
            attempt.legacy = await self._legacy.authenticate(attempt.email, attempt.password)
        return attempt.legacy

    async def _repair_credential(self, credential: Credential, password: str) -> None:
        password_hash = await asyncio.to_thread(hash_password, password, self._hash_rounds)
        await self._store.update_credential(credential.credential_id, password_hash=password_hash)
        logger.info(
            "credential_repaired",
            extra={"component": "login", "credential_id": credential.credential_id},
        )

    def _issue(
        self,
        attempt: _Attempt,
        user: LocalIdentity,
        *,
        is_local_user: bool,
        migrated: bool = False,
        migration_message: str | None = None,
        credential_repaired: bool = False,
    ) -> LoginResult:
        attempt.enter(LoginState.SESSION_ISSUED)
        return LoginResult(
            user=SessionUser.from_identity(user),
            is_local_user=is_local_user,
            migrated=migrated,
            migration_message=migration_message,
            credential_repaired=credential_repaired,
            states=tuple(attempt.states),
        )
