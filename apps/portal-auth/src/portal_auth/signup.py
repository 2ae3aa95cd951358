from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from portal_auth.errors import DuplicateUserError
from portal_auth.models import AccountStatus, Credential, LocalIdentity, Sex
from portal_auth.passwords import DEFAULT_ROUNDS, hash_password
from portal_auth.store import LocalStore

logger = logging.getLogger(__name__)


class SignupService:
    """Direct email/password registration.

    Accounts created here never came from the legacy directory, so they stay
    unmigrated and must pass legacy revalidation on their first login.
    """

    def __init__(self, *, store: LocalStore, hash_rounds: int = DEFAULT_ROUNDS) -> None:
        self._store = store
        self._hash_rounds = hash_rounds

    async def sign_up(self, email: str, password: str) -> LocalIdentity:
        email = email.strip()
        if await self._store.find_user_by_email(email) is not None:
            raise DuplicateUserError("email already exists")

        password_hash = await asyncio.to_thread(hash_password, password, self._hash_rounds)
        user = LocalIdentity(
            user_id=uuid4().hex,
            email=email,
            name=email.split("@", 1)[0],
            sex=Sex.MALE,
            is_email_verified=False,
            migrated_from_supabase=False,
        )
        credential = Credential(
            credential_id=uuid4().hex,
            user_id=user.user_id,
            email=email,
            password_hash=password_hash,
            status=AccountStatus.ACTIVE,
        )
        saved = await self._store.create_user_and_credential(user, credential)
        logger.info("user_signed_up", extra={"component": "signup", "user_id": saved.user_id})
        return saved
