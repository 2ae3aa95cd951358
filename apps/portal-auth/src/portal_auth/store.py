from __future__ import annotations

import copy
from dataclasses import fields
from datetime import datetime, timezone
from typing import Any

from devkit.db import AsyncDatabaseManager, Base, create_all_tables, create_schema_if_not_exists
from sqlalchemy import Boolean, DateTime, ForeignKey, String, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, mapped_column, relationship

from portal_auth.errors import DuplicateUserError, UserNotFoundError
from portal_auth.models import (
    AccountStatus,
    Credential,
    CurrentJobStatus,
    LocalIdentity,
    Sex,
    UserType,
)
from shared.security import UserRole

_AUTH_SCHEMA = "auth"
_USER_FIELDS = {item.name for item in fields(LocalIdentity)} - {"user_id", "email", "credentials", "created_at"}


class UserORM(Base):
    __tablename__ = "users"
    __table_args__ = {"schema": _AUTH_SCHEMA}

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sex: Mapped[str] = mapped_column(String(16), nullable=False, default=Sex.MALE.value)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=UserRole.VISITOR.value)
    user_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    current_job_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    migrated_from_supabase: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    legacy_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    migration_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    accounts: Mapped[list[AccountORM]] = relationship(
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class AccountORM(Base):
    __tablename__ = "accounts"
    __table_args__ = {"schema": _AUTH_SCHEMA}

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(
        ForeignKey(f"{_AUTH_SCHEMA}.users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=AccountStatus.ACTIVE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user: Mapped[UserORM] = relationship(back_populates="accounts")


class LocalStore:
    """Authoritative user records and their password credentials."""

    async def ensure_ready(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def find_user_by_email(self, email: str) -> LocalIdentity | None:
        raise NotImplementedError

    async def find_user_by_id(self, user_id: str) -> LocalIdentity | None:
        raise NotImplementedError

    async def create_user_and_credential(self, user: LocalIdentity, credential: Credential) -> LocalIdentity:
        """Insert both rows in one transaction; raises ``DuplicateUserError`` on a taken email."""
        raise NotImplementedError

    async def update_user(self, user_id: str, **changes: Any) -> LocalIdentity:
        raise NotImplementedError

    async def update_credential(self, credential_id: str, *, password_hash: str) -> None:
        raise NotImplementedError

    async def list_migrated_users(self) -> list[LocalIdentity]:
        raise NotImplementedError


def _check_user_changes(changes: dict[str, Any]) -> None:
    unknown = set(changes) - _USER_FIELDS
    if unknown:
        raise ValueError(f"unsupported user fields: {sorted(unknown)}")


def _migration_sort_key(user: LocalIdentity) -> datetime:
    return user.migration_date or datetime.min.replace(tzinfo=timezone.utc)


class InMemoryLocalStore(LocalStore):
    def __init__(self) -> None:
        self._users: dict[str, LocalIdentity] = {}
        self._ids_by_email: dict[str, str] = {}

    async def find_user_by_email(self, email: str) -> LocalIdentity | None:
        user_id = self._ids_by_email.get(email)
        if user_id is None:
            return None
        return copy.deepcopy(self._users[user_id])

    async def find_user_by_id(self, user_id: str) -> LocalIdentity | None:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user is not None else None

    async def create_user_and_credential(self, user: LocalIdentity, credential: Credential) -> LocalIdentity:
        if user.email in self._ids_by_email:
            raise DuplicateUserError("email already exists")
        saved = copy.deepcopy(user)
        saved.created_at = saved.created_at or datetime.now(timezone.utc)
        saved.credentials = [copy.deepcopy(credential)]
        self._users[saved.user_id] = saved
        self._ids_by_email[saved.email] = saved.user_id
        return copy.deepcopy(saved)

    async def update_user(self, user_id: str, **changes: Any) -> LocalIdentity:
        _check_user_changes(changes)
        user = self._users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        for key, value in changes.items():
            setattr(user, key, value)
        return copy.deepcopy(user)

    async def update_credential(self, credential_id: str, *, password_hash: str) -> None:
        for user in self._users.values():
            for credential in user.credentials:
                if credential.credential_id == credential_id:
                    credential.password_hash = password_hash
                    return
        raise UserNotFoundError(credential_id)

    async def list_migrated_users(self) -> list[LocalIdentity]:
        migrated = [copy.deepcopy(user) for user in self._users.values() if user.migrated_from_supabase]
        return sorted(migrated, key=_migration_sort_key, reverse=True)


class DatabaseLocalStore(LocalStore):
    def __init__(self, database_url: str) -> None:
        self._db = AsyncDatabaseManager(database_url)
        self._orm_ready = False

    async def ensure_ready(self) -> None:
        if self._orm_ready:
            return
        await self._db.connect()
        await create_schema_if_not_exists(self._db.engine, _AUTH_SCHEMA)
        await create_all_tables(self._db.engine, Base.metadata)
        self._orm_ready = True

    async def close(self) -> None:
        await self._db.disconnect()

    async def find_user_by_email(self, email: str) -> LocalIdentity | None:
        await self.ensure_ready()

        async def _run(session):
            query = select(UserORM).where(UserORM.email == email)
            return (await session.scalars(query)).first()

        row = await self._db.run_with_session(_run)
        return self._to_identity(row) if row is not None else None

    async def find_user_by_id(self, user_id: str) -> LocalIdentity | None:
        await self.ensure_ready()

        async def _run(session):
            return await session.get(UserORM, user_id)

        row = await self._db.run_with_session(_run)
        return self._to_identity(row) if row is not None else None

    async def create_user_and_credential(self, user: LocalIdentity, credential: Credential) -> LocalIdentity:
        await self.ensure_ready()

        async def _run(session):
            row = UserORM(
                id=user.user_id,
                email=user.email,
                name=user.name,
                sex=user.sex.value,
                role=user.role.value,
                user_type=user.user_type.value if user.user_type else None,
                current_job_status=user.current_job_status.value if user.current_job_status else None,
                is_email_verified=user.is_email_verified,
                migrated_from_supabase=user.migrated_from_supabase,
                legacy_user_id=user.legacy_user_id,
                migration_date=user.migration_date,
            )
            row.accounts = [
                AccountORM(
                    id=credential.credential_id,
                    email=credential.email,
                    password=credential.password_hash,
                    status=credential.status.value,
                )
            ]
            session.add(row)
            await session.flush()
            await session.refresh(row, attribute_names=["created_at"])
            return row

        try:
            saved = await self._db.run_with_session(_run)
        except IntegrityError as exc:
            # Only a committed row holding this email makes it a duplicate; other violations propagate.
            if await self.find_user_by_email(user.email) is not None:
                raise DuplicateUserError("email already exists") from exc
            raise
        return self._to_identity(saved)

    async def update_user(self, user_id: str, **changes: Any) -> LocalIdentity:
        _check_user_changes(changes)
        await self.ensure_ready()

        async def _run(session):
            row = await session.get(UserORM, user_id)
            if row is None:
                raise UserNotFoundError(user_id)
            for key, value in changes.items():
                setattr(row, key, value.value if hasattr(value, "value") else value)
            return row

        row = await self._db.run_with_session(_run)
        return self._to_identity(row)

    async def update_credential(self, credential_id: str, *, password_hash: str) -> None:
        await self.ensure_ready()

        async def _run(session):
            row = await session.get(AccountORM, credential_id)
            if row is None:
                raise UserNotFoundError(credential_id)
            row.password = password_hash

        await self._db.run_with_session(_run)

    async def list_migrated_users(self) -> list[LocalIdentity]:
        await self.ensure_ready()

        async def _run(session):
            query = (
                select(UserORM)
                .where(UserORM.migrated_from_supabase.is_(True))
                .order_by(UserORM.migration_date.desc())
            )
            return list((await session.scalars(query)).all())

        rows = await self._db.run_with_session(_run)
        return [self._to_identity(row) for row in rows]

    def _to_identity(self, row: UserORM) -> LocalIdentity:
        return LocalIdentity(
            user_id=row.id,
            email=row.email,
            name=row.name,
            sex=Sex(row.sex),
            role=UserRole(row.role),
            user_type=UserType(row.user_type) if row.user_type else None,
            current_job_status=CurrentJobStatus(row.current_job_status) if row.current_job_status else None,
            is_email_verified=row.is_email_verified,
            migrated_from_supabase=row.migrated_from_supabase,
            legacy_user_id=row.legacy_user_id,
            migration_date=row.migration_date,
            created_at=row.created_at,
            credentials=[
                Credential(
                    credential_id=account.id,
                    user_id=account.user_id,
                    email=account.email,
                    password_hash=account.password,
                    status=AccountStatus(account.status),
                )
                for account in row.accounts
            ],
        )
