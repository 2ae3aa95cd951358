from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from shared.security import UserRole


class UserType(StrEnum):
    SEAFARER = "SEAFARER"
    CORPORATE_PROFESSIONAL = "CORPORATE_PROFESSIONAL"
    STUDENTS = "STUDENTS"
    OTHERS = "OTHERS"
    SUPERADMIN = "SUPERADMIN"


class CurrentJobStatus(StrEnum):
    ACTIVELY_LOOKING = "ACTIVELY_LOOKING"
    OPEN_TO_OFFERS = "OPEN_TO_OFFERS"
    NOT_LOOKING = "NOT_LOOKING"


class Sex(StrEnum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class AccountStatus(StrEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


@dataclass
class Credential:
    credential_id: str
    user_id: str
    email: str
    password_hash: str | None
    status: AccountStatus = AccountStatus.ACTIVE


@dataclass
class LocalIdentity:
    user_id: str
    email: str
    name: str | None = None
    sex: Sex = Sex.MALE
    role: UserRole = UserRole.VISITOR
    user_type: UserType | None = None
    current_job_status: CurrentJobStatus | None = None
    is_email_verified: bool = False
    migrated_from_supabase: bool = False
    legacy_user_id: str | None = None
    migration_date: datetime | None = None
    created_at: datetime | None = None
    credentials: list[Credential] = field(default_factory=list)

    def password_credential(self) -> Credential | None:
        """First credential that can authenticate with a password."""
        for credential in self.credentials:
            if credential.password_hash:
                return credential
        return None


@dataclass(frozen=True)
class LegacyIdentity:
    legacy_id: str
    email: str
    password: str
    status: str | None = None
    consent: bool = False


@dataclass(frozen=True)
class LegacyProfile:
    legacy_id: str
    first_name: str | None = None
    last_name: str | None = None
    user_type: str | None = None
    user_role: str | None = None
    sex: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class SessionUser:
    id: str
    email: str
    name: str
    role: str
    user_type: str | None
    current_job_status: str | None

    @classmethod
    def from_identity(cls, user: LocalIdentity) -> SessionUser:
        return cls(
            id=user.user_id,
            email=user.email,
            name=user.name or "",
            role=str(user.role),
            user_type=str(user.user_type) if user.user_type else None,
            current_job_status=str(user.current_job_status) if user.current_job_status else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "userType": self.user_type,
            "currentJobStatus": self.current_job_status,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> SessionUser:
        return cls(
            id=str(payload["id"]),
            email=str(payload["email"]),
            name=str(payload.get("name") or ""),
            role=str(payload["role"]),
            user_type=payload.get("userType"),
            current_job_status=payload.get("currentJobStatus"),
        )
