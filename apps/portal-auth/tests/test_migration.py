from __future__ import annotations

import pytest

from portal_auth.legacy_client import LegacyDirectoryClient
from portal_auth.legacy_directory import InMemoryLegacyDirectory
from portal_auth.errors import LegacyDirectoryError
from portal_auth.migration import (
    DUPLICATE_USER,
    INVALID_USER_CREDENTIALS,
    LEGACY_NOT_FOUND,
    MigrationEngine,
    map_role,
    map_sex,
    map_user_type,
)
from portal_auth.models import CurrentJobStatus, LegacyIdentity, LegacyProfile, Sex, UserType
from portal_auth.passwords import hash_password, verify_password
from portal_auth.store import InMemoryLocalStore
from shared.security import UserRole

FAST_ROUNDS = 4


class BrokenDirectory(InMemoryLegacyDirectory):
    async def find_identity_by_email(self, email: str):
        raise LegacyDirectoryError("down")


def build_engine(directory: InMemoryLegacyDirectory | None = None):
    store = InMemoryLocalStore()
    engine = MigrationEngine(
        store=store,
        legacy=LegacyDirectoryClient(directory or InMemoryLegacyDirectory()),
        hash_rounds=FAST_ROUNDS,
    )
    return engine, store


def seafarer(legacy_id: str = "L-1", role: str = "Job Seeker") -> LegacyProfile:
    return LegacyProfile(
        legacy_id=legacy_id,
        first_name="Ana",
        last_name="Reyes",
        user_type="SEAFARER",
        user_role=role,
        sex="FEMALE",
    )


def test_mapping_helpers() -> None:
    assert map_role("Job Seeker") is UserRole.JOBSEEKER
    assert map_role("Manning Agency") is UserRole.MANNING_AGENCY
    assert map_role("Something Else") is UserRole.VISITOR
    assert map_role(None) is UserRole.VISITOR
    assert map_user_type("STUDENTS") is UserType.STUDENTS
    assert map_user_type("ALIEN") is UserType.OTHERS
    assert map_sex("FEMALE") is Sex.FEMALE
    assert map_sex(None) is Sex.MALE


@pytest.mark.asyncio
async def test_migrate_creates_user_with_mapped_fields() -> None:
    engine, store = build_engine()
    identity = LegacyIdentity(legacy_id="L-1", email="a@x.com", password="plain123")

    result = await engine.migrate(identity, seafarer())

    assert result.success
    user = await store.find_user_by_email("a@x.com")
    assert user is not None
    assert user.role is UserRole.JOBSEEKER
    assert user.user_type is UserType.SEAFARER
    assert user.sex is Sex.FEMALE
    assert user.name == "Ana Reyes"
    assert user.current_job_status is CurrentJobStatus.NOT_LOOKING
    assert user.is_email_verified
    assert user.migrated_from_supabase
    assert user.legacy_user_id == "L-1"
    assert user.migration_date is not None
    assert result.to_dict()["userId"] == user.user_id


@pytest.mark.asyncio
async def test_plaintext_legacy_password_is_never_stored_verbatim() -> None:
    engine, store = build_engine()
    await engine.migrate(LegacyIdentity(legacy_id="L-1", email="a@x.com", password="plain123"), seafarer())

    user = await store.find_user_by_email("a@x.com")
    assert user is not None
    credential = user.password_credential()
    assert credential is not None
    assert credential.password_hash != "plain123"
    assert verify_password("plain123", credential.password_hash)


@pytest.mark.asyncio
async def test_bcrypt_legacy_password_is_stored_byte_identical() -> None:
    engine, store = build_engine()
    legacy_hash = hash_password("Abcd1234", rounds=FAST_ROUNDS)
    await engine.migrate(LegacyIdentity(legacy_id="L-1", email="a@x.com", password=legacy_hash), seafarer())

    user = await store.find_user_by_email("a@x.com")
    assert user is not None
    assert user.password_credential().password_hash == legacy_hash


@pytest.mark.asyncio
async def test_migrating_twice_reports_duplicate_without_new_rows() -> None:
    engine, store = build_engine()
    identity = LegacyIdentity(legacy_id="L-1", email="a@x.com", password="plain123")

    first = await engine.migrate(identity, seafarer())
    second = await engine.migrate(identity, seafarer())

    assert first.success
    assert not second.success
    assert second.error == DUPLICATE_USER
    assert len(await store.list_migrated_users()) == 1


@pytest.mark.asyncio
async def test_ineligible_profile_is_rejected_without_rows() -> None:
    engine, store = build_engine()
    identity = LegacyIdentity(legacy_id="L-1", email="a@x.com", password="plain123")

    result = await engine.migrate(identity, seafarer(role="Manning Agency"))

    assert not result.success
    assert result.error == INVALID_USER_CREDENTIALS
    assert await store.find_user_by_email("a@x.com") is None


@pytest.mark.asyncio
async def test_missing_profile_is_ineligible() -> None:
    engine, store = build_engine()
    result = await engine.migrate(LegacyIdentity(legacy_id="L-1", email="a@x.com", password="plain123"))

    assert result.error == INVALID_USER_CREDENTIALS
    assert await store.find_user_by_email("a@x.com") is None


@pytest.mark.asyncio
async def test_migration_status_and_needs_migration() -> None:
    directory = InMemoryLegacyDirectory(
        identities=[
            LegacyIdentity(legacy_id="L-1", email="a@x.com", password="plain123"),
            LegacyIdentity(legacy_id="L-2", email="agent@x.com", password="plain123"),
        ],
        profiles=[seafarer("L-1"), seafarer("L-2", role="Manning Agency")],
    )
    engine, _ = build_engine(directory)

    assert await engine.needs_migration("a@x.com")
    assert not await engine.needs_migration("agent@x.com")
    assert not await engine.needs_migration("ghost@x.com")

    before = await engine.get_migration_status("a@x.com")
    assert before.to_dict() == {"needsMigration": True, "isMigrated": False}

    await engine.bulk_migrate(["a@x.com"])
    after = await engine.get_migration_status("a@x.com")
    assert after.is_migrated
    assert not after.needs_migration
    assert after.legacy_user_id == "L-1"


@pytest.mark.asyncio
async def test_needs_migration_propagates_directory_outage() -> None:
    engine, _ = build_engine(BrokenDirectory())
    with pytest.raises(LegacyDirectoryError):
        await engine.needs_migration("a@x.com")


@pytest.mark.asyncio
async def test_bulk_migrate_continues_past_failures() -> None:
    directory = InMemoryLegacyDirectory(
        identities=[
            LegacyIdentity(legacy_id="L-1", email="a@x.com", password="plain123"),
            LegacyIdentity(legacy_id="L-2", email="agent@x.com", password="plain123"),
        ],
        profiles=[seafarer("L-1"), seafarer("L-2", role="Manning Agency")],
    )
    engine, _ = build_engine(directory)

    report = await engine.bulk_migrate(["ghost@x.com", "a@x.com", "agent@x.com", "a@x.com"])

    assert report.total == 4
    assert report.successful == 1
    assert report.failed == 3
    assert [result.error for result in report.results] == [
        LEGACY_NOT_FOUND,
        None,
        INVALID_USER_CREDENTIALS,
        DUPLICATE_USER,
    ]
