from __future__ import annotations

import pytest

from portal_auth.models import SessionUser
from portal_auth.sessions import InMemorySessionStore, RedisSessionStore, create_session_store

USER = SessionUser(
    id="u1",
    email="crew@example.com",
    name="Ana Reyes",
    role="JOBSEEKER",
    user_type="SEAFARER",
    current_job_status="NOT_LOOKING",
)


class FakeRedis:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def setex(self, key: str, seconds: int, value: str) -> bool:
        self.values[key] = value
        self.ttls[key] = seconds
        return True

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def delete(self, key: str) -> int:
        return 1 if self.values.pop(key, None) is not None else 0


@pytest.mark.asyncio
async def test_in_memory_session_lifecycle() -> None:
    store = InMemorySessionStore(ttl_seconds=60)
    session_id = await store.create(USER)

    assert await store.get(session_id) == USER
    await store.destroy(session_id)
    assert await store.get(session_id) is None


@pytest.mark.asyncio
async def test_in_memory_session_expires() -> None:
    store = InMemorySessionStore(ttl_seconds=-1)
    session_id = await store.create(USER)
    assert await store.get(session_id) is None


@pytest.mark.asyncio
async def test_redis_session_round_trip() -> None:
    redis_client = FakeRedis()
    store = RedisSessionStore(redis_client, ttl_seconds=120)
    session_id = await store.create(USER)

    key = f"portal:session:{session_id}"
    assert redis_client.ttls[key] == 120
    assert await store.get(session_id) == USER
    await store.destroy(session_id)
    assert await store.get(session_id) is None


def test_create_session_store_fallback() -> None:
    assert isinstance(create_session_store(None, 60), InMemorySessionStore)
    assert isinstance(create_session_store(FakeRedis(), 60), RedisSessionStore)
