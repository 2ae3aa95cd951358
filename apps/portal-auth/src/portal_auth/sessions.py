from __future__ import annotations

import json
import secrets
import time
from typing import Any, Protocol

from portal_auth.models import SessionUser


class RedisLike(Protocol):
    async def setex(self, key: str, seconds: int, value: str) -> Any: ...

    async def get(self, key: str) -> str | None: ...

    async def delete(self, key: str) -> int: ...


def _new_session_id() -> str:
    return secrets.token_urlsafe(32)


class SessionStore:
    """Server-side sessions keyed by an opaque id carried in a cookie."""

    async def create(self, user: SessionUser) -> str:
        raise NotImplementedError

    async def get(self, session_id: str) -> SessionUser | None:
        raise NotImplementedError

    async def destroy(self, session_id: str) -> None:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int) -> None:
        self._ttl_seconds = ttl_seconds
        self._items: dict[str, tuple[float, SessionUser]] = {}

    async def create(self, user: SessionUser) -> str:
        session_id = _new_session_id()
        self._items[session_id] = (time.time() + self._ttl_seconds, user)
        return session_id

    async def get(self, session_id: str) -> SessionUser | None:
        item = self._items.get(session_id)
        if item is None:
            return None
        expiry, user = item
        if expiry < time.time():
            self._items.pop(session_id, None)
            return None
        return user

    async def destroy(self, session_id: str) -> None:
        self._items.pop(session_id, None)


class RedisSessionStore(SessionStore):
    def __init__(self, redis_client: RedisLike, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl_seconds = ttl_seconds

    async def create(self, user: SessionUser) -> str:
        session_id = _new_session_id()
        await self._redis.setex(self._key(session_id), self._ttl_seconds, json.dumps(user.to_dict()))
        return session_id

    async def get(self, session_id: str) -> SessionUser | None:
        raw = await self._redis.get(self._key(session_id))
        if raw is None:
            return None
        return SessionUser.from_dict(json.loads(raw))

    async def destroy(self, session_id: str) -> None:
        await self._redis.delete(self._key(session_id))

    def _key(self, session_id: str) -> str:
        return f"portal:session:{session_id}"


def create_session_store(redis_client: RedisLike | None, ttl_seconds: int) -> SessionStore:
    if redis_client is None:
        return InMemorySessionStore(ttl_seconds)
    return RedisSessionStore(redis_client, ttl_seconds)
