from __future__ import annotations

from typing import Any

import redis.asyncio as redis


def create_redis_client(url: str | None) -> Any | None:
    """Build an asyncio Redis client, or ``None`` when no URL is configured.

    The client connects lazily, so building it never touches the network.
    """
    if not url:
        return None
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        health_check_interval=30,
    )
