from devkit.redis import create_redis_client


def test_create_redis_client_none() -> None:
    assert create_redis_client(None) is None
    assert create_redis_client("") is None


def test_create_redis_client_from_url() -> None:
    client = create_redis_client("redis://localhost:6379/0")
    assert client is not None
    assert client.connection_pool.connection_kwargs["decode_responses"] is True
