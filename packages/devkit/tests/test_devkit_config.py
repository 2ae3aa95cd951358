from devkit.config import load_settings


def test_load_settings_reads_env(monkeypatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://example")
    monkeypatch.setenv("REDIS_URL", "redis://example:6379/0")
    monkeypatch.setenv("PASSWORD_HASH_ROUNDS", "10")
    settings = load_settings("portal-auth")

    assert settings.SERVICE_NAME == "portal-auth"
    assert settings.DATABASE_URL == "postgresql://example"
    assert settings.REDIS_URL == "redis://example:6379/0"
    assert settings.PASSWORD_HASH_ROUNDS == 10


def test_legacy_directory_requires_url_and_key(monkeypatch) -> None:
    monkeypatch.delenv("LEGACY_DIRECTORY_SERVICE_KEY", raising=False)
    monkeypatch.setenv("LEGACY_DIRECTORY_URL", "https://legacy.example.com")
    assert load_settings("portal-auth").legacy_directory_configured is False

    monkeypatch.setenv("LEGACY_DIRECTORY_SERVICE_KEY", "service-key")
    settings = load_settings("portal-auth")
    assert settings.legacy_directory_configured is True
    assert settings.LEGACY_ACCOUNTS_TABLE == "UserAccounts"
    assert settings.LEGACY_DETAILS_TABLE == "UserDetails"
