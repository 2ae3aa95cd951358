import hashlib

from portal_auth.passwords import (
    LegacyPasswordFormat,
    credential_from_legacy,
    detect_legacy_format,
    hash_password,
    is_bcrypt_hash,
    verify_legacy_password,
    verify_password,
)

FAST_ROUNDS = 4


def test_hash_password_round_trips_with_bcrypt() -> None:
    hashed = hash_password("s3cret-pass", rounds=FAST_ROUNDS)
    assert hashed.startswith("$2b$04$")
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_rejects_non_bcrypt_values() -> None:
    assert not verify_password("plain", "plain")
    assert not verify_password("plain", None)
    assert not verify_password("plain", "$2b$garbage")


def test_verify_password_accepts_php_style_prefix() -> None:
    hashed = hash_password("legacy-php", rounds=FAST_ROUNDS)
    php_style = "$2y$" + hashed[4:]
    assert verify_password("legacy-php", php_style)


def test_long_passwords_are_truncated_to_bcrypt_limit() -> None:
    password = "x" * 100
    hashed = hash_password(password, rounds=FAST_ROUNDS)
    assert verify_password("x" * 72, hashed)


def test_detect_legacy_format() -> None:
    assert detect_legacy_format("$2a$10$abcdefghijklmnopqrstuv") is LegacyPasswordFormat.BCRYPT
    assert detect_legacy_format("5ebe2294ecd0e0f08eab7690d2a6ee69") is LegacyPasswordFormat.MD5
    assert detect_legacy_format("hunter2") is LegacyPasswordFormat.UNKNOWN
    assert is_bcrypt_hash("$2y$10$abc")
    assert not is_bcrypt_hash("")


def test_legacy_plaintext_match() -> None:
    assert verify_legacy_password("hunter2", "hunter2")
    assert not verify_legacy_password("hunter3", "hunter2")


def test_legacy_bcrypt_match() -> None:
    stored = hash_password("Abcd1234", rounds=FAST_ROUNDS)
    assert verify_legacy_password("Abcd1234", stored)
    assert not verify_legacy_password("abcd1234", stored)


def test_legacy_md5_match() -> None:
    stored = hashlib.md5(b"secret").hexdigest()
    assert verify_legacy_password("secret", stored)
    assert not verify_legacy_password("Secret", stored)


def test_legacy_plaintext_of_md5_length_still_matches_exactly() -> None:
    stored = "a" * 32
    assert verify_legacy_password("a" * 32, stored)
    assert not verify_legacy_password("a", stored)


def test_legacy_empty_or_unknown_values_fail() -> None:
    assert not verify_legacy_password("anything", "")
    assert not verify_legacy_password("anything", None)
    assert not verify_legacy_password("anything", "short-unknown")


def test_credential_from_legacy_keeps_bcrypt_verbatim() -> None:
    stored = hash_password("kept", rounds=FAST_ROUNDS)
    assert credential_from_legacy(stored, rounds=FAST_ROUNDS) == stored


def test_credential_from_legacy_hashes_plaintext() -> None:
    credential = credential_from_legacy("Plaintext1", rounds=FAST_ROUNDS)
    assert credential != "Plaintext1"
    assert verify_password("Plaintext1", credential)
