"""Password hashing for local credentials and verification of legacy values.

Local credentials use bcrypt only. Legacy directory records store passwords in
whatever shape the old system left behind, so ``verify_legacy_password`` sniffs
the stored value: plaintext, a bcrypt hash, or a bare MD5 hex digest.
"""

from __future__ import annotations

from enum import StrEnum
import hashlib
import hmac

import bcrypt

DEFAULT_ROUNDS = 12
BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")
MD5_HEX_LENGTH = 32
# bcrypt only consumes the first 72 bytes; newer releases reject longer input.
_BCRYPT_MAX_BYTES = 72


class LegacyPasswordFormat(StrEnum):
    BCRYPT = "bcrypt"
    MD5 = "md5"
    UNKNOWN = "unknown"


def is_bcrypt_hash(value: str | None) -> bool:
    return bool(value) and value.startswith(BCRYPT_PREFIXES)


def detect_legacy_format(stored: str) -> LegacyPasswordFormat:
    if is_bcrypt_hash(stored):
        return LegacyPasswordFormat.BCRYPT
    if len(stored) == MD5_HEX_LENGTH:
        return LegacyPasswordFormat.MD5
    return LegacyPasswordFormat.UNKNOWN


def _secret(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def _bcrypt_hash_bytes(hashed: str) -> bytes:
    # PHP-era $2y$ hashes are byte-compatible with $2b$.
    if hashed.startswith("$2y$"):
        hashed = "$2b$" + hashed[4:]
    return hashed.encode("ascii")


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    return bcrypt.hashpw(_secret(password), bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(password: str, hashed: str | None) -> bool:
    """Check ``password`` against a local bcrypt credential."""
    if not is_bcrypt_hash(hashed):
        return False
    try:
        return bcrypt.checkpw(_secret(password), _bcrypt_hash_bytes(hashed))
    except ValueError:
        return False


def verify_legacy_password(password: str, stored: str | None) -> bool:
    """Verify against a legacy value of undetermined format.

    Tried in order, first match wins: exact match (plaintext), bcrypt prefix,
    32-character MD5 hex digest. Anything else is an unknown format and fails.
    """
    if not stored:
        return False
    if hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8")):
        return True
    legacy_format = detect_legacy_format(stored)
    if legacy_format is LegacyPasswordFormat.BCRYPT:
        return verify_password(password, stored)
    if legacy_format is LegacyPasswordFormat.MD5:
        digest = hashlib.md5(password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(digest.encode("ascii"), stored.encode("utf-8"))
    return False


def credential_from_legacy(stored: str, rounds: int = DEFAULT_ROUNDS) -> str:
    """Local credential value for a migrated legacy password.

    Values that already carry a bcrypt prefix are kept byte-for-byte; every
    other value is hashed fresh.
    """
    if is_bcrypt_hash(stored):
        return stored
    return hash_password(stored, rounds=rounds)
