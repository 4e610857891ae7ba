"""Password hashing, refresh-token digests and JWT signing/verification."""

import hashlib
import hmac
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

# Bcrypt cost (rounds); 10 matches the stored hashes of existing accounts.
BCRYPT_ROUNDS = 10

# Min/max lengths for signup validation.
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
FULL_NAME_MAX_LEN = 100
EMAIL_MAX_LEN = 255

TOKEN_TYPE_ACCESS = "access"
TOKEN_TYPE_REFRESH = "refresh"


def hash_password(plain_password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash (constant time inside bcrypt)."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def hash_token(token: str) -> str:
    """
    SHA-256 hex digest of a refresh token for storage.

    bcrypt is not usable here: it only reads the first 72 bytes, and JWTs issued to the
    same user share a much longer prefix.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, stored_hash: str | None) -> bool:
    """Constant-time comparison of a token against a stored digest."""
    if not stored_hash:
        return False
    return hmac.compare_digest(hash_token(token), stored_hash)


def create_token(
    claims: dict[str, Any],
    token_type: str,
    secret: str,
    algorithm: str,
    ttl: timedelta,
) -> str:
    """Sign a JWT carrying claims plus type, jti, iat and exp."""
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        **claims,
        "type": token_type,
        "jti": uuid.uuid4().hex,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(token: str, secret: str, algorithm: str) -> dict[str, Any]:
    """
    Decode and validate a JWT; return its payload.
    Raises jwt.PyJWTError on a bad signature, expired token or malformed input.
    """
    return jwt.decode(
        token,
        secret,
        algorithms=[algorithm],
        options={"require": ["sub", "exp", "iat", "type"]},
    )
