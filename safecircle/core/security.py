"""OTP hashing, link tokens and JWT utilities."""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from safecircle.core.config import settings

_dummy_hash: bytes | None = None


def generate_numeric_code(length: int | None = None) -> str:
    """Fixed-length numeric code; leading zeros are kept."""
    length = length or settings.otp_length
    return str(secrets.randbelow(10**length)).zfill(length)


def hash_code(code: str) -> str:
    """Hash a plain OTP."""
    return bcrypt.hashpw(code.encode(), bcrypt.gensalt(rounds=settings.otp_bcrypt_rounds)).decode()


def verify_code_hash(plain: str, hashed: str | None) -> bool:
    """Verify a plain OTP against a hash. A missing hash never matches."""
    if not hashed:
        return False
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def burn_code_check(plain: str) -> None:
    """Spend the same bcrypt time as a real comparison, for unknown numbers."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = bcrypt.hashpw(b"000000", bcrypt.gensalt(rounds=settings.otp_bcrypt_rounds))
    bcrypt.checkpw(plain.encode(), _dummy_hash)


def generate_link_token() -> str:
    return str(uuid.uuid4())


def create_access_token(
    subject: str | int,
    extra: dict[str, Any] | None = None,
    expires_at: datetime | None = None,
) -> str:
    """Create a JWT access token."""
    now = datetime.now(timezone.utc)
    expire = expires_at or now + timedelta(minutes=settings.jwt_expire_minutes)
    payload = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
    }
    if extra:
        payload.update(extra)
    return jwt.encode(
        payload,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate a JWT. Returns payload or None if invalid."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        return None
