"""
Security utilities: password and PIN hashing, JWT tokens.

1. SECRET HASHING (Argon2)
   - Login passwords and payment PINs are never stored in plaintext
   - Argon2id is memory-hard and time-hard, so short secrets like a 6-digit
     PIN are still expensive to brute-force from a leaked table
   - passlib's CryptContext verifies in constant time and allows a future
     scheme migration ("deprecated='auto'")

2. JWT TOKENS
   - After login the client receives a signed JWT whose "sub" is the
     account id and nothing else; role and balance are always re-read
     from the database on each request
   - HS256 signed with SECRET_KEY, expiring after ACCESS_TOKEN_EXPIRE_MINUTES
"""

from datetime import datetime, timedelta, timezone

from jose import jwt
from passlib.context import CryptContext

from canteen.config import settings


# ---------------------------------------------------------------------------
# 1. Secret hashing (Argon2)
# ---------------------------------------------------------------------------

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """Hash a plaintext password using Argon2id."""
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plaintext password against a stored Argon2 hash (constant time)."""
    return pwd_context.verify(plain_password, hashed_password)


def hash_pin(plain_pin: str) -> str:
    """Hash a payment PIN. PINs share the password scheme."""
    return pwd_context.hash(plain_pin)


def verify_pin_hash(plain_pin: str, hashed_pin: str) -> bool:
    """Verify a payment PIN against its stored hash."""
    return pwd_context.verify(plain_pin, hashed_pin)


# ---------------------------------------------------------------------------
# 2. JWT Tokens
# ---------------------------------------------------------------------------


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to encode (must include "sub", the account id).
        expires_delta: Optional custom lifetime. Defaults to
                       ACCESS_TOKEN_EXPIRE_MINUTES from settings.

    Returns:
        An encoded JWT string.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT access token.

    Raises:
        JWTError: If the token is expired, tampered with, or invalid.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
