"""Security utilities - JWT, password hashing, opaque token generation"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Dict, Any
import base64
import hmac
import secrets
import uuid

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from jose import JWTError, jwt

from mango.config import settings
from mango.core.clock import utc_now

RandomBytes = Callable[[int], bytes]

SALT_BYTES = 128 // 8
REFRESH_TOKEN_BYTES = 64
HASH_BYTES = 32


def _derive(password: str, salt: str) -> str:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=HASH_BYTES,
        salt=salt.encode('utf-8'),
        iterations=settings.PASSWORD_HASH_ITERATIONS,
    )
    return base64.b64encode(kdf.derive(password.encode('utf-8'))).decode('ascii')


def generate_salt(random_bytes: RandomBytes = secrets.token_bytes) -> str:
    """
    Generate a base64-encoded 128-bit salt

    Args:
        random_bytes: Cryptographically secure byte source

    Returns:
        str: Base64 salt
    """
    return base64.b64encode(random_bytes(SALT_BYTES)).decode('ascii')


def get_password_hash(password: str, salt: str) -> str:
    """
    Hash a password with PBKDF2-HMAC-SHA256

    The stored credential is ``base64(derived) + "." + salt``.

    Args:
        password: Plain text password
        salt: Base64 salt from generate_salt

    Returns:
        str: Stored credential blob
    """
    return f"{_derive(password, salt)}.{salt}"


def verify_password(plain_password: str, hashed_password: str, salt: str) -> bool:
    """
    Verify a password against its stored hash and salt

    Fails closed when either stored value is empty or the hash is not in
    ``hash.salt`` form.

    Args:
        plain_password: Plain text password
        hashed_password: Stored credential blob
        salt: Stored salt

    Returns:
        bool: True if password matches
    """
    if not hashed_password or not salt:
        return False
    if len(hashed_password.split('.')) != 2:
        return False

    candidate = get_password_hash(plain_password, salt)
    return hmac.compare_digest(candidate.encode('utf-8'), hashed_password.encode('utf-8'))


def generate_refresh_token(random_bytes: RandomBytes = secrets.token_bytes) -> str:
    """
    Generate an opaque refresh token (64 random bytes, base64)

    Returns:
        str: Refresh token string
    """
    return base64.b64encode(random_bytes(REFRESH_TOKEN_BYTES)).decode('ascii')


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    Create JWT access token

    Args:
        data: Claims to encode in token
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
        now: Issue time, defaults to the current UTC time

    Returns:
        str: Encoded JWT token
    """
    to_encode = data.copy()
    issued_at = now or utc_now()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.setdefault("jti", str(uuid.uuid4()))
    to_encode.update({
        "exp": issued_at + expires_delta,
        "iat": issued_at,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    })

    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and verify JWT token (signature, expiry, issuer, audience)

    Args:
        token: JWT token string

    Returns:
        Optional[Dict]: Decoded token data or None if invalid
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError:
        return None
