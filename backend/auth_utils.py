"""
Authentication Utilities
JWT and Password Hashing

Provides JWT token generation/validation and password hashing utilities.
The signing secret is passed in by callers; it comes from Settings.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any
import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

JWT_ALGORITHM = "HS256"
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = 60  # 1 hour

# Password hashing configuration (Argon2, salted per hash)
password_hasher = PasswordHasher()


def hash_password(password: str) -> str:
    """
    Hash a password using Argon2

    Args:
        password: Plain text password

    Returns:
        Hashed password string
    """
    return password_hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash

    Args:
        plain_password: Plain text password to verify
        hashed_password: Hashed password from database

    Returns:
        True if password matches, False otherwise
    """
    if not hashed_password:
        return False
    try:
        password_hasher.verify(hashed_password, plain_password)
        return True
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def create_access_token(
    data: Dict[str, Any],
    secret: str,
    expires_delta: Optional[timedelta] = None,
    algorithm: str = JWT_ALGORITHM,
) -> str:
    """
    Create a JWT access token

    Args:
        data: Dictionary of claims to encode in the token
        secret: Signing secret
        expires_delta: Optional expiration time delta (default 1 hour)
        algorithm: JWT algorithm

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    now = datetime.utcnow()
    expire = now + (expires_delta or timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES))

    to_encode.update({
        "exp": expire,
        "iat": now
    })

    return jwt.encode(to_encode, secret, algorithm=algorithm)


def decode_access_token(token: str, secret: str, algorithm: str = JWT_ALGORITHM) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token

    Args:
        token: JWT token string
        secret: Signing secret
        algorithm: JWT algorithm

    Returns:
        Dictionary of claims if valid, None if invalid/expired
    """
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        # Token has expired
        return None
    except jwt.InvalidTokenError:
        # Bad signature, malformed token, etc.
        return None
