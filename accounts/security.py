"""
Password hashing, password policy, JWT signing and reset-token helpers.
"""

import hashlib
import re
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple

from jose import JWTError, jwt
from passlib.hash import pbkdf2_sha256 as hasher

from api.config import config as api_config
from .exceptions import Unauthorized

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    """Hash password with pbkdf2_sha256"""
    return hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify password against hash; a malformed hash never verifies."""
    try:
        return hasher.verify(password, password_hash)
    except (ValueError, TypeError):
        return False


def validate_password_strength(password: str) -> List[str]:
    """
    Check a password against the account policy.

    Returns:
        One message per rule the password breaks; empty when it is acceptable
    """
    errors = []

    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one digit")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[^A-Za-z0-9]", password):
        errors.append("Password must contain at least one non-alphanumeric character")

    return errors


def generate_security_stamp() -> str:
    return str(uuid.uuid4())


def sign_jwt_token(user_id: str, email: str) -> Tuple[str, datetime]:
    """
    Sign an access token for a user.

    Returns:
        (token, expiration)
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=api_config.jwt_lifetime_minutes)

    payload = {
        "sub": user_id,
        "email": email,
        "jti": str(uuid.uuid4()),
        "iss": api_config.jwt_issuer,
        "aud": api_config.jwt_audience,
        "iat": now,
        "exp": expires_at,
    }

    token = jwt.encode(payload, api_config.jwt_secret, algorithm=api_config.jwt_algorithm)
    return token, expires_at


def verify_jwt_token(token: str) -> Dict[str, Any]:
    """Verify signature, issuer, audience and expiry; return the claims."""
    try:
        payload = jwt.decode(
            token,
            api_config.jwt_secret,
            algorithms=[api_config.jwt_algorithm],
            issuer=api_config.jwt_issuer,
            audience=api_config.jwt_audience,
        )
    except JWTError as e:
        raise Unauthorized("Invalid token") from e

    if not payload.get("sub") or not payload.get("jti"):
        raise Unauthorized("Invalid token")
    return payload


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def hash_reset_token(token: str) -> str:
    """Only the digest of a reset token is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def reset_token_matches(token: str, token_hash: str) -> bool:
    return secrets.compare_digest(hash_reset_token(token), token_hash)
