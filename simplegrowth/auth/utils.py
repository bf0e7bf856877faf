"""Password hashing, access tokens and the one-time tokens behind reset and verification links."""
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import JWTError, jwt

from simplegrowth.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_LIFETIME = timedelta(days=7)
PASSWORD_RESET_LIFETIME = timedelta(hours=1)
EMAIL_VERIFICATION_LIFETIME = timedelta(hours=24)

# Reset tokens share the verification table; the prefix tells them apart.
PASSWORD_RESET_PREFIX = "password_reset:"

BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))


def create_access_token(user_id: str, email: str) -> str:
    """Signed bearer token for the portal, valid for seven days."""
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email,
        "iat": issued_at,
        "exp": issued_at + ACCESS_TOKEN_LIFETIME,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Claims of a valid token, or None when the signature or expiry check fails."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def generate_one_time_token() -> str:
    return secrets.token_hex(32)


def password_reset_identifier(email: str) -> str:
    return f"{PASSWORD_RESET_PREFIX}{email}"


def get_password_reset_expiry() -> datetime:
    return datetime.now(timezone.utc) + PASSWORD_RESET_LIFETIME


def get_email_verification_expiry() -> datetime:
    return datetime.now(timezone.utc) + EMAIL_VERIFICATION_LIFETIME
