"""Identity gate: password hashing, access tokens and the FastAPI auth dependencies."""

import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, get_settings
from .errors import ForbiddenError, UnauthenticatedError
from .models import Identity, Role, User

logger = logging.getLogger(__name__)

PASSWORD_ITERATIONS = 390_000
_HASH_ALGO = "pbkdf2_sha256"

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PASSWORD_ITERATIONS)
    return f"{_HASH_ALGO}${PASSWORD_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iter_str, salt_hex, digest_hex = encoded.split("$")
    except ValueError:
        return False
    if algorithm != _HASH_ALGO:
        return False
    try:
        iterations = int(iter_str)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
    except ValueError:
        return False
    computed = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(computed, expected)


def role_for_email(email: str, settings: Settings) -> Role:
    return Role.ADMIN if email.endswith(settings.admin_email_domain) else Role.SELLER


def create_access_token(user: User, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {"sub": user.id, "role": user.role.value, "exp": expire, "jti": uuid.uuid4().hex}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Settings) -> Identity:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token expired")
    except jwt.InvalidTokenError as exc:
        logger.info(f"Rejected access token: {exc}")
        raise UnauthenticatedError("Invalid or expired token")
    try:
        return Identity(id=str(payload["sub"]), role=Role(payload["role"]))
    except (KeyError, ValueError):
        raise UnauthenticatedError("Token is missing required claims")


# ---------------------------
# Dependencies
# ---------------------------
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Identity:
    token = credentials.credentials if credentials else request.cookies.get(settings.token_cookie_name)
    if not token:
        raise UnauthenticatedError("Access denied. No token provided.")
    return decode_access_token(token, settings)


def require_admin(user: Identity = Depends(get_current_user)) -> Identity:
    if not user.is_admin:
        raise ForbiddenError("Access restricted to administrators")
    return user
