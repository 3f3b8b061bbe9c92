import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from core.config import settings
from core.errors import AuthError
import logging

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)

def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token for ``subject`` (the user id)"""
    now = utcnow()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(subject),
        "type": "access",
        "iat": int(now.timestamp()),
        "exp": now + expires_delta,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def generate_refresh_token() -> str:
    """Opaque, URL-safe refresh token value"""
    return secrets.token_urlsafe(32)

def decode_access_token(token: str) -> dict:
    """Decode an access token or raise AuthError.

    Expired and malformed tokens get different reasons for the logs, but
    both are the same error kind for the caller.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("access token expired")
    except JWTError:
        raise AuthError("invalid access token")
    if payload.get("type") != "access" or not payload.get("sub"):
        raise AuthError("invalid access token")
    return payload

def verify_token(token: str) -> Optional[dict]:
    """Verify and decode JWT token, returning None instead of raising"""
    try:
        return decode_access_token(token)
    except AuthError as e:
        logger.debug(f"JWT decode failed: {e}")
        return None
