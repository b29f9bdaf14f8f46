"""Security utilities"""

from datetime import datetime, timedelta
from typing import Optional
from jose import jwt, JWTError

from .config import settings


def create_access_token(subject: str, role: str) -> str:
    """Create access token carrying the actor id and role"""
    expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.utcnow() + expires_delta

    to_encode = {"exp": expire, "sub": subject, "role": role}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """Verify token and return its claims"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub") or not payload.get("role"):
        return None
    return payload
