"""
Admin API authentication.

There is one operator account, configured through ``ADMIN_EMAIL`` and
``ADMIN_PASSWORD_HASH`` (bcrypt). A successful login returns a signed JWT
whose ``sub`` claim is the admin email. Tracking routes never authenticate.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from affitrack.core.config import settings

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# A missing header is answered by require_auth
bearer_scheme = HTTPBearer(auto_error=False)

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


class TokenData(BaseModel):
    """Identity carried by a validated token."""
    email: str
    role: str = ADMIN_ROLE
    exp: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class Token(BaseModel):
    """Login response."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """bcrypt check; an unset hash never matches."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Produce a value suitable for ``ADMIN_PASSWORD_HASH``."""
    return pwd_context.hash(password)


def authenticate_admin(email: str, password: str) -> bool:
    """Check login credentials against the configured admin account."""
    given = email.strip().lower().encode("utf-8")
    expected = settings.admin_email.strip().lower().encode("utf-8")
    if not hmac.compare_digest(given, expected):
        return False
    return verify_password(password, settings.admin_password_hash)


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Sign a token for ``data["email"]`` with ``data["role"]``.

    The lifetime defaults to ``JWT_ACCESS_TOKEN_EXPIRE_MINUTES``.
    """
    now = datetime.utcnow()
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)

    claims = {k: v for k, v in data.items() if k != "email"}
    claims.update({
        "sub": data["email"],
        "role": data.get("role", ADMIN_ROLE),
        "iat": now,
        "exp": now + lifetime,
    })
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> TokenData:
    """Validate signature and expiry. Raises 401 on any problem."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as exc:
        logger.debug("Rejected token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers=_UNAUTHORIZED_HEADERS,
        )

    email = payload.get("sub")
    if not email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers=_UNAUTHORIZED_HEADERS,
        )

    exp = payload.get("exp")
    return TokenData(
        email=email,
        role=payload.get("role", ""),
        exp=datetime.utcfromtimestamp(exp) if isinstance(exp, (int, float)) else None,
    )


async def require_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenData:
    """Dependency: any valid token."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers=_UNAUTHORIZED_HEADERS,
        )
    return decode_token(credentials.credentials)


async def require_admin(user: TokenData = Depends(require_auth)) -> TokenData:
    """Dependency: a valid token with the admin role."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
