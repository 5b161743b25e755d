"""
Authentication endpoints.

A single configured admin account; credentials come from settings.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr

from affitrack.core.config import settings
from affitrack.core.security import (
    Token,
    TokenData,
    authenticate_admin,
    create_access_token,
    require_auth,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


class LoginRequest(BaseModel):
    """Login credentials."""
    email: EmailStr
    password: str


class MeResponse(BaseModel):
    email: str
    role: str


@router.post("/login", response_model=Token)
async def login(credentials: LoginRequest):
    """Authenticate the admin account and receive a JWT token."""
    if not authenticate_admin(credentials.email, credentials.password):
        logger.warning("Failed admin login for %s", credentials.email)
        raise HTTPException(
            status_code=401,
            detail="Invalid email or password",
        )

    expires = timedelta(minutes=settings.jwt_access_token_expire_minutes)
    access_token = create_access_token(
        data={"email": settings.admin_email, "role": "admin"},
        expires_delta=expires,
    )
    logger.info("Admin login: %s", settings.admin_email)

    return Token(
        access_token=access_token,
        expires_in=int(expires.total_seconds()),
    )


@router.get("/me", response_model=MeResponse)
async def me(user: TokenData = Depends(require_auth)):
    """Return the identity carried by the current token."""
    return MeResponse(email=user.email, role=user.role)
