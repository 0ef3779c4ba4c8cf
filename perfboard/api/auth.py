"""
perfboard.api.auth — Admin password login + JWT session cookie
===============================================================

A single shared ``ADMIN_PASSWORD`` gates the admin surface.  A successful
login issues an HS256 JWT, set as the ``authToken`` cookie and also
returned in the body for clients that prefer a Bearer header.
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field

from perfboard.api.deps import (
    AUTH_COOKIE,
    JWT_ALGORITHM,
    JWT_SECRET,
    get_config,
    get_current_admin,
)
from perfboard.config import PerfboardConfig

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    password: str
    username: str = Field(default="admin", max_length=64)


def _admin_password() -> str:
    password = os.getenv("ADMIN_PASSWORD", "")
    if not password:
        raise HTTPException(
            status_code=500,
            detail="Admin login is not configured: missing ADMIN_PASSWORD",
        )
    return password


def _secure_cookies() -> bool:
    return os.getenv("PERFBOARD_ENV", "").strip().lower() == "production"


def issue_token(operator: str, ttl_hours: int) -> str:
    payload = {
        "sub": operator,
        "is_admin": True,
        "exp": datetime.now(UTC) + timedelta(hours=ttl_hours),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


@router.post("/login")
def login(
    body: LoginRequest,
    response: Response,
    cfg: PerfboardConfig = Depends(get_config),
):
    """Check the admin password and start a session."""
    expected = _admin_password()
    if not secrets.compare_digest(body.password.encode(), expected.encode()):
        logger.warning("Failed admin login attempt for %r", body.username)
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid password")

    operator = body.username.strip() or "admin"
    token = issue_token(operator, cfg.token_ttl_hours)
    response.set_cookie(
        AUTH_COOKIE,
        token,
        max_age=cfg.token_ttl_hours * 3600,
        httponly=True,
        secure=_secure_cookies(),
        samesite="lax",
    )
    logger.info("Admin login: %s", operator)
    return {"message": "Login successful", "token": token}


@router.get("/check")
def check(admin: dict = Depends(get_current_admin)):
    """Confirm the caller holds a valid admin session."""
    return {"authenticated": True, "username": admin.get("sub") or "admin", "isAdmin": True}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE)
    return {"message": "Logged out"}
