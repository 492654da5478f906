"""
dapdip.api.deps — FastAPI dependency injection
================================================
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated, Any

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from dapdip.config import DapDipConfig, load_config
from dapdip.database.engine import create_db_engine
from dapdip.database.models import User
from dapdip.services.content_model import ContentModel
from dapdip.services.content_model import get_content_model as _get_content_model

_WEAK_SECRETS = frozenset({
    "dapdip-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> DapDipConfig:
    return load_config()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine) as session:
        yield session


def get_content_model() -> ContentModel:
    return _get_content_model()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------
def issue_token(user: User, *, max_age_days: int) -> str:
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "is_admin": bool(user.is_admin),
        "exp": datetime.now(UTC) + timedelta(days=max_age_days),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _decode_bearer(authorization: str | None) -> dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not str(payload.get("sub", "")).isdigit():
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token subject")
    return payload


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """Validate the bearer JWT and return its payload. Raises 401 if invalid."""
    return _decode_bearer(authorization)


def get_current_user_id(user: dict = Depends(get_current_user)) -> int:
    return int(user["sub"])


def get_optional_user_id(
    authorization: Annotated[str | None, Header()] = None,
) -> int | None:
    """The caller's id when a token is sent, else None (anonymous).

    A malformed or expired token is still a 401; only its absence is
    anonymous.
    """
    if authorization is None:
        return None
    return int(_decode_bearer(authorization)["sub"])


def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """Validate JWT and return admin user payload. Raises 401/403."""
    payload = _decode_bearer(authorization)
    if not payload.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload
