"""
dapdip.api.auth — GitHub OAuth, email sign-in & JWT issuance
==============================================================
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import UTC, datetime, timedelta
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy import delete
from sqlalchemy.orm import Session

from dapdip.api.deps import (
    get_config,
    get_current_user_id,
    get_engine,
    get_session,
    issue_token,
)
from dapdip.api.rate_limit import get_rate_limiter
from dapdip.config import DapDipConfig
from dapdip.database.engine import get_session as db_session
from dapdip.database.engine import run_db
from dapdip.database.models import OAuthState
from dapdip.errors import TooManyRequestsError
from dapdip.services import user_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_API = "https://api.github.com"


def _oauth_env() -> tuple[str, str, str, str]:
    """Return required OAuth env vars or raise a clear 500."""
    client_id = os.getenv("GITHUB_CLIENT_ID", "").strip()
    client_secret = os.getenv("GITHUB_CLIENT_SECRET", "").strip()
    redirect_uri = os.getenv("GITHUB_REDIRECT_URI", "").strip()
    frontend_url = os.getenv("FRONTEND_URL", "").strip()

    missing = []
    if not client_id:
        missing.append("GITHUB_CLIENT_ID")
    if not client_secret:
        missing.append("GITHUB_CLIENT_SECRET")
    if not redirect_uri:
        missing.append("GITHUB_REDIRECT_URI")
    if not frontend_url:
        missing.append("FRONTEND_URL")

    if missing:
        raise HTTPException(
            status_code=500,
            detail="GitHub OAuth is not configured: missing " + ", ".join(missing),
        )

    return client_id, client_secret, redirect_uri, frontend_url


OAUTH_STATE_TTL_SECONDS = 600


def _store_oauth_state(engine, state: str) -> None:
    """Persist an OAuth state token and prune stale entries."""
    cutoff = datetime.now(UTC) - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with db_session(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        session.add(OAuthState(state=state, created_at=datetime.now(UTC)))


def _consume_oauth_state(engine, state: str) -> bool:
    """Consume a one-time OAuth state token if valid and unexpired."""
    cutoff = datetime.now(UTC) - timedelta(seconds=OAUTH_STATE_TTL_SECONDS)
    with db_session(engine) as session:
        session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        row = session.get(OAuthState, state)
        if row is None:
            return False
        session.delete(row)
        return True


def _sign_in(engine, email: str, name: str | None, image: str | None, max_age_days: int) -> str:
    with db_session(engine) as session:
        user = user_service.get_or_create_user(session, email=email, name=name, image=image)
        user_service.touch_last_active(user)
        return issue_token(user, max_age_days=max_age_days)


@router.get("/login")
async def login(engine=Depends(get_engine)):
    """Redirect to the GitHub OAuth consent screen."""
    client_id, _, redirect_uri, _ = _oauth_env()

    state = secrets.token_urlsafe(32)
    await run_db(_store_oauth_state, engine, state)

    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "scope": "read:user user:email",
            "state": state,
        }
    )
    return RedirectResponse(f"{GITHUB_AUTHORIZE_URL}?{query}")


@router.get("/callback")
async def callback(
    code: str,
    state: str,
    cfg: DapDipConfig = Depends(get_config),
    engine=Depends(get_engine),
):
    """Exchange the OAuth code, upsert the user and hand a JWT to the frontend."""
    client_id, client_secret, redirect_uri, frontend_url = _oauth_env()

    if not await run_db(_consume_oauth_state, engine, state):
        raise HTTPException(400, "Invalid or expired OAuth state")

    transport = httpx.AsyncHTTPTransport(retries=1)
    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        token_resp = await client.post(
            GITHUB_TOKEN_URL,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            },
            headers={"Accept": "application/json"},
        )
        if token_resp.status_code != 200:
            raise HTTPException(400, "OAuth token exchange failed")

        access_token = token_resp.json().get("access_token")
        if not access_token:
            raise HTTPException(400, "No access token returned")

        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }
        user_resp = await client.get(f"{GITHUB_API}/user", headers=headers)
        if user_resp.status_code != 200:
            raise HTTPException(400, "Failed to fetch GitHub user")
        profile = user_resp.json()

        email = profile.get("email")
        if not email:
            # Private primary address: ask the emails endpoint.
            emails_resp = await client.get(f"{GITHUB_API}/user/emails", headers=headers)
            if emails_resp.status_code == 200:
                email = next(
                    (e["email"] for e in emails_resp.json() if e.get("primary") and e.get("verified")),
                    None,
                )

    if not email:
        return RedirectResponse(f"{frontend_url}/auth/error?error=no_email")

    token = await run_db(
        _sign_in,
        engine,
        email,
        profile.get("name") or profile.get("login"),
        profile.get("avatar_url"),
        cfg.session_max_age_days,
    )
    logger.info("GitHub sign-in for %s", email)
    return RedirectResponse(f"{frontend_url}/auth/callback?token={token}")


class CredentialsLogin(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str | None = Field(None, max_length=128)


@router.post("/credentials")
def credentials_login(
    body: CredentialsLogin,
    session: Session = Depends(get_session),
    cfg: DapDipConfig = Depends(get_config),
):
    """Email and password sign-in for accounts that have set a password."""
    email = body.email.strip().lower()

    limiter = get_rate_limiter("auth")
    allowed, info = limiter.check(email)
    if not allowed:
        raise TooManyRequestsError("Too many sign-in attempts", retry_after=info["reset"])
    limiter.record(email)

    user = user_service.authenticate(session, email, body.password)
    if user is None:
        raise HTTPException(401, "Invalid credentials")
    user_service.touch_last_active(user)
    session.commit()
    return {
        "token": issue_token(user, max_age_days=cfg.session_max_age_days),
        "user": user_service.get_profile(session, user.id),
    }


@router.get("/me")
def me(
    user_id: int = Depends(get_current_user_id),
    session: Session = Depends(get_session),
):
    """Return the authenticated user's profile."""
    return user_service.get_profile(session, user_id)
