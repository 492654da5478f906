"""
dapdip.api.rate_limit — Per-User Sliding-Window Rate Limiting
===============================================================

Each bucket in ``config.yaml`` (``content``, ``ai``, ``auth`` …) gets a
:class:`RateLimiter`.  Events are keyed ``"<bucket>:<user_id>"`` in the
``rate_limit_events`` table so limits survive restarts and are shared
between workers.

Routes opt in with ``Depends(rate_limited("content"))``.  When the limit
is exceeded the dependency raises
:class:`~dapdip.errors.TooManyRequestsError`, rendered as HTTP 429 with a
``Retry-After`` header.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.orm import Session

from dapdip.api.deps import get_current_user_id
from dapdip.config import DapDipConfig
from dapdip.database.models import RateLimitEvent
from dapdip.errors import TooManyRequestsError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window rate limiter for one bucket, keyed by user id.

    DB-backed only — uses the ``rate_limit_events`` table for durable
    state that survives restarts.
    """

    def __init__(
        self,
        bucket: str,
        max_requests: int,
        window_seconds: int,
        *,
        engine: Engine,
    ) -> None:
        self.bucket = bucket
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.engine = engine

    def key(self, user_id: int | str) -> str:
        return f"{self.bucket}:{user_id}"

    @staticmethod
    def _normalize_dt(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    def _prune(self, session: Session, key: str, cutoff: datetime) -> None:
        session.execute(
            delete(RateLimitEvent).where(
                RateLimitEvent.key == key,
                RateLimitEvent.timestamp < cutoff,
            )
        )

    def check(self, user_id: int | str) -> tuple[bool, dict[str, Any]]:
        """Check if the user is within this bucket's limit.

        Returns (allowed, info) where info contains:
          - remaining: requests remaining in the window
          - reset: seconds until the oldest request expires
          - limit: the max requests per window
        """
        key = self.key(user_id)
        now = datetime.now(UTC)
        cutoff = now - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            self._prune(session, key, cutoff)
            timestamps = session.scalars(
                select(RateLimitEvent.timestamp)
                .where(RateLimitEvent.key == key)
                .order_by(RateLimitEvent.timestamp.asc())
            ).all()
            session.commit()

        count = len(timestamps)
        if count >= self.max_requests:
            oldest = self._normalize_dt(timestamps[0])
            reset = (oldest + timedelta(seconds=self.window_seconds) - now).total_seconds()
            return False, {
                "remaining": 0,
                "reset": max(1, int(reset) + 1),
                "limit": self.max_requests,
            }

        return True, {
            "remaining": self.max_requests - count,
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def record(self, user_id: int | str) -> dict[str, Any]:
        """Record an allowed request and return updated rate-limit info."""
        key = self.key(user_id)
        cutoff = datetime.now(UTC) - timedelta(seconds=self.window_seconds)

        with Session(self.engine) as session:
            self._prune(session, key, cutoff)
            session.add(RateLimitEvent(key=key, timestamp=datetime.now(UTC)))
            session.flush()
            count = session.scalar(
                select(func.count(RateLimitEvent.id)).where(RateLimitEvent.key == key)
            ) or 0
            session.commit()

        return {
            "remaining": max(0, self.max_requests - count),
            "reset": self.window_seconds,
            "limit": self.max_requests,
        }

    def reset(self, user_id: int | str | None = None) -> None:
        """Clear this bucket's state; for one user when *user_id* is given."""
        with Session(self.engine) as session:
            if user_id is None:
                stmt = delete(RateLimitEvent).where(RateLimitEvent.key.like(f"{self.bucket}:%"))
            else:
                stmt = delete(RateLimitEvent).where(RateLimitEvent.key == self.key(user_id))
            session.execute(stmt)
            session.commit()


# ---------------------------------------------------------------------------
# Module-level registry
# ---------------------------------------------------------------------------
_limiters: dict[str, RateLimiter] = {}


def get_rate_limiter(bucket: str) -> RateLimiter:
    """Return the limiter for *bucket*."""
    if not _limiters:
        raise RuntimeError("Rate limiter not configured — call configure_rate_limiter() first")
    try:
        return _limiters[bucket]
    except KeyError:
        raise RuntimeError(f"Unknown rate-limit bucket: {bucket!r}") from None


def configure_rate_limiter(*, engine: Engine, config: DapDipConfig) -> None:
    """Build one DB-backed limiter per configured bucket."""
    _limiters.clear()
    for bucket, rule in config.rate_limits.items():
        _limiters[bucket] = RateLimiter(
            bucket, rule.max_requests, rule.window_seconds, engine=engine
        )
    logger.info("Rate limiter configured: %s", ", ".join(sorted(_limiters)))


# ---------------------------------------------------------------------------
# FastAPI dependency factory: chains after get_current_user_id
# ---------------------------------------------------------------------------
def rate_limited(bucket: str):
    """Dependency that authenticates the caller and counts the request
    against *bucket*; it resolves to the caller's user id.

    ::

        @router.post("")
        def create_post(user_id: int = Depends(rate_limited("content")), ...):
    """

    async def _dependency(user_id: int = Depends(get_current_user_id)) -> int:
        limiter = get_rate_limiter(bucket)
        allowed, info = await asyncio.to_thread(limiter.check, user_id)

        if not allowed:
            logger.warning(
                "Rate limit exceeded for user %s on %s: %d/%ds",
                user_id, bucket, limiter.max_requests, limiter.window_seconds,
            )
            raise TooManyRequestsError(
                f"Rate limit exceeded: {limiter.max_requests} requests per "
                f"{limiter.window_seconds} seconds.",
                retry_after=info["reset"],
            )

        await asyncio.to_thread(limiter.record, user_id)
        return user_id

    _dependency.__name__ = f"rate_limited_{bucket}"
    return _dependency
