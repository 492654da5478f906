"""
dapdip.database.engine — Engine, Background Sessions & Async Bridge
=====================================================================

Request handlers get their :class:`Session` from
:func:`dapdip.api.deps.get_session` and commit explicitly.  Two kinds of
code live outside that request scope:

* background jobs (voice-note transcription) open their own
  transaction with :func:`get_session`;
* ``async`` endpoints (the OAuth login/callback) hand sync database
  functions to a worker thread with :func:`run_db`.

The schema itself is owned by Alembic (``alembic upgrade head``); tests
build it with ``Base.metadata.create_all`` on SQLite.

Usage::

    engine = create_db_engine()

    with get_session(engine) as session:
        session.get(AudioMessage, audio_id).processing_status = "FAILED"

    token = await run_db(issue_token, engine, user_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

POOL_SIZE = int(os.getenv("DAPDIP_DB_POOL_SIZE", "5"))
POOL_OVERFLOW = int(os.getenv("DAPDIP_DB_POOL_OVERFLOW", "10"))


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build the PostgreSQL engine from *url* or ``DATABASE_URL``.

    Connections are pinged before checkout and recycled every 30 minutes,
    which keeps long-lived workers healthy behind PgBouncer or a managed
    database that drops idle sockets.

    Raises
    ------
    RuntimeError
        If neither *url* nor ``DATABASE_URL`` is set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. "
            "Copy .env.example to .env and point it at the DapDip database."
        )

    engine = create_engine(
        url,
        pool_size=POOL_SIZE,
        max_overflow=POOL_OVERFLOW,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=1800,
    )
    logger.info(
        "Database engine ready: %s/%s (pool %d+%d)",
        engine.url.host, engine.url.database, POOL_SIZE, POOL_OVERFLOW,
    )
    return engine


# ---------------------------------------------------------------------------
# Background sessions
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """One transaction for work that runs outside a request."""
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a synchronous database function on the default thread pool."""
    return await asyncio.to_thread(func, *args, **kwargs)
