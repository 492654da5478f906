"""
dapdip.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for deployment settings: the app identity, the
session lifetime, per-bucket rate limits and the simulated audio
processing delay.  Secrets (JWT, OAuth, database URL) stay in the
environment and are loaded through ``python-dotenv``.

Usage::

    from dapdip.config import load_config

    cfg = load_config()               # reads ./config.yaml, defaults if absent
    cfg.rate_limits["ai"].max_requests  # 20
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RateLimitRule:
    """Sliding-window allowance for one rate-limit bucket."""

    max_requests: int
    window_seconds: int


def _default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        "content": RateLimitRule(max_requests=20, window_seconds=60),
        "ai": RateLimitRule(max_requests=20, window_seconds=600),
        "auth": RateLimitRule(max_requests=5, window_seconds=60),
        "read": RateLimitRule(max_requests=100, window_seconds=60),
    }


@dataclass(frozen=True, slots=True)
class DapDipConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    app_name: str = "DapDip"
    session_max_age_days: int = 30
    rate_limits: dict[str, RateLimitRule] = field(default_factory=_default_rate_limits)
    # Seconds the background audio job waits before "transcribing"
    audio_processing_delay: float = 2.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml", *, required: bool = False) -> DapDipConfig:
    """Read *path* and return a :class:`DapDipConfig` instance.

    A missing file yields the built-in defaults unless *required* is set.

    Raises
    ------
    FileNotFoundError
        If *required* and the YAML file doesn't exist.
    KeyError
        If a rate-limit entry lacks ``max_requests`` or ``window_seconds``.
    """
    config_path = Path(path)
    if not config_path.exists():
        if required:
            raise FileNotFoundError(
                f"Configuration file not found: {config_path.resolve()}\n"
                "Hint: copy config.yaml.example → config.yaml and edit it."
            )
        return DapDipConfig()

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    rate_limits = _default_rate_limits()
    for bucket, rule in (raw.get("rate_limits") or {}).items():
        rate_limits[bucket] = RateLimitRule(
            max_requests=int(rule["max_requests"]),
            window_seconds=int(rule["window_seconds"]),
        )

    defaults = DapDipConfig()
    return DapDipConfig(
        app_name=raw.get("app_name", defaults.app_name),
        session_max_age_days=int(raw.get("session_max_age_days", defaults.session_max_age_days)),
        rate_limits=rate_limits,
        audio_processing_delay=float(
            raw.get("audio_processing_delay", defaults.audio_processing_delay)
        ),
    )
