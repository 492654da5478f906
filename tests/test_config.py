"""
tests/test_config.py — Configuration Loader Tests
===================================================
"""

from __future__ import annotations

import pytest

from dapdip.config import DapDipConfig, RateLimitRule, load_config


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "absent.yaml")
        assert cfg == DapDipConfig()
        assert cfg.rate_limits["auth"] == RateLimitRule(5, 60)
        assert cfg.rate_limits["ai"] == RateLimitRule(20, 600)

    def test_missing_required_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "absent.yaml", required=True)

    def test_overrides_merge_with_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "app_name: DapDip Staging\n"
            "audio_processing_delay: 0\n"
            "rate_limits:\n"
            "  content:\n"
            "    max_requests: 5\n"
            "    window_seconds: 30\n"
            "  uploads:\n"
            "    max_requests: 2\n"
            "    window_seconds: 10\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        assert cfg.app_name == "DapDip Staging"
        assert cfg.audio_processing_delay == 0.0
        assert cfg.session_max_age_days == 30
        assert cfg.rate_limits["content"] == RateLimitRule(5, 30)
        assert cfg.rate_limits["uploads"] == RateLimitRule(2, 10)
        assert cfg.rate_limits["read"] == RateLimitRule(100, 60)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == DapDipConfig()

    def test_incomplete_rule(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("rate_limits:\n  ai:\n    max_requests: 3\n", encoding="utf-8")
        with pytest.raises(KeyError):
            load_config(path)
