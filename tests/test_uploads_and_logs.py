"""
tests/test_uploads_and_logs.py — Upload Storage & Admin Log Buffer
====================================================================
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from conftest import auth
from dapdip.services import upload_service
from dapdip.services.log_buffer import LogBuffer, LogEntry, RingBufferHandler


# ---------------------------------------------------------------------------
# Upload validation & storage
# ---------------------------------------------------------------------------
class TestValidateUpload:
    def test_accepts_codec_suffixed_mime(self):
        ext = upload_service.validate_upload("Voice.WEBM", 100, "audio/webm;codecs=opus", "audio")
        assert ext == ".webm"

    @pytest.mark.parametrize(
        "filename, size, mime, kind, message",
        [
            ("a.png", 10, "image/png", "document", "Unknown upload kind"),
            ("a.png", 11 * 1024 * 1024, "image/png", "image", "File too large"),
            ("a.exe", 10, None, "image", "File type not allowed"),
            ("a.png", 10, "text/html", "image", "MIME type not allowed"),
        ],
    )
    def test_rejections(self, filename, size, mime, kind, message):
        with pytest.raises(ValueError, match=message):
            upload_service.validate_upload(filename, size, mime, kind)


class TestStorage:
    def test_save_then_delete(self):
        url = asyncio.run(upload_service.save_upload("pic.png", b"\x89PNG", "image/png"))
        assert url.startswith("/api/uploads/") and url.endswith(".png")
        stored = upload_service.UPLOAD_DIR / url.rsplit("/", 1)[-1]
        assert stored.read_bytes() == b"\x89PNG"

        assert upload_service.delete_upload(url) is True
        assert upload_service.delete_upload(url) is False

    def test_delete_ignores_foreign_urls(self):
        assert upload_service.delete_upload("https://cdn.example.com/x.png") is False


class TestMediaRoute:
    def test_upload_and_serve(self, client, make_user):
        uid = make_user()
        resp = client.post(
            "/api/media/image",
            files={"file": ("cat.png", b"\x89PNG-cat", "image/png")},
            headers=auth(uid),
        )
        assert resp.status_code == 201
        body = resp.json()
        assert (body["kind"], body["size_bytes"]) == ("image", 8)
        assert client.get(body["url"]).content == b"\x89PNG-cat"

    def test_wrong_kind_for_file(self, client, make_user):
        uid = make_user()
        resp = client.post(
            "/api/media/video",
            files={"file": ("cat.png", b"x", "image/png")},
            headers=auth(uid),
        )
        assert resp.status_code == 400

    def test_requires_auth(self, client):
        resp = client.post("/api/media/image", files={"file": ("cat.png", b"x", "image/png")})
        assert resp.status_code == 401


# ---------------------------------------------------------------------------
# Log buffer
# ---------------------------------------------------------------------------
def _entry(level: str, logger: str = "dapdip.services.x", message: str = "m") -> LogEntry:
    return LogEntry(timestamp="2026-01-01T00:00:00+00:00", level=level, logger=logger, message=message)


class TestLogBuffer:
    def test_capacity_drops_oldest(self):
        buf = LogBuffer(capacity=3)
        for i in range(5):
            buf.append(_entry("INFO", message=str(i)))
        assert len(buf) == 3
        assert [e["message"] for e in buf.get_entries()] == ["2", "3", "4"]

    def test_level_and_logger_filters(self):
        buf = LogBuffer()
        buf.append(_entry("DEBUG"))
        buf.append(_entry("WARNING", logger="uvicorn.access"))
        buf.append(_entry("ERROR"))

        assert [e["level"] for e in buf.get_entries(level="warning")] == ["WARNING", "ERROR"]
        assert [e["level"] for e in buf.get_entries(logger_filter="dapdip")] == ["DEBUG", "ERROR"]
        assert len(buf.get_entries(tail=1)) == 1

    def test_handler_feeds_buffer(self):
        buf = LogBuffer()
        handler = RingBufferHandler(buf, level=logging.INFO)
        handler.setFormatter(logging.Formatter("%(message)s"))
        log = logging.getLogger("dapdip.tests.buffer")
        log.addHandler(handler)
        try:
            log.warning("disk at %d%%", 91)
            log.debug("ignored")
        finally:
            log.removeHandler(handler)

        [entry] = buf.get_entries()
        assert entry["message"] == "disk at 91%"
        assert entry["logger"] == "dapdip.tests.buffer"
