"""
tests/test_audio.py — Voice Clip Tests
========================================
Clip validation, carrier creation, background transcription (success,
model failure, unaffordable charge) and the multipart upload endpoint.

``process_audio`` opens its own sessions, so these tests commit their
setup rather than using the rolled-back ``db_session``.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import auth, create_user
from dapdip.database.models import (
    AITokenUsage,
    AudioMessage,
    Comment,
    Message,
    UserSettings,
)
from dapdip.errors import BadRequestError, ForbiddenError
from dapdip.services import audio_service, post_service
from dapdip.services.content_model import MOCK_TRANSCRIPTION, ContentModel, HeuristicContentModel
from dapdip.services.upload_service import UPLOAD_DIR

WAVEFORM = [12.0, 40.0, 55.5, 80.0, 20.0, 5.0, 60.0, 90.0, 33.0, 10.0]


@pytest.fixture
def world(db_engine):
    """Commit two users and a post; returns their ids."""
    with Session(db_engine) as session:
        alice = create_user(session, "Alice")
        bob = create_user(session, "Bob", ai_enabled=False)
        post = post_service.create_post(session, bob.id, {"content": "say something"})
        session.commit()
        return {"alice": alice.id, "bob": bob.id, "post": post["id"]}


def _clip(db_engine, user_id, **target):
    with Session(db_engine) as session:
        data, enable_ai = audio_service.create_audio_message(
            session, user_id, url="/api/uploads/clip.webm", duration=3.0, waveform=WAVEFORM, **target
        )
        session.commit()
    return data, enable_ai


def _load(db_engine, audio_id):
    with Session(db_engine) as session:
        return session.get(AudioMessage, audio_id)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class TestValidation:
    @pytest.mark.parametrize("duration", [0.2, 61])
    def test_duration_bounds(self, duration):
        with pytest.raises(BadRequestError, match="between 0.5 and 60 seconds"):
            audio_service.validate_clip(duration, WAVEFORM)

    def test_waveform_too_short(self):
        with pytest.raises(BadRequestError, match="at least 10 samples"):
            audio_service.validate_clip(3.0, WAVEFORM[:9])

    def test_waveform_out_of_range(self):
        with pytest.raises(BadRequestError, match="between 0 and 100"):
            audio_service.validate_clip(3.0, [*WAVEFORM[:9], 101.0])

    def test_target_required(self):
        with pytest.raises(BadRequestError, match="must be associated"):
            audio_service.require_target(chat_id=None, post_id=None)


# ---------------------------------------------------------------------------
# Carriers
# ---------------------------------------------------------------------------
class TestCarriers:
    def test_post_clip_creates_empty_comment(self, db_engine, world):
        data, enable_ai = _clip(db_engine, world["alice"], post_id=world["post"])
        assert enable_ai is True
        assert data["processing_status"] == "PROCESSING"

        with Session(db_engine) as session:
            comment = session.get(Comment, data["comment_id"])
            assert comment.content is None
            assert comment.post_id == world["post"]

    def test_chat_clip_creates_message(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], chat_id=world["bob"])
        with Session(db_engine) as session:
            message = session.get(Message, data["message_id"])
            assert (message.sender_id, message.receiver_id) == (world["alice"], world["bob"])

    def test_ai_disabled_completes_immediately(self, db_engine, world):
        data, enable_ai = _clip(db_engine, world["bob"], chat_id=world["alice"])
        assert enable_ai is False
        assert data["processing_status"] == "COMPLETED"

    def test_listing_by_post(self, db_engine, world):
        first, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        second, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        with Session(db_engine) as session:
            listed = audio_service.get_messages(session, world["alice"], post_id=world["post"])
        assert [a["id"] for a in listed["items"]] == [second["id"], first["id"]]


# ---------------------------------------------------------------------------
# Background processing
# ---------------------------------------------------------------------------
class TestProcessing:
    def test_success_transcribes_and_charges(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        audio_service.process_audio(db_engine, HeuristicContentModel(), data["id"], world["alice"])

        audio = _load(db_engine, data["id"])
        assert audio.processing_status == "COMPLETED"
        assert audio.transcription == MOCK_TRANSCRIPTION
        assert audio.ai_tags == ["audio", "message", "voice", "recording"]
        assert audio.language_code == "en"
        with Session(db_engine) as session:
            assert session.get(UserSettings, world["alice"]).ai_tokens_remaining == 140
            usage = session.scalar(select(AITokenUsage).where(AITokenUsage.user_id == world["alice"]))
            assert (usage.feature, usage.model_name) == ("audio_transcription", "whisper")

    def test_language_recorded(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        audio_service.process_audio(
            db_engine, HeuristicContentModel(), data["id"], world["alice"], language="fr"
        )
        assert _load(db_engine, data["id"]).language_code == "fr"

    def test_model_failure_marks_failed(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        broken = MagicMock(spec=ContentModel)
        broken.transcribe.side_effect = RuntimeError("decoder crashed")

        audio_service.process_audio(db_engine, broken, data["id"], world["alice"])
        assert _load(db_engine, data["id"]).processing_status == "FAILED"

    def test_unaffordable_charge_marks_failed(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        with Session(db_engine) as session:
            session.get(UserSettings, world["alice"]).ai_tokens_remaining = 3
            session.commit()

        audio_service.process_audio(db_engine, HeuristicContentModel(), data["id"], world["alice"])
        audio = _load(db_engine, data["id"])
        assert audio.processing_status == "FAILED"
        assert audio.transcription is None


# ---------------------------------------------------------------------------
# Manual transcription, update, delete
# ---------------------------------------------------------------------------
class TestManualTranscription:
    def test_start_requires_enabled_ai(self, db_engine, world):
        data, _ = _clip(db_engine, world["bob"], chat_id=world["alice"])
        with Session(db_engine) as session:
            with pytest.raises(ForbiddenError, match="AI features are not enabled"):
                audio_service.start_transcription(session, world["bob"], data["id"])

    def test_in_progress_rejected(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        with Session(db_engine) as session:
            with pytest.raises(BadRequestError, match="already in progress"):
                audio_service.start_transcription(session, world["alice"], data["id"])

    def test_existing_transcription_returned(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        audio_service.process_audio(db_engine, HeuristicContentModel(), data["id"], world["alice"])
        with Session(db_engine) as session:
            payload, schedule = audio_service.start_transcription(session, world["alice"], data["id"])
        assert payload == {"transcription": MOCK_TRANSCRIPTION}
        assert schedule is False

    def test_owner_edits_and_searches(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        with Session(db_engine) as session:
            with pytest.raises(ForbiddenError, match="not authorized to update"):
                audio_service.update_transcription(session, world["bob"], data["id"], "nope")
            audio_service.update_transcription(session, world["alice"], data["id"], "Meet at noon")
            found = audio_service.search(session, world["alice"], "NOON")
        assert [a["id"] for a in found["items"]] == [data["id"]]

    def test_search_treats_wildcards_literally(self, db_engine, world):
        plain, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        percent, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        with Session(db_engine) as session:
            audio_service.update_transcription(session, world["alice"], plain["id"], "up 50 today")
            audio_service.update_transcription(session, world["alice"], percent["id"], "up 50% today")
            found = audio_service.search(session, world["alice"], "50%")
            assert [a["id"] for a in found["items"]] == [percent["id"]]
            assert audio_service.search(session, world["alice"], "_")["items"] == []

    def test_delete_removes_own_carrier(self, db_engine, world):
        data, _ = _clip(db_engine, world["alice"], post_id=world["post"])
        with Session(db_engine) as session:
            assert audio_service.delete_audio(session, world["alice"], data["id"]) == {"success": True}
            session.commit()
            assert session.get(AudioMessage, data["id"]) is None
            assert session.get(Comment, data["comment_id"]) is None


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------
class TestAudioRoutes:
    def _upload(self, client, user_id, *, waveform=WAVEFORM, **fields):
        return client.post(
            "/api/audio",
            files={"file": ("note.webm", b"\x1aE\xdf\xa3fake-webm", "audio/webm")},
            data={"duration": "3.5", "waveform": json.dumps(waveform), **fields},
            headers=auth(user_id),
        )

    def test_upload_then_background_transcription(self, client, db_engine, world):
        resp = self._upload(client, world["alice"], post_id=str(world["post"]))
        assert resp.status_code == 201
        body = resp.json()
        assert body["processing_status"] == "PROCESSING"
        assert (UPLOAD_DIR / body["url"].rsplit("/", 1)[-1]).is_file()

        # TestClient runs background tasks before returning
        fetched = client.get(f"/api/audio/{body['id']}").json()
        assert fetched["processing_status"] == "COMPLETED"
        assert fetched["transcription"] == MOCK_TRANSCRIPTION

    def test_bad_waveform_json(self, client, world):
        resp = client.post(
            "/api/audio",
            files={"file": ("note.webm", b"x", "audio/webm")},
            data={"duration": "3", "waveform": "not json", "post_id": str(world["post"])},
            headers=auth(world["alice"]),
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Waveform must be a JSON array of numbers"

    def test_missing_target(self, client, world):
        resp = self._upload(client, world["alice"])
        assert resp.status_code == 400
        assert resp.json()["code"] == "BAD_REQUEST"

    def test_disallowed_file_type(self, client, world):
        resp = client.post(
            "/api/audio",
            files={"file": ("note.exe", b"x", "application/octet-stream")},
            data={"duration": "3", "waveform": json.dumps(WAVEFORM), "post_id": str(world["post"])},
            headers=auth(world["alice"]),
        )
        assert resp.status_code == 400
        assert "File type not allowed" in resp.json()["detail"]

    def test_delete_removes_stored_file(self, client, world):
        body = self._upload(client, world["alice"], post_id=str(world["post"])).json()
        stored = UPLOAD_DIR / body["url"].rsplit("/", 1)[-1]

        resp = client.delete(f"/api/audio/{body['id']}", headers=auth(world["alice"]))
        assert resp.status_code == 200
        assert not stored.exists()

    @pytest.mark.parametrize("target", ["post_id", "reel_id", "story_id"])
    def test_missing_carrier_leaves_no_file(self, client, world, target):
        before = set(UPLOAD_DIR.iterdir())
        resp = self._upload(client, world["alice"], **{target: "9999"})
        assert resp.status_code == 404
        assert set(UPLOAD_DIR.iterdir()) == before
