"""Tests for the status, completion, start and callback endpoints."""

from datetime import date
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from dialogue_stt.dependencies import build_container
from dialogue_stt.domain import PollResult, ProviderKind
from dialogue_stt.exceptions import (
    ProviderError,
    TranscriptionFailedError,
    TranscriptPersistenceError,
)
from dialogue_stt.handlers.completion_handler import callback_key, default_title
from dialogue_stt.infrastructure import GoogleSpeechProvider
from dialogue_stt.main import create_app
from dialogue_stt.repositories import SessionRepository, SystemLogRepository

CLOUD_RESULT = {
    "results": [
        {"alternatives": [{"transcript": "hi there hey you"}]},
        {
            "alternatives": [
                {
                    "transcript": "",
                    "words": [
                        {"word": "hi", "speakerTag": 1, "startTime": "0s"},
                        {"word": "there", "speakerTag": 1, "startTime": "0.4s"},
                        {"word": "hey", "speakerTag": 2, "startTime": "1.2s"},
                        {"word": "you", "speakerTag": 2, "startTime": "1.5s"},
                    ],
                }
            ]
        },
    ]
}

CLOVA_RESULT = {
    "result": "COMPLETED",
    "text": "hello there. hi.",
    "segments": [
        {"start": 0, "end": 900, "text": "hello there.", "speaker": {"label": "1"}},
        {"start": 1000, "end": 1400, "text": "hi.", "speaker": {"label": "2"}},
    ],
}


@pytest.fixture(name="sessions")
def sessions_fixture(session_factory) -> SessionRepository:
    return SessionRepository(session_factory)


class TestStatus:
    """Tests for GET /api/stt/status."""

    def test_requires_name(self, client):
        response = client.get("/api/stt/status")

        assert response.status_code == 400
        assert response.json() == {"error": "name query parameter is required"}

    def test_in_progress(self, client, cloud_provider):
        cloud_provider.polls = [PollResult(done=False, metadata={"progress_percent": 30})]

        response = client.get("/api/stt/status", params={"name": "operations/1"})

        assert response.status_code == 200
        assert response.json()["done"] is False
        assert response.json()["metadata"] == {"progress_percent": 30}
        assert cloud_provider.poll_calls[0].operation_name == "operations/1"

    def test_done_returns_text_and_words(self, client, cloud_provider, sessions):
        cloud_provider.polls = [PollResult(done=True, result=CLOUD_RESULT)]

        body = client.get("/api/stt/status", params={"name": "operations/1"}).json()

        assert body["done"] is True
        assert body["text"] == "hi there hey you"
        assert len(body["details"]) == 2
        assert [word["word"] for word in body["words"]] == ["hi", "there", "hey", "you"]
        assert sessions.count_sessions() == 0

    def test_repeated_polls_never_write(self, client, cloud_provider, sessions):
        cloud_provider.polls = [PollResult(done=True, result=CLOUD_RESULT) for _ in range(3)]

        for _ in range(3):
            assert client.get("/api/stt/status", params={"name": "operations/1"}).json()["done"]

        assert sessions.count_sessions() == 0

    def test_third_party_token(self, client, clova_provider):
        clova_provider.polls = [PollResult(done=True, result=CLOVA_RESULT)]

        body = client.get("/api/stt/status", params={"name": "tok-1", "provider": "clova"}).json()

        assert clova_provider.poll_calls[0].token == "tok-1"
        assert body["text"] == "hello there. hi."
        assert body["details"] == CLOVA_RESULT["segments"]

    def test_unknown_provider(self, client):
        response = client.get("/api/stt/status", params={"name": "x", "provider": "whisper"})

        assert response.status_code == 400

    def test_unconfigured_provider(self, client):
        response = client.get("/api/stt/status", params={"name": "files/a", "provider": "gemini"})

        assert response.status_code == 500
        assert "not configured" in response.json()["error"]

    def test_provider_failure(self, client, cloud_provider):
        with patch.object(cloud_provider, "poll", side_effect=TranscriptionFailedError("google-speech", "op", "bad")):
            response = client.get("/api/stt/status", params={"name": "op"})

        assert response.status_code == 500
        assert response.json() == {"error": "Transcription failed"}


class TestComplete:
    """Tests for POST /api/stt/complete."""

    def test_not_done_writes_nothing(self, client, cloud_provider, sessions):
        cloud_provider.polls = [PollResult(done=False, metadata={"progress_percent": 10})]

        response = client.post("/api/stt/complete", json={"operationName": "operations/1"})

        assert response.status_code == 200
        assert response.json() == {"done": False, "metadata": {"progress_percent": 10}}
        assert sessions.count_sessions() == 0

    def test_done_creates_session_and_rows(self, client, cloud_provider, sessions):
        cloud_provider.polls = [
            PollResult(done=False),
            PollResult(done=True, result=CLOUD_RESULT),
        ]

        first = client.post("/api/stt/complete", json={"operationName": "operations/1"})
        second = client.post("/api/stt/complete", json={"operationName": "operations/1", "title": "Practice"})

        assert first.json()["done"] is False
        body = second.json()
        assert body["done"] is True
        assert body["text"] == "hi there hey you"

        session_id = UUID(body["sessionId"])
        rows = sessions.list_transcripts(session_id)
        assert [(row.speaker, row.content, row.transcript_index) for row in rows] == [
            ("Participant 1", "hi there", 0),
            ("Participant 2", "hey you", 1),
        ]
        assert rows[1].timestamp == 1.2
        assert sessions.count_sessions() == 1

    def test_inline_result(self, client, clova_provider, sessions):
        response = client.post("/api/stt/complete", json={"clovaResult": CLOVA_RESULT})

        body = response.json()
        assert body["done"] is True
        assert [row.content for row in sessions.list_transcripts(UUID(body["sessionId"]))] == [
            "hello there.",
            "hi.",
        ]
        assert clova_provider.poll_calls == []

    def test_failed_inline_result_creates_nothing(self, client, sessions):
        response = client.post(
            "/api/stt/complete", json={"clovaResult": {"result": "FAILED", "message": "bad audio"}}
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Transcription failed"}
        assert sessions.count_sessions() == 0

    def test_requires_reference(self, client):
        response = client.post("/api/stt/complete", json={"title": "x"})

        assert response.status_code == 400
        assert response.json() == {"error": "operationName, token or clovaResult is required"}

    def test_transcript_failure_still_reports_session(self, client, cloud_provider, sessions):
        cloud_provider.polls = [PollResult(done=True, result=CLOUD_RESULT)]

        with patch.object(
            SessionRepository,
            "insert_transcripts",
            side_effect=TranscriptPersistenceError("unknown"),
        ):
            response = client.post("/api/stt/complete", json={"operationName": "operations/1"})

        body = response.json()
        assert response.status_code == 200
        assert body["done"] is True
        assert body["sessionId"]
        assert sessions.list_transcripts(UUID(body["sessionId"])) == []

    def test_provider_error(self, client, cloud_provider, sessions):
        with patch.object(cloud_provider, "poll", side_effect=ProviderError("google-speech", "op")):
            response = client.post("/api/stt/complete", json={"operationName": "operations/1"})

        assert response.status_code == 500
        assert sessions.count_sessions() == 0


class TestCallback:
    """Tests for POST /api/stt/callback and its use by later polls."""

    def test_stored_result_used_by_complete(self, client, clova_provider, session_factory, sessions):
        response = client.post("/api/stt/callback", json={**CLOVA_RESULT, "token": "tok-9"})

        assert response.status_code == 200
        assert response.json() == {"message": "OK"}
        stored = SystemLogRepository(session_factory).find_latest(callback_key("tok-9"))
        assert stored.details["token"] == "tok-9"

        body = client.post("/api/stt/complete", json={"token": "tok-9", "provider": "clova"}).json()

        assert body["done"] is True
        assert body["text"] == "hello there. hi."
        assert clova_provider.poll_calls == []

    def test_stored_failure_fails_complete(self, client, clova_provider, sessions):
        client.post("/api/stt/callback", json={"token": "tok-f", "result": "FAILED", "message": "bad audio"})

        response = client.post("/api/stt/complete", json={"token": "tok-f", "provider": "clova"})

        assert response.status_code == 500
        assert response.json() == {"error": "Transcription failed"}
        assert sessions.count_sessions() == 0
        assert clova_provider.poll_calls == []

    def test_stored_failure_fails_status(self, client, sessions):
        client.post("/api/stt/callback", json={"token": "tok-f", "result": "FAILED"})

        response = client.get("/api/stt/status", params={"name": "tok-f", "provider": "clova"})

        assert response.status_code == 500
        assert response.json() == {"error": "Transcription failed"}

    def test_missing_token(self, client):
        response = client.post("/api/stt/callback", json={"result": "COMPLETED"})

        assert response.status_code == 400
        assert response.json() == {"message": "Token missing"}

    def test_invalid_json(self, client):
        response = client.post(
            "/api/stt/callback", content=b"{not json", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid JSON"}

    def test_store_failure(self, client):
        with patch.object(SystemLogRepository, "record", side_effect=RuntimeError("db down")):
            response = client.post("/api/stt/callback", json={"token": "tok-1"})

        assert response.status_code == 500
        assert response.json() == {"message": "Save failed"}


class TestStart:
    """Tests for POST /api/stt/start."""

    def test_starts_operation(self, client, cloud_provider):
        response = client.post(
            "/api/stt/start",
            json={"gcsUri": "gs://dialogue-stt/recordings/r/merged.flac"},
            headers={"x-stt-worker-token": "worker-secret"},
        )

        assert response.status_code == 200
        assert response.json() == {"operationName": "operations/123"}
        assert cloud_provider.submissions[0][0].uri == "gs://dialogue-stt/recordings/r/merged.flac"

    def test_wrong_token(self, client, cloud_provider):
        response = client.post(
            "/api/stt/start", json={"gcsUri": "gs://b/o"}, headers={"x-stt-worker-token": "nope"}
        )

        assert response.status_code == 401
        assert cloud_provider.submissions == []

    def test_missing_token(self, client):
        response = client.post("/api/stt/start", json={"gcsUri": "gs://b/o"})

        assert response.status_code == 401

    def test_missing_uri(self, client):
        response = client.post("/api/stt/start", json={}, headers={"x-stt-worker-token": "worker-secret"})

        assert response.status_code == 400
        assert response.json() == {"error": "gcsUri is required"}

    def test_token_not_configured(self, app_config, session_factory, cloud_provider):
        config = app_config.model_copy(
            update={"dispatcher": app_config.dispatcher.model_copy(update={"worker_token": ""})}
        )
        container = build_container(config, session_factory, {ProviderKind.CLOUD: cloud_provider})

        with TestClient(create_app(container)) as client:
            response = client.post("/api/stt/start", json={"gcsUri": "gs://b/o"}, headers={"x-stt-worker-token": ""})

        assert response.status_code == 500

    def test_cloud_not_configured(self, app_config, session_factory, clova_provider):
        container = build_container(app_config, session_factory, {ProviderKind.THIRD_PARTY: clova_provider})

        with TestClient(create_app(container)) as client:
            response = client.post(
                "/api/stt/start", json={"gcsUri": "gs://b/o"}, headers={"x-stt-worker-token": "worker-secret"}
            )

        assert response.status_code == 500


@pytest.fixture(name="recognizer")
def recognizer_fixture():
    recognizer = MagicMock(spec=GoogleSpeechProvider)
    recognizer.recognize.return_value = CLOUD_RESULT
    return recognizer


@pytest.fixture(name="recognizing_client")
def recognizing_client_fixture(app_config, session_factory, cloud_provider, recognizer):
    container = build_container(
        app_config, session_factory, {ProviderKind.CLOUD: cloud_provider}, recognizer=recognizer
    )
    with TestClient(create_app(container)) as c:
        yield c


class TestShortAudio:
    """Tests for POST /api/stt."""

    def test_recognizes_upload(self, recognizing_client, recognizer, sessions):
        response = recognizing_client.post(
            "/api/stt", files={"file": ("talk.webm", b"webm-bytes", "audio/webm")}
        )

        body = response.json()
        assert response.status_code == 200
        assert body["done"] is True
        assert body["text"] == "hi there hey you"
        assert len(body["details"]) == 2
        assert [word["word"] for word in body["words"]] == ["hi", "there", "hey", "you"]
        recognizer.recognize.assert_called_once_with(b"webm-bytes", "talk.webm")
        assert sessions.count_sessions() == 0

    def test_missing_file(self, recognizing_client, recognizer):
        response = recognizing_client.post("/api/stt")

        assert response.status_code == 400
        assert response.json() == {"error": "An audio file is required"}
        recognizer.recognize.assert_not_called()

    def test_empty_file(self, recognizing_client, recognizer):
        response = recognizing_client.post("/api/stt", files={"file": ("talk.webm", b"", "audio/webm")})

        assert response.status_code == 400
        recognizer.recognize.assert_not_called()

    def test_recognition_failure(self, recognizing_client, recognizer):
        recognizer.recognize.side_effect = ProviderError("google-speech", "recognize")

        response = recognizing_client.post("/api/stt", files={"file": ("talk.webm", b"x", "audio/webm")})

        assert response.status_code == 500
        assert response.json() == {"error": "Speech recognition failed"}

    def test_not_configured(self, client):
        response = client.post("/api/stt", files={"file": ("talk.webm", b"x", "audio/webm")})

        assert response.status_code == 500
        assert "not configured" in response.json()["error"]

class TestCompletionHelpers:
    def test_default_title(self):
        assert default_title(date(2026, 1, 2)) == "Voice conversation (2026-01-02)"

    def test_callback_key(self):
        assert callback_key("abc") == "clova-result-abc"
