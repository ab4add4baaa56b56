"""Tests for environment-driven configuration."""

import logging

import pytest

from dialogue_stt.config import (
    load_config,
    parse_env_bool,
    parse_env_int,
    validate_web_config,
    validate_worker_config,
)
from dialogue_stt.domain import ProviderKind
from dialogue_stt.exceptions import ConfigurationError


class TestParsers:
    def test_int(self, monkeypatch):
        monkeypatch.setenv("STT_TEST_INT", " 42 ")

        assert parse_env_int("STT_TEST_INT", 1) == 42

    def test_int_garbage_warns(self, monkeypatch, caplog):
        monkeypatch.setenv("STT_TEST_INT", "many")

        with caplog.at_level(logging.WARNING):
            assert parse_env_int("STT_TEST_INT", 7) == 7

        assert "Invalid integer setting" in caplog.text

    def test_unset_int(self, monkeypatch):
        monkeypatch.delenv("STT_TEST_INT", raising=False)

        assert parse_env_int("STT_TEST_INT", 3) == 3

    @pytest.mark.parametrize("raw,expected", [("true", True), ("YES", True), ("0", False), ("off", False)])
    def test_bool(self, monkeypatch, raw, expected):
        monkeypatch.setenv("STT_TEST_BOOL", raw)

        assert parse_env_bool("STT_TEST_BOOL", not expected) is expected

    def test_bool_garbage_warns(self, monkeypatch, caplog):
        monkeypatch.setenv("STT_TEST_BOOL", "maybe")

        with caplog.at_level(logging.WARNING):
            assert parse_env_bool("STT_TEST_BOOL", True) is True

        assert "Invalid boolean setting" in caplog.text


class TestLoadConfig:
    def test_defaults(self, monkeypatch):
        for name in ("STT_PROVIDER", "STT_LANGUAGE_CODE", "STT_WORKER_PORT", "STT_DIARIZATION_MIN_SPEAKER"):
            monkeypatch.delenv(name, raising=False)

        config = load_config()

        assert config.recognition.provider is ProviderKind.THIRD_PARTY
        assert config.recognition.language_code == "ko-KR"
        assert config.dispatcher.port == 8787
        assert config.dispatcher.max_concurrency == 2
        assert config.dispatcher.queue_size == 4

    @pytest.mark.parametrize(
        "raw,kind",
        [("google", ProviderKind.CLOUD), ("CLOVA", ProviderKind.THIRD_PARTY), ("gemini", ProviderKind.MULTIMODAL)],
    )
    def test_provider_aliases(self, monkeypatch, raw, kind):
        monkeypatch.setenv("STT_PROVIDER", raw)

        assert load_config().recognition.provider is kind

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("STT_PROVIDER", "whisper")

        with pytest.raises(ConfigurationError) as excinfo:
            load_config()

        assert excinfo.value.missing == ["STT_PROVIDER"]

    def test_min_speakers_above_max_raises_max(self, monkeypatch, caplog):
        monkeypatch.setenv("STT_DIARIZATION_MIN_SPEAKER", "6")
        monkeypatch.setenv("STT_DIARIZATION_MAX_SPEAKER", "3")

        with caplog.at_level(logging.WARNING):
            recognition = load_config().recognition

        assert (recognition.min_speaker_count, recognition.max_speaker_count) == (6, 6)
        assert "exceeds maximum" in caplog.text

    def test_malformed_speaker_count_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("STT_DIARIZATION_MIN_SPEAKER", "many")
        monkeypatch.delenv("STT_DIARIZATION_MAX_SPEAKER", raising=False)

        with caplog.at_level(logging.WARNING):
            config = load_config()

        assert config.recognition.min_speaker_count == 2
        warning = next(record for record in caplog.records if record.getMessage() == "Invalid integer setting")
        assert warning.setting == "STT_DIARIZATION_MIN_SPEAKER"
        assert warning.value == "many"

    def test_private_key_newlines(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_PRIVATE_KEY", "line1\\nline2")

        info = load_config().google.service_account_info()

        assert info["private_key"] == "line1\nline2"


class TestValidation:
    def test_worker_config_lists_everything_missing(self, app_config):
        config = app_config.model_copy(
            update={
                "storage": app_config.storage.model_copy(update={"access_key": ""}),
                "google": app_config.google.model_copy(update={"bucket_name": ""}),
                "dispatcher": app_config.dispatcher.model_copy(update={"worker_token": ""}),
            }
        )

        with pytest.raises(ConfigurationError) as excinfo:
            validate_worker_config(config, ProviderKind.CLOUD)

        assert excinfo.value.missing == ["STORAGE_ACCESS_KEY", "GCS_BUCKET_NAME", "STT_WORKER_TOKEN"]

    def test_worker_config_complete(self, app_config):
        validate_worker_config(app_config, ProviderKind.THIRD_PARTY)

    def test_web_config_checks_selected_provider(self, app_config):
        config = app_config.model_copy(
            update={
                "recognition": app_config.recognition.model_copy(update={"provider": ProviderKind.MULTIMODAL}),
                "gemini": app_config.gemini.model_copy(update={"api_key": ""}),
            }
        )

        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            validate_web_config(config)
