"""Application configuration loaded from environment variables."""

import logging
import os

from pydantic import BaseModel, computed_field

from dialogue_stt.domain.models import ProviderKind
from dialogue_stt.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off"}


def parse_env_int(name: str, default: int) -> int:
    """Reads an integer variable, warning and falling back on garbage."""
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Invalid integer setting", extra={"setting": name, "value": raw})
        return default


def parse_env_bool(name: str, default: bool) -> bool:
    """Reads a boolean variable, warning and falling back on garbage."""
    raw = os.getenv(name)
    if not raw:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    logger.warning("Invalid boolean setting", extra={"setting": name, "value": raw})
    return default


class StorageConfig(BaseModel, frozen=True):
    """S3-compatible object storage holding the uploaded chunks."""

    endpoint: str
    access_key: str
    secret_key: str
    secure: bool = False
    bucket_name: str = "audio-uploads"


class GoogleCloudConfig(BaseModel, frozen=True):
    """Google Cloud service account and bucket for long-running recognition."""

    project_id: str
    client_email: str
    private_key: str
    bucket_name: str

    def service_account_info(self) -> dict:
        """Returns the credential mapping expected by google-auth."""
        return {
            "type": "service_account",
            "project_id": self.project_id,
            "client_email": self.client_email,
            "private_key": self.private_key.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        }


class ClovaConfig(BaseModel, frozen=True):
    """Third-party diarization API configuration."""

    invoke_url: str
    secret_key: str
    domain_code: str | None = None
    callback_url: str | None = None
    timeout_seconds: float = 600.0

    @property
    def base_url(self) -> str:
        return self.invoke_url.rstrip("/")


class GeminiConfig(BaseModel, frozen=True):
    """Gemini multimodal model configuration."""

    api_key: str
    model_name: str = "gemini-2.5-flash"


class RecognitionConfig(BaseModel, frozen=True):
    """Language, model and diarization settings shared by every provider."""

    provider: ProviderKind = ProviderKind.THIRD_PARTY
    language_code: str = "ko-KR"
    model: str = "latest_long"
    sample_rate_hertz: int = 48000
    diarization_enabled: bool = True
    min_speaker_count: int = 2
    max_speaker_count: int = 10
    poll_interval_seconds: float = 5.0


class DispatcherConfig(BaseModel, frozen=True):
    """Worker dispatcher settings."""

    port: int = 8787
    start_url: str = "http://localhost:8000/api/stt/start"
    worker_token: str = ""
    max_concurrency: int = 2
    queue_size: int = 4
    timeout_seconds: float = 1800.0


class DatabaseConfig(BaseModel, frozen=True):
    """Immutable database connection configuration."""

    host: str
    port: str
    user: str
    password: str
    database: str

    @computed_field
    @property
    def url(self) -> str:
        """Returns the full PostgreSQL connection URL."""
        return (
            f"postgresql+psycopg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class AppConfig(BaseModel, frozen=True):
    """Root application configuration."""

    storage: StorageConfig
    google: GoogleCloudConfig
    clova: ClovaConfig
    gemini: GeminiConfig
    recognition: RecognitionConfig
    dispatcher: DispatcherConfig
    database: DatabaseConfig
    debug: bool = False


def _load_recognition_config() -> RecognitionConfig:
    min_default, max_default = 2, 10
    min_speakers = parse_env_int("STT_DIARIZATION_MIN_SPEAKER", min_default)
    max_speakers = parse_env_int("STT_DIARIZATION_MAX_SPEAKER", max_default)
    if min_speakers < 1:
        min_speakers = min_default
    if max_speakers < 1:
        max_speakers = max_default
    if min_speakers > max_speakers:
        logger.warning(
            "Minimum speaker count exceeds maximum, raising maximum",
            extra={"min_speaker_count": min_speakers, "max_speaker_count": max_speakers},
        )
        max_speakers = min_speakers

    raw_provider = os.getenv("STT_PROVIDER", ProviderKind.THIRD_PARTY.value)
    try:
        provider = ProviderKind.parse(raw_provider)
    except ValueError as e:
        raise ConfigurationError(["STT_PROVIDER"], str(e)) from e

    return RecognitionConfig(
        provider=provider,
        language_code=os.getenv("STT_LANGUAGE_CODE", "ko-KR"),
        model=os.getenv("STT_MODEL", "latest_long"),
        sample_rate_hertz=parse_env_int("STT_SAMPLE_RATE_HERTZ", 48000),
        diarization_enabled=parse_env_bool("STT_DIARIZATION_ENABLED", True),
        min_speaker_count=min_speakers,
        max_speaker_count=max_speakers,
        poll_interval_seconds=parse_env_int("STT_POLL_INTERVAL_SECONDS", 5),
    )


def load_config() -> AppConfig:
    """Loads configuration from environment variables."""
    return AppConfig(
        storage=StorageConfig(
            endpoint=os.getenv("STORAGE_ENDPOINT", "localhost:9000"),
            access_key=os.getenv("STORAGE_ACCESS_KEY", ""),
            secret_key=os.getenv("STORAGE_SECRET_KEY", ""),
            secure=parse_env_bool("STORAGE_SECURE", False),
            bucket_name=os.getenv("SUPABASE_STT_BUCKET", "audio-uploads"),
        ),
        google=GoogleCloudConfig(
            project_id=os.getenv("GOOGLE_PROJECT_ID", ""),
            client_email=os.getenv("GOOGLE_CLIENT_EMAIL", ""),
            private_key=os.getenv("GOOGLE_PRIVATE_KEY", ""),
            bucket_name=os.getenv("GCS_BUCKET_NAME", ""),
        ),
        clova=ClovaConfig(
            invoke_url=os.getenv("NAVER_CLOVA_INVOKE_URL", ""),
            secret_key=os.getenv("NAVER_CLOVA_SECRET_KEY", ""),
            domain_code=os.getenv("NAVER_CLOVA_DOMAIN_CODE") or None,
            callback_url=os.getenv("NAVER_CLOVA_CALLBACK_URL") or None,
        ),
        gemini=GeminiConfig(
            api_key=os.getenv("GEMINI_API_KEY", ""),
            model_name=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        ),
        recognition=_load_recognition_config(),
        dispatcher=DispatcherConfig(
            port=parse_env_int("STT_WORKER_PORT", 8787),
            start_url=os.getenv("STT_START_URL", "http://localhost:8000/api/stt/start"),
            worker_token=os.getenv("STT_WORKER_TOKEN", ""),
            max_concurrency=parse_env_int("STT_WORKER_MAX_CONCURRENCY", 2),
            queue_size=parse_env_int("STT_WORKER_QUEUE_SIZE", 4),
            timeout_seconds=parse_env_int("STT_WORKER_TIMEOUT_SECONDS", 1800),
        ),
        database=DatabaseConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=os.getenv("POSTGRES_PORT", "5432"),
            user=os.getenv("POSTGRES_USER", ""),
            password=os.getenv("POSTGRES_PASSWORD", ""),
            database=os.getenv("POSTGRES_DB", "dialogue_stt"),
        ),
        debug=parse_env_bool("STT_DEBUG", False),
    )


def missing_provider_settings(config: AppConfig, provider: ProviderKind) -> list[str]:
    """Names the unset variables a provider needs."""
    required = {
        ProviderKind.CLOUD: {
            "GOOGLE_PROJECT_ID": config.google.project_id,
            "GOOGLE_CLIENT_EMAIL": config.google.client_email,
            "GOOGLE_PRIVATE_KEY": config.google.private_key,
        },
        ProviderKind.THIRD_PARTY: {
            "NAVER_CLOVA_INVOKE_URL": config.clova.invoke_url,
            "NAVER_CLOVA_SECRET_KEY": config.clova.secret_key,
        },
        ProviderKind.MULTIMODAL: {"GEMINI_API_KEY": config.gemini.api_key},
    }[provider]
    return [name for name, value in required.items() if not value]


def validate_worker_config(config: AppConfig, provider: ProviderKind) -> None:
    """
    Checks everything the merge-and-transcribe worker needs before any I/O.

    Raises:
        ConfigurationError: Listing every missing variable.
    """
    missing = []
    if not config.storage.access_key:
        missing.append("STORAGE_ACCESS_KEY")
    if not config.storage.secret_key:
        missing.append("STORAGE_SECRET_KEY")
    missing.extend(missing_provider_settings(config, provider))
    if provider is ProviderKind.CLOUD:
        if not config.google.bucket_name:
            missing.append("GCS_BUCKET_NAME")
        if not config.dispatcher.worker_token:
            missing.append("STT_WORKER_TOKEN")
    if missing:
        raise ConfigurationError(missing)


def validate_web_config(config: AppConfig) -> None:
    """
    Checks the credentials of the configured provider for the web backend.

    Raises:
        ConfigurationError: Listing every missing variable.
    """
    missing = missing_provider_settings(config, config.recognition.provider)
    if missing:
        raise ConfigurationError(missing)
