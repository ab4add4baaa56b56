"""
Composition root.

Clients are built once when a process starts and handed to the objects that
use them; nothing here is cached at module level.
"""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

import httpx
from google import genai
from google.cloud import speech, storage
from google.oauth2 import service_account
from minio import Minio
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from dialogue_stt.config import AppConfig, missing_provider_settings, validate_worker_config
from dialogue_stt.domain import AudioMerger, ProviderKind, TranscriptBuilder
from dialogue_stt.handlers import ChunkUploader, CompletionHandler, MergeAndTranscribeHandler
from dialogue_stt.infrastructure import (
    ClovaSpeechProvider,
    CloudStartSubmitter,
    GcsUploader,
    GeminiFileProvider,
    GoogleSpeechProvider,
    MinioStorageClient,
    StartTranscriptionClient,
)
from dialogue_stt.infrastructure.interfaces import AudioSubmitter, StorageClient, TranscriptionProvider
from dialogue_stt.repositories import SessionRepository, SystemLogRepository

logger = logging.getLogger(__name__)


def build_storage(config: AppConfig) -> StorageClient:
    minio_client = Minio(
        endpoint=config.storage.endpoint,
        access_key=config.storage.access_key,
        secret_key=config.storage.secret_key,
        secure=config.storage.secure,
    )
    return MinioStorageClient(minio_client)


def build_engine(config: AppConfig) -> Engine:
    engine = create_engine(config.database.url)
    SQLModel.metadata.create_all(engine)
    logger.info("Database initialized", extra={"host": config.database.host})
    return engine


def session_factory_for(engine: Engine) -> Callable:
    @contextmanager
    def _session_factory() -> Iterator[Session]:
        """Creates a database session context manager."""
        with Session(engine) as session:
            yield session

    return _session_factory


def _google_credentials(config: AppConfig):
    return service_account.Credentials.from_service_account_info(
        config.google.service_account_info()
    )


def build_provider(
    config: AppConfig,
    kind: ProviderKind,
    http_client: httpx.Client | None = None,
) -> TranscriptionProvider:
    """Constructs the pollable provider for ``kind``."""
    if kind is ProviderKind.CLOUD:
        client = speech.SpeechClient(credentials=_google_credentials(config))
        return GoogleSpeechProvider(client, config.recognition)
    if kind is ProviderKind.THIRD_PARTY:
        return ClovaSpeechProvider(
            http_client or httpx.Client(),
            config.clova,
            config.recognition,
            callback_url=config.clova.callback_url,
        )
    return GeminiFileProvider(genai.Client(api_key=config.gemini.api_key), config.gemini)


def build_submitter(
    config: AppConfig, kind: ProviderKind, http_client: httpx.Client
) -> AudioSubmitter:
    """The worker-side submitter for ``kind``; cloud goes through the web backend."""
    if kind is ProviderKind.CLOUD:
        gcs_client = storage.Client(
            project=config.google.project_id, credentials=_google_credentials(config)
        )
        return CloudStartSubmitter(
            GcsUploader(gcs_client, config.google.bucket_name),
            StartTranscriptionClient(
                http_client, config.dispatcher.start_url, config.dispatcher.worker_token
            ),
        )
    return build_provider(config, kind, http_client=http_client)


def build_worker_handler(
    config: AppConfig,
    kind: ProviderKind,
    storage_client: StorageClient | None = None,
    http_client: httpx.Client | None = None,
) -> MergeAndTranscribeHandler:
    """
    Wires the merge-and-transcribe handler.

    Raises:
        ConfigurationError: If storage or provider settings are missing.
    """
    validate_worker_config(config, kind)
    return MergeAndTranscribeHandler(
        storage=storage_client or build_storage(config),
        merger=AudioMerger(),
        submitter=build_submitter(config, kind, http_client or httpx.Client()),
        bucket_name=config.storage.bucket_name,
    )


def build_chunk_uploader(config: AppConfig) -> ChunkUploader:
    storage_client = build_storage(config)
    storage_client.ensure_bucket_exists(config.storage.bucket_name)
    return ChunkUploader(storage_client, config.storage.bucket_name)


@dataclass
class Container:
    """Everything the web backend needs, built once at startup."""

    config: AppConfig
    completion_handler: CompletionHandler
    system_logs: SystemLogRepository
    providers: dict[ProviderKind, TranscriptionProvider] = field(default_factory=dict)
    recognizer: GoogleSpeechProvider | None = None


def build_container(
    config: AppConfig,
    session_factory: Callable | None = None,
    providers: dict[ProviderKind, TranscriptionProvider] | None = None,
    recognizer: GoogleSpeechProvider | None = None,
) -> Container:
    """
    Builds the web backend's object graph.

    Only providers whose credentials are present are constructed; a request
    for any other backend is answered with a configuration error. The cloud
    provider doubles as the short-audio recognizer.
    """
    if session_factory is None:
        session_factory = session_factory_for(build_engine(config))

    if providers is None:
        providers = {}
        for kind in ProviderKind:
            missing = missing_provider_settings(config, kind)
            if missing:
                logger.info(
                    "Provider disabled, settings missing",
                    extra={"provider": kind.value, "missing": missing},
                )
                continue
            providers[kind] = build_provider(config, kind)
        recognizer = providers.get(ProviderKind.CLOUD)

    system_logs = SystemLogRepository(session_factory)
    handler = CompletionHandler(
        providers=providers,
        builder=TranscriptBuilder(),
        sessions=SessionRepository(session_factory),
        callback_store=system_logs,
    )
    return Container(
        config=config,
        completion_handler=handler,
        system_logs=system_logs,
        providers=providers,
        recognizer=recognizer,
    )
