"""Speech-to-text job endpoints."""

import hmac
import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from dialogue_stt.dependencies import Container
from dialogue_stt.domain.models import AudioSource, CamelModel, ProviderKind
from dialogue_stt.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
    SessionPersistenceError,
    TranscriptionFailedError,
)
from dialogue_stt.handlers import CompletionHandler, StatusView

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stt", tags=["stt"])

SERVICE_UNAVAILABLE = "Speech-to-text service is not configured. Contact an administrator."
MAX_INLINE_AUDIO_BYTES = 10 * 1024 * 1024


def get_container(request: Request) -> Container:
    """The container built at startup."""
    return request.app.state.container


def get_completion_handler(request: Request) -> CompletionHandler:
    return get_container(request).completion_handler


ContainerDep = Annotated[Container, Depends(get_container)]
CompletionDep = Annotated[CompletionHandler, Depends(get_completion_handler)]


class StartRequest(CamelModel):
    gcs_uri: str | None = None


class StartResponse(CamelModel):
    operation_name: str


class CompleteRequest(CamelModel):
    operation_name: str | None = None
    token: str | None = None
    clova_result: dict[str, Any] | None = None
    title: str | None = None
    provider: str | None = None


class CompleteResponse(CamelModel):
    done: bool
    session_id: UUID | None = None
    text: str | None = None
    metadata: dict[str, Any] | None = None


@router.post("", response_model=StatusView)
def recognize_short_audio(
    container: ContainerDep,
    handler: CompletionDep,
    file: UploadFile | None = None,
):
    """Transcribes a short recording in one request, without upload or polling."""
    recognizer = container.recognizer
    if recognizer is None:
        logger.error("Short-audio recognition requested but cloud recognition is not configured")
        raise HTTPException(status_code=500, detail=SERVICE_UNAVAILABLE)
    if file is None:
        raise HTTPException(status_code=400, detail="An audio file is required")

    content = file.file.read()
    if not content:
        raise HTTPException(status_code=400, detail="An audio file is required")
    if len(content) > MAX_INLINE_AUDIO_BYTES:
        raise HTTPException(
            status_code=413, detail="Recording too large for direct recognition, use the chunked upload"
        )

    try:
        result = recognizer.recognize(content, file.filename or "audio.webm")
    except ProviderError:
        raise HTTPException(status_code=500, detail="Speech recognition failed")
    return handler.describe(ProviderKind.CLOUD, result)


@router.post("/start", response_model=StartResponse, response_model_by_alias=True)
def start_transcription(
    body: StartRequest,
    container: ContainerDep,
    x_stt_worker_token: Annotated[str | None, Header()] = None,
):
    """Starts cloud recognition of a stored file on behalf of a worker."""
    expected = container.config.dispatcher.worker_token
    if not expected:
        logger.error("Start requested but no worker token is configured")
        raise HTTPException(status_code=500, detail=SERVICE_UNAVAILABLE)
    if not x_stt_worker_token or not hmac.compare_digest(x_stt_worker_token, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")

    provider = container.providers.get(ProviderKind.CLOUD)
    if provider is None:
        logger.error("Start requested but cloud recognition is not configured")
        raise HTTPException(status_code=500, detail=SERVICE_UNAVAILABLE)
    if not body.gcs_uri:
        raise HTTPException(status_code=400, detail="gcsUri is required")

    try:
        handle = provider.submit(AudioSource(uri=body.gcs_uri))
    except ProviderError:
        raise HTTPException(status_code=500, detail="Failed to start transcription")

    return StartResponse(operation_name=handle.operation_name)


@router.get("/status", response_model=StatusView)
def transcription_status(
    handler: CompletionDep,
    name: Annotated[str | None, Query()] = None,
    provider: Annotated[str | None, Query()] = None,
):
    """Reports a job's progress without writing anything."""
    if not name:
        raise HTTPException(status_code=400, detail="name query parameter is required")
    try:
        return handler.status(name, provider)
    except ValueError:
        raise HTTPException(status_code=400, detail="Unknown provider")
    except ProviderNotConfiguredError:
        raise HTTPException(status_code=500, detail=SERVICE_UNAVAILABLE)
    except TranscriptionFailedError:
        raise HTTPException(status_code=500, detail="Transcription failed")
    except ProviderError:
        raise HTTPException(status_code=500, detail="Could not read transcription status")


@router.post("/complete", response_model=CompleteResponse, response_model_by_alias=True, response_model_exclude_none=True)
def complete_transcription(body: CompleteRequest, handler: CompletionDep):
    """Turns a finished job into a session with transcript rows."""
    if not (body.operation_name or body.token or body.clova_result is not None):
        raise HTTPException(status_code=400, detail="operationName, token or clovaResult is required")
    try:
        outcome = handler.complete(
            operation_name=body.operation_name,
            token=body.token,
            inline_result=body.clova_result,
            title=body.title,
            provider=body.provider,
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Unknown provider")
    except ProviderNotConfiguredError:
        raise HTTPException(status_code=500, detail=SERVICE_UNAVAILABLE)
    except TranscriptionFailedError:
        raise HTTPException(status_code=500, detail="Transcription failed")
    except ProviderError:
        raise HTTPException(status_code=500, detail="Could not read transcription status")
    except SessionPersistenceError:
        raise HTTPException(status_code=500, detail="Failed to create session")

    return CompleteResponse(**outcome.model_dump())


@router.post("/callback")
async def transcription_callback(request: Request, handler: CompletionDep):
    """Receives asynchronous third-party results."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"message": "Invalid JSON"})

    token = body.get("token") if isinstance(body, dict) else None
    if not token:
        logger.error("Callback without token")
        return JSONResponse(status_code=400, content={"message": "Token missing"})

    try:
        handler.store_callback(token, body)
    except Exception:
        logger.exception("Failed to store callback result", extra={"token": token})
        return JSONResponse(status_code=500, content={"message": "Save failed"})

    return {"message": "OK"}
