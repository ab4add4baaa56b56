"""FastAPI application entry point for the web backend."""

import logging

import uvicorn
from ddtrace import patch
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dialogue_stt.config import load_config, validate_web_config
from dialogue_stt.dependencies import Container, build_container
from dialogue_stt.logging import SystemLogHandler, setup_logging
from dialogue_stt.routes import stt_router

logger = logging.getLogger(__name__)


async def _error_body(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def create_app(container: Container) -> FastAPI:
    """Builds the application around an already-wired container."""
    app = FastAPI(title="Dialogue STT API")
    app.state.container = container
    app.add_exception_handler(StarletteHTTPException, _error_body)
    app.include_router(stt_router)
    return app


def run() -> None:
    """Starts the web backend under uvicorn."""
    config = load_config()
    setup_logging(debug=config.debug)
    patch(fastapi=True, httpx=True, sqlalchemy=True)

    validate_web_config(config)
    container = build_container(config)
    logging.getLogger().addHandler(SystemLogHandler(container.system_logs, source="api/stt"))

    logger.info("Web backend starting", extra={"provider": config.recognition.provider.value})
    uvicorn.run(create_app(container), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
