"""Worker dispatcher HTTP API."""

import json
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dialogue_stt.exceptions import DispatcherBusyError, WorkerExecutionError, WorkerOutputError

from .pool import WorkerPool

logger = logging.getLogger(__name__)


async def _not_found(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Wrong method is reported as not found too.
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


def create_app(pool: WorkerPool) -> FastAPI:
    """Builds the dispatcher around a pool created at startup."""
    app = FastAPI(title="Dialogue STT Worker Dispatcher")
    app.state.pool = pool
    app.add_exception_handler(StarletteHTTPException, _not_found)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request"})

    @app.post("/stt/start")
    async def start(request: Request):
        """Runs a worker for ``{prefix}`` and relays its JSON output."""
        try:
            body = await request.body()
            payload = json.loads(body) if body.strip() else {}
        except ValueError as e:
            logger.error("Invalid request body", extra={"error": str(e)})
            return JSONResponse(status_code=500, content={"error": "Invalid JSON body"})

        prefix = payload.get("prefix") if isinstance(payload, dict) else None
        if not prefix or not isinstance(prefix, str):
            return JSONResponse(status_code=400, content={"error": "prefix is required"})

        try:
            result = await request.app.state.pool.run(prefix)
        except DispatcherBusyError as e:
            return JSONResponse(status_code=503, content={"error": str(e)})
        except (WorkerExecutionError, WorkerOutputError) as e:
            return JSONResponse(status_code=500, content={"error": str(e)})
        except Exception:
            logger.exception("Dispatch failed", extra={"prefix": prefix})
            return JSONResponse(status_code=500, content={"error": "Worker error"})

        return JSONResponse(status_code=200, content=result)

    return app
