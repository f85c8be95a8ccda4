import json
import threading
from typing import Any
from uuid import uuid4

import dotenv
from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from trialscribe import __version__
from trialscribe.config import Settings
from trialscribe.errors import InvalidInput, TrialScribeError
from trialscribe.logging_setup import setup_logging
from trialscribe.server.orchestrator import TrialMatchOrchestrator

dotenv.load_dotenv()


class HealthResponse(BaseModel):
    ok: bool = True
    version: str = "v1"


class ErrorResponse(BaseModel):
    error: str


def _request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    return str(request_id) if request_id else "unknown_request"


def _error_response(*, request: Request, status_code: int, message: str) -> JSONResponse:
    payload = ErrorResponse(error=message)
    response = JSONResponse(status_code=status_code, content=payload.model_dump())
    response.headers["X-Request-ID"] = _request_id(request)
    return response


class _LazyOrchestrator:
    """Build the production orchestrator on first use so importing the app needs no credentials."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._orchestrator: TrialMatchOrchestrator | None = None
        self._lock = threading.Lock()

    def get(self) -> TrialMatchOrchestrator:
        if self._orchestrator is None:
            with self._lock:
                if self._orchestrator is None:
                    self._orchestrator = TrialMatchOrchestrator.from_settings(self._settings)
        return self._orchestrator


def _get_orchestrator(request: Request) -> TrialMatchOrchestrator:
    provider = request.app.state.orchestrator
    if isinstance(provider, _LazyOrchestrator):
        return provider.get()
    return provider


def create_webapp(
    orchestrator: TrialMatchOrchestrator | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="trialscribe",
        description="Extract patient attributes from a transcript and find recruiting clinical trials.",
        version=__version__,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator or _LazyOrchestrator(settings)

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(TrialScribeError)
    async def trialscribe_error_handler(request: Request, exc: TrialScribeError) -> JSONResponse:
        return _error_response(request=request, status_code=exc.status_code, message=exc.message)

    @app.get("/ok", response_model=HealthResponse, tags=["system"])
    async def ok() -> HealthResponse:
        return HealthResponse()

    async def find_trials(request: Request) -> JSONResponse:
        raw = await request.body()
        try:
            body: Any = json.loads(raw) if raw else None
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise InvalidInput() from None

        result = await run_in_threadpool(_get_orchestrator(request).handle, body)
        response = JSONResponse(status_code=result.status_code, content=result.payload)
        response.headers["X-Request-ID"] = _request_id(request)
        return response

    trial_responses: dict[int | str, dict[str, Any]] = {
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    }
    app.add_api_route("/trials", find_trials, methods=["POST"], tags=["trials"], responses=trial_responses)
    app.add_api_route(
        "/api/trials",
        find_trials,
        methods=["POST"],
        tags=["trials"],
        responses=trial_responses,
        include_in_schema=False,
    )

    return app


app = create_webapp()
