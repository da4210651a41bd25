"""FastAPI HTTP server for the webshell endpoint.

Exposes command execution and hinting to the browser. Every shell route
requires an authorized bearer token; the caller identity it resolves to
keys the stored working directory.

    GET  /health   -> {"status": "ok", "strategy": "communicate"}
    GET  /session  -> {"user": "www@host", "workingdir": "/srv"}
    POST /run      <- {"command": "ls -la"}
                   -> {"result": "<base64>", "user": ..., "workingdir": ...}
    POST /hint     <- {"value": "whoam", "type": "binary"}
                   -> {"matches": ["whoami"], "user": ..., "workingdir": ...}
    POST /reset    -> {"status": "ok", "workingdir": ...}
"""

from __future__ import annotations

import asyncio
import base64
import functools
import logging
from typing import Callable, Literal

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from webshell.audit.base import AuditError, AuditSink
from webshell.audit.logging_sink import LoggingAuditSink
from webshell.config.settings import Settings, load_settings
from webshell.domain.models import ExecutionRequest, HintQuery
from webshell.endpoint.auth import require_caller
from webshell.endpoint.session import ShellSession
from webshell.engine.executor import Executor
from webshell.engine.runner import (
    ExecutionTimeout,
    ExecutionUnavailable,
    Runner,
    RunnerError,
)
from webshell.preferences import create_preference_store
from webshell.preferences.base import PreferenceStore, PreferenceStoreError
from webshell.utils.logging import setup_logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------

class RunResponse(BaseModel):
    result: str = Field(description="Base64 of the UTF-8 encoded output")
    user: str
    workingdir: str


class HintRequest(BaseModel):
    value: str = Field(default="", description="Current string to autocomplete")
    type: Literal["binary", "file"] = Field(default="binary")


class HintResponse(BaseModel):
    matches: list[str]
    user: str
    workingdir: str


class SessionResponse(BaseModel):
    user: str
    workingdir: str


class ResetResponse(BaseModel):
    status: str = "ok"
    workingdir: str


class HealthResponse(BaseModel):
    status: str = "ok"
    strategy: str | None = None


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app(
    settings: Settings | None = None,
    preferences: PreferenceStore | None = None,
    audit: AuditSink | None = None,
    executor_factory: Callable[[], Executor] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Service configuration. Defaults to ``Settings()``.
        preferences: Optional pre-configured store (for testing).
        audit: Optional pre-configured audit sink (for testing).
        executor_factory: Builds one executor per request (for testing).
    """
    if settings is None:
        settings = Settings()
    runner = Runner.from_config(settings.runner)

    app = FastAPI(
        title="webshell",
        description="Run shell commands on the host from the browser",
        version="0.1.0",
    )

    app.state.settings = settings
    app.state.runner = runner
    app.state.preferences = preferences or create_preference_store(settings.preferences)
    app.state.audit = audit or LoggingAuditSink(settings.audit.file)
    app.state.executor_factory = executor_factory or (lambda: Executor(runner=runner))

    def open_session(caller: str) -> ShellSession:
        return ShellSession(
            caller=caller,
            preferences=app.state.preferences,
            audit=app.state.audit,
            executor=app.state.executor_factory(),
        )

    async def in_worker(func: Callable, *args: object) -> object:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    # -- error mapping ------------------------------------------------------

    @app.exception_handler(ExecutionUnavailable)
    async def execution_unavailable(request: Request, exc: ExecutionUnavailable) -> JSONResponse:
        logger.error("Execution unavailable: %s", exc)
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.exception_handler(ExecutionTimeout)
    async def execution_timeout(request: Request, exc: ExecutionTimeout) -> JSONResponse:
        logger.error("Execution timed out: %s", exc)
        return JSONResponse(status_code=504, content={"detail": str(exc)})

    @app.exception_handler(RunnerError)
    async def runner_error(request: Request, exc: RunnerError) -> JSONResponse:
        logger.error("Runner error: %s", exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    @app.exception_handler(PreferenceStoreError)
    @app.exception_handler(AuditError)
    async def collaborator_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Collaborator failure: %s", exc)
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # -- routes -------------------------------------------------------------

    @app.get("/health")
    async def health_check() -> HealthResponse:
        try:
            strategy = app.state.runner.strategy.name
        except ExecutionUnavailable:
            return HealthResponse(status="unavailable", strategy=None)
        return HealthResponse(status="ok", strategy=strategy)

    @app.get("/session")
    async def get_session(caller: str = Depends(require_caller)) -> SessionResponse:
        session = open_session(caller)
        state = await in_worker(session.state)
        user = await in_worker(session.identity)
        return SessionResponse(user=user, workingdir=state.working_directory)

    @app.post("/run")
    async def run_command(
        request: ExecutionRequest, caller: str = Depends(require_caller)
    ) -> RunResponse:
        session = open_session(caller)
        result = await in_worker(session.run, request.command)
        encoded = base64.b64encode(result.output.encode("utf-8")).decode("ascii")
        return RunResponse(
            result=encoded,
            user=result.identity,
            workingdir=result.working_directory,
        )

    @app.post("/hint")
    async def hint(request: HintRequest, caller: str = Depends(require_caller)) -> HintResponse:
        session = open_session(caller)
        query = HintQuery(prefix=request.value, kind=request.type)
        result = await in_worker(session.hint, query.prefix, query.kind)
        user = await in_worker(session.identity)
        return HintResponse(
            matches=result.matches,
            user=user,
            workingdir=session.working_directory,
        )

    @app.post("/reset")
    async def reset(caller: str = Depends(require_caller)) -> ResetResponse:
        session = open_session(caller)
        await in_worker(session.reset)
        state = await in_worker(session.state)
        return ResetResponse(workingdir=state.working_directory)

    return app


def main(settings: Settings | None = None) -> None:
    """Entry point for running the endpoint server standalone."""
    if settings is None:
        settings = load_settings()
        setup_logging(settings.logging)
    if not settings.auth.tokens:
        logger.warning("No bearer tokens configured; every shell request will be rejected")
    app = create_app(settings)
    uvicorn.run(app, host=settings.endpoint.host, port=settings.endpoint.port)


if __name__ == "__main__":
    main()
