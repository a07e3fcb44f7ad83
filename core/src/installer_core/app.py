from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any, Literal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from installer_core import __version__
from installer_core.config import DEFAULT_MIGRATIONS_PATH

logger = logging.getLogger(__name__)

MigrationHook = Callable[[], Any]


class InstallerError(BaseModel):
    code: str
    message: str
    details: Any | None = None


class InstallerErrorBody(BaseModel):
    """Failure body; the installer page treats anything but "ok" as failure."""

    ok: Literal[False] = False
    data: None = None
    error: InstallerError


def error_response(
    status_code: int, code: str, message: str, details: Any | None = None
) -> JSONResponse:
    body = InstallerErrorBody(error=InstallerError(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _status_to_code(status_code: int) -> str:
    if status_code == 404:
        return "not_found"
    if status_code == 405:
        return "method_not_allowed"
    if 400 <= status_code < 500:
        return "client_error"
    return "server_error"


async def _call_hook(hook: MigrationHook) -> None:
    if inspect.iscoroutinefunction(hook):
        await hook()
    else:
        await run_in_threadpool(hook)


def create_app(run_migrations: MigrationHook | None = None) -> FastAPI:
    """Contract server for the installer page.

    `run_migrations` does the actual work (sync callables run in the
    threadpool, coroutine functions are awaited). The endpoint only
    translates its result into the `ok` / error contract.
    """

    app = FastAPI(title="Installer Core", version=__version__)
    app.state.run_migrations = run_migrations

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        response = await call_next(request)
        logger.info(f"{request.method} {request.url.path} - {response.status_code}")
        return response

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        return error_response(exc.status_code, _status_to_code(exc.status_code), message)

    @app.get(DEFAULT_MIGRATIONS_PATH)
    async def run_migrations_endpoint(request: Request) -> JSONResponse:
        hook: MigrationHook | None = request.app.state.run_migrations
        if hook is None:
            return error_response(503, "not_configured", "No migration runner configured")

        try:
            await _call_hook(hook)
        except Exception as e:
            logger.exception("Migrations failed")
            return error_response(
                500, "migration_failed", "Migrations failed", details={"error": str(e)}
            )

        return JSONResponse(content="ok")

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app
