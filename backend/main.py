# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Build the store and the session table (or take them from the caller, as
  the tests do) and hang them on ``app.state``.
* Register CORS and request-logging middleware.
* Mount the three feature routers (auth, admin, vault).
* Translate every core error into the uniform envelope with the right
  status code.
* Expose /health and /api/version.

Nothing is built at import time.  Run with ``bin/tenvault.py serve`` or
``uvicorn main:create_app --factory`` from ``backend/``.

Production note
---------------
CORS origins come from settings and default to localhost only.  TLS is
expected to be terminated by whatever fronts this service.
"""

import time
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

import version
from admin.router import router as admin_router
from auth.router import router as auth_router
from auth.sessions import SessionManager
from core.config import settings
from core.errors import ErrorKind, VaultError
from core.logger import logger
from core.responses import fail, ok
from core.security import get_client_ip
from store import CredentialStore
from vault.router import router as vault_router

# Error kind → HTTP status.  Anything not listed is a 500.
_STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_INPUT: 400,
}

_KIND_BY_STATUS = {
    401: ErrorKind.UNAUTHENTICATED.value,
    403: ErrorKind.PERMISSION_DENIED.value,
    404: ErrorKind.NOT_FOUND.value,
}


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Bodies (passwords, entry values) are NOT echoed – only URL and metadata.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            get_client_ip(request),
            response.status_code,
            elapsed_ms,
        )
        return response


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


async def _vault_error_handler(request: Request, exc: VaultError) -> JSONResponse:
    status_code = _STATUS_BY_KIND.get(exc.kind, 500)
    if status_code == 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.kind.value)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content=fail(exc.kind.value, exc.message),
        headers=headers,
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=fail(_KIND_BY_STATUS.get(exc.status_code, "http_error"), str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    message = f"{where}: {first.get('msg', 'invalid request')}" if where else "Invalid request"
    return JSONResponse(status_code=422, content=fail(ErrorKind.INVALID_INPUT.value, message))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(
    store: Optional[CredentialStore] = None,
    sessions: Optional[SessionManager] = None,
) -> FastAPI:
    app = FastAPI(title="tenvault", version=version.__version__)

    if store is None:
        from database import engine

        store = CredentialStore(engine)
    app.state.store = store
    app.state.sessions = sessions or SessionManager(store)

    # -- middleware -------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_middleware(_RequestLogMiddleware)

    # -- errors -----------------------------------------------------------
    app.add_exception_handler(VaultError, _vault_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    # -- routers ----------------------------------------------------------
    app.include_router(auth_router)
    app.include_router(admin_router)
    app.include_router(vault_router)

    @app.on_event("startup")
    async def _on_startup():
        logger.info("tenvault %s starting up", version.__version__)

    @app.on_event("shutdown")
    async def _on_shutdown():
        app.state.sessions.close()
        logger.info("tenvault shutting down")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api/version")
    def api_version():
        return ok({"name": version.__title__, "version": version.__version__})

    # -- static frontend --------------------------------------------------
    # Mounted *after* the API routers so that /auth/*, /admin/*, /vault/* are
    # handled by FastAPI first.
    frontend_dir = Path(__file__).resolve().parent.parent / "frontend"
    if frontend_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(frontend_dir), html=True), name="frontend")

    return app

