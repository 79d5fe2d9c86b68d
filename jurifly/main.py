# =============================================================================
# FastAPI Application — Entry Point
# =============================================================================
#
# Run with:
#   uvicorn jurifly.main:app --reload
#
# create_app() wires routers, the audit middleware and the error handlers.
# Every error leaves the API in the same envelope as a successful action:
#
#   {"data": null, "error": "<message>", "message": null}
#
# DESIGN DECISION: One handler per exception family. JuriflyError carries
# its own status code; HTTPException (auth, rate limit) and request
# validation keep theirs. Anything else is logged with its traceback and
# answered with a generic 500 so internals never leak to clients.
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from jurifly.api import (
    admin,
    auth,
    billing,
    companies,
    financials,
    flows,
    invites,
    news,
    notifications,
    profile,
)
from jurifly.api.audit import AuditLoggingMiddleware
from jurifly.api.deps import get_document_store
from jurifly.config import settings
from jurifly.errors import JuriflyError
from jurifly.models.responses import HealthResponse, failed
from jurifly.services.store import DocumentStore

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting %s v%s (store=%s, llm=%s)",
        settings.app_name, settings.app_version,
        settings.store_backend, settings.llm_provider,
    )
    if settings.store_backend == "sql":
        from jurifly.db.engine import create_all_tables

        await create_all_tables()
    yield
    logger.info("Shutting down %s", settings.app_name)


def _error_response(status_code: int, error: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=failed(error).model_dump(),
        headers=headers,
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Compliance and legal workspace API: profiles, credits, "
            "companies, invites and AI prompt flows."
        ),
        version=settings.app_version,
        lifespan=lifespan,
    )

    def resolve_store() -> DocumentStore:
        # Honour dependency overrides so audit logs land in the test store
        provider = app.dependency_overrides.get(get_document_store, get_document_store)
        return provider()

    app.add_middleware(AuditLoggingMiddleware, store_provider=resolve_store)

    @app.exception_handler(JuriflyError)
    async def jurifly_error_handler(request: Request, exc: JuriflyError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request, exc: StarletteHTTPException,
    ) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(p) for p in first.get("loc", ()))
        message = first.get("msg", "Invalid request")
        return _error_response(422, f"{location}: {message}" if location else message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "An unexpected error occurred.")

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(
            version=settings.app_version,
            service=settings.app_name,
            store_backend=settings.store_backend,
        )

    for module in (
        auth, profile, companies, invites, notifications,
        flows, financials, news, billing, admin,
    ):
        app.include_router(module.router)

    return app


app = create_app()
