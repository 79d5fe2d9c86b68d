# =============================================================================
# Audit Logging Middleware — Who Called What, With Which Outcome
# =============================================================================
#
# Writes one AuditLog per API request through the document store, so the
# memory and SQL backends keep the same trail. Admins read it back with
# GET /admin/audit.
#
# DESIGN DECISION: Starlette middleware rather than a dependency. It wraps
# the whole request, so it sees the final status code, including error
# envelopes rendered by the exception handlers in main.py.
#
# DESIGN DECISION: An audit write that fails is logged at WARNING and the
# response is still returned.
# =============================================================================

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from starlette.middleware.base import (
    BaseHTTPMiddleware,
    RequestResponseEndpoint,
)
from starlette.requests import Request
from starlette.responses import Response

from jurifly.config import settings
from jurifly.models.domain import AuditLog
from jurifly.services.store import DocumentStore, get_store

logger = logging.getLogger(__name__)

_UNAUDITED_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


def _should_audit(request: Request) -> bool:
    return (
        settings.audit_logging_enabled
        and request.method != "OPTIONS"
        and request.url.path not in _UNAUDITED_PATHS
    )


def build_audit_entry(request: Request, status_code: int, elapsed_ms: int) -> AuditLog:
    """
    `endpoint` is the router prefix ("flows", "profile", ...); `uid` is
    whatever get_identity put on request.state, None for anonymous calls.
    """
    path = request.url.path
    return AuditLog(
        uid=getattr(request.state, "uid", None),
        endpoint=path.strip("/").split("/", 1)[0],
        method=request.method,
        path=path,
        client_ip=request.client.host if request.client else None,
        status_code=status_code,
        response_time_ms=elapsed_ms,
    )


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """
    The store is resolved per request from `store_provider`; main.py passes
    one that honours dependency overrides, so tests audit into their own
    MemoryDocumentStore.
    """

    def __init__(
        self, app, store_provider: Callable[[], DocumentStore] = get_store,
    ) -> None:
        super().__init__(app)
        self.store_provider = store_provider

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if not _should_audit(request):
            return await call_next(request)

        started = time.monotonic()
        response = await call_next(request)
        entry = build_audit_entry(
            request,
            response.status_code,
            int((time.monotonic() - started) * 1000),
        )

        try:
            await self.store_provider().add_audit_log(entry)
        except Exception as e:
            logger.warning(
                "Failed to write audit log for %s %s: %s",
                entry.method, entry.path, e,
            )
        return response
