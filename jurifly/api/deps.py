# =============================================================================
# API Dependencies — Identity, Profile Session, Gates
# =============================================================================
#
# FastAPI dependencies that every protected route composes:
#
#   get_identity()         → bearer key → Identity (uid bound to the key)
#   get_profile_session()  → ProfileSession with the profile loaded
#   require_scope(scope)   → endpoint-level permission on the key
#   require_feature(key)   → capability table check (role × plan)
#   get_llm()              → the configured LLM provider
#
# DESIGN DECISION: FastAPI dependency (not middleware) for auth.
# Each endpoint opts in via Depends(...), the resolved objects are available
# in handlers, and tests swap any of them via dependency_overrides.
#
# DESIGN DECISION: With auth_enabled=False the caller names itself with an
# X-User-Id header. Local clients and the dashboard dev server then work
# without issuing keys.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import Any

from fastapi import Depends, Header, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from jurifly.config import settings
from jurifly.models.domain import ApiKey, Identity, as_utc, utcnow
from jurifly.services import capabilities
from jurifly.services.auth import hash_api_key
from jurifly.services.llm import LLMProvider, get_llm_provider
from jurifly.services.profile import ProfileSession
from jurifly.services.store import DocumentStore, get_store

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs (shows "Authorize" button in Swagger UI)
_bearer_scheme = HTTPBearer(auto_error=False)


def get_document_store() -> DocumentStore:
    """The configured store. Tests override this with a MemoryDocumentStore."""
    return get_store()


def get_llm() -> LLMProvider:
    return get_llm_provider()


async def get_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    x_user_id: str | None = Header(default=None),
    x_user_email: str | None = Header(default=None),
    store: DocumentStore = Depends(get_document_store),
) -> Identity:
    """
    Resolve the caller.

    When auth_enabled=False: the X-User-Id header names the caller.
    When auth_enabled=True:
    - Extracts the Bearer token and looks its SHA-256 hash up in the store
    - Validates: is_active, not expired
    - Updates last_used_at
    - Stores the key on request.state for scope checks and audit logging

    Raises:
        HTTPException 401: Missing or invalid credentials
        HTTPException 403: Key is inactive or expired
    """
    if not settings.auth_enabled:
        if not x_user_id:
            raise HTTPException(
                status_code=401,
                detail="Missing X-User-Id header.",
            )
        request.state.uid = x_user_id
        return Identity(uid=x_user_id, email=x_user_email)

    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Provide "
            "'Authorization: Bearer <key>' header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    api_key = await store.get_api_key_by_hash(hash_api_key(credentials.credentials))
    if api_key is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not api_key.is_active:
        raise HTTPException(status_code=403, detail="API key has been deactivated.")

    now = utcnow()
    if api_key.expires_at and as_utc(api_key.expires_at) < now:
        raise HTTPException(status_code=403, detail="API key has expired.")

    await store.touch_api_key(api_key.id, now)

    request.state.api_key = api_key
    request.state.uid = api_key.uid
    return Identity(uid=api_key.uid)


async def get_profile_session(
    identity: Identity = Depends(get_identity),
    store: DocumentStore = Depends(get_document_store),
) -> ProfileSession:
    """A ProfileSession for the caller, with the profile loaded or created."""
    session = ProfileSession(store, identity)
    await session.fetch_profile()
    return session


def check_scope(api_key: ApiKey | None, required_scope: str) -> None:
    """
    Verify the key has the required scope.

    No-op when auth is disabled (no key on the request) and for keys with
    null/empty scopes (full access).
    """
    if api_key is None or not api_key.scopes:
        return
    if required_scope not in api_key.scopes:
        raise HTTPException(
            status_code=403,
            detail=f"API key does not have '{required_scope}' scope.",
        )


def require_scope(scope: str) -> Callable[..., Coroutine[Any, Any, Identity]]:
    """Dependency factory: the caller's key must carry `scope`."""

    async def dependency(
        request: Request,
        identity: Identity = Depends(get_identity),
    ) -> Identity:
        check_scope(getattr(request.state, "api_key", None), scope)
        return identity

    return dependency


def require_feature(feature: str) -> Callable[..., Coroutine[Any, Any, ProfileSession]]:
    """
    Dependency factory: the caller's role and plan must enable `feature`.

    Raises FeatureLockedError (403), rendered by the app's error handler.
    """

    async def dependency(
        session: ProfileSession = Depends(get_profile_session),
    ) -> ProfileSession:
        capabilities.require_feature(session.profile, feature)
        return session

    return dependency
