# =============================================================================
# Auth API — Signup & Bearer Keys
# =============================================================================
#
# POST /auth/signup creates the caller's profile (optionally crediting a
# referrer and redeeming an access pass) and returns the first bearer key.
# POST /auth/keys issues further keys for an authenticated caller.
#
# DESIGN DECISION: The raw key is only returned ONCE, at creation. After
# that, only the key_prefix is visible.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from jurifly.api.deps import get_document_store, get_identity
from jurifly.errors import JuriflyError
from jurifly.models.domain import ApiKey, Identity
from jurifly.models.requests import ApiKeyCreate, SignupRequest
from jurifly.models.responses import ActionResponse, ApiKeyCreated, SignupResult, ok
from jurifly.services.auth import issue_api_key
from jurifly.services.profile import ProfileSession
from jurifly.services.store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

# Keys issued to end users never carry the admin scope
USER_SCOPES = ["user"]


def _key_created(raw_key: str, record: ApiKey) -> ApiKeyCreated:
    return ApiKeyCreated(
        id=record.id,
        name=record.name,
        key_prefix=record.key_prefix,
        raw_key=raw_key,
        uid=record.uid,
        scopes=record.scopes,
        created_at=record.created_at,
        expires_at=record.expires_at,
    )


# ---------------------------------------------------------------------------
# POST /auth/signup — Create Profile
# ---------------------------------------------------------------------------


@router.post(
    "/signup",
    response_model=ActionResponse[SignupResult],
    status_code=201,
    summary="Create a profile and its first API key",
)
async def signup(
    body: SignupRequest,
    store: DocumentStore = Depends(get_document_store),
) -> ActionResponse:
    if await store.get_profile(body.uid) is not None:
        raise JuriflyError("An account with this id already exists.", status_code=409)

    session = ProfileSession(
        store, Identity(uid=body.uid, email=body.email, display_name=body.name),
    )
    await session.fetch_profile(
        role=body.role, legal_region=body.legal_region, ref_id=body.ref_id,
    )

    pass_message = None
    if body.access_pass:
        _, pass_message = await session.apply_access_pass(body.access_pass)

    raw_key, record = await issue_api_key(
        store, body.uid, name="default", scopes=USER_SCOPES,
    )
    logger.info("Signup complete for uid=%s (role=%s)", body.uid, body.role)

    return ok(
        SignupResult(
            profile=session.profile.model_dump(mode="json"),
            api_key=_key_created(raw_key, record),
            access_pass_message=pass_message,
        ),
        message="Welcome aboard!",
    )


# ---------------------------------------------------------------------------
# POST /auth/keys — Issue Another Key
# ---------------------------------------------------------------------------


@router.post(
    "/keys",
    response_model=ActionResponse[ApiKeyCreated],
    status_code=201,
    summary="Issue an additional API key for the caller",
)
async def create_key(
    body: ApiKeyCreate,
    identity: Identity = Depends(get_identity),
    store: DocumentStore = Depends(get_document_store),
) -> ActionResponse:
    raw_key, record = await issue_api_key(
        store, identity.uid, name=body.name, scopes=USER_SCOPES,
        expires_at=body.expires_at,
    )
    return ok(_key_created(raw_key, record), message="Store this key securely.")
