# =============================================================================
# Profile API — Profile, Credits, Access Passes, Feedback, Chat History
# =============================================================================
#
# Every route resolves a ProfileSession through get_profile_session, which
# creates the profile on first use. Routes only translate between HTTP and
# the session; the rules live in services/profile.py.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from jurifly.api.deps import get_profile_session
from jurifly.errors import InsufficientCreditsError, JuriflyError
from jurifly.models.requests import (
    AccessPassRequest,
    ChatHistoryRequest,
    DeductRequest,
    FeedbackRequest,
    ProfileUpdate,
)
from jurifly.models.responses import (
    ActionResponse,
    CapabilitiesResult,
    CreditBalance,
    ok,
)
from jurifly.services.capabilities import capabilities
from jurifly.services.profile import ProfileSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=ActionResponse, summary="Get (or create) the caller's profile")
async def get_profile(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    return ok(session.profile.model_dump(mode="json"))


@router.patch("", response_model=ActionResponse, summary="Update profile fields")
async def update_profile(
    body: ProfileUpdate,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        return ok(session.profile.model_dump(mode="json"), message="Nothing to update.")

    company_id = fields.get("active_company_id")
    if company_id and session.profile.company(company_id) is None:
        raise JuriflyError(f"Company {company_id} not found.", status_code=404)

    profile = await session.update_profile(fields)
    return ok(profile.model_dump(mode="json"), message="Profile updated.")


# ---------------------------------------------------------------------------
# Credits & access passes
# ---------------------------------------------------------------------------


@router.post(
    "/credits/deduct",
    response_model=ActionResponse[CreditBalance],
    summary="Spend credits",
)
async def deduct_credits(
    body: DeductRequest,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    if not await session.deduct_credits(body.amount):
        raise InsufficientCreditsError(body.amount, session.profile.credits)
    return ok(CreditBalance(credits=session.profile.credits))


@router.post("/access-pass", response_model=ActionResponse, summary="Redeem an access pass")
async def redeem_access_pass(
    body: AccessPassRequest,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    success, message = await session.apply_access_pass(body.code.strip())
    if not success:
        raise JuriflyError(message)
    return ok(session.profile.model_dump(mode="json"), message=message)


@router.get(
    "/capabilities",
    response_model=ActionResponse[CapabilitiesResult],
    summary="Features enabled for the caller's role and plan",
)
async def get_capabilities(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    profile = session.profile
    return ok(CapabilitiesResult(
        role=profile.role,
        plan=profile.plan,
        plan_active=session.is_plan_active(),
        features=capabilities(profile.role, profile.plan),
    ))


# ---------------------------------------------------------------------------
# Feedback & chat history
# ---------------------------------------------------------------------------


@router.post("/feedback", response_model=ActionResponse, status_code=201)
async def add_feedback(
    body: FeedbackRequest,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    feedback = await session.add_feedback(body.category, body.message, body.sentiment)
    return ok({"id": feedback.id}, message="Thank you for your feedback!")


@router.get("/chat-history", response_model=ActionResponse)
async def get_chat_history(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    conversations = await session.get_chat_history()
    return ok([c.model_dump(mode="json") for c in conversations])


@router.post("/chat-history", response_model=ActionResponse, status_code=201)
async def save_chat_history(
    body: ChatHistoryRequest,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    conversation = await session.save_chat_history(body.messages)
    return ok(conversation.model_dump(mode="json"), message="Conversation saved.")
