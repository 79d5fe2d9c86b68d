# =============================================================================
# Invites API — Advisor, Client & Team Invitations
# =============================================================================
#
# The invite service reports rule violations as (False, message) rather
# than raising. This router turns that into the envelope: success goes to
# `message`, failure to `error` with HTTP 400.
# =============================================================================

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from jurifly.api.deps import get_profile_session
from jurifly.models.requests import CaInviteRequest, ClientInviteRequest, TeamInviteRequest
from jurifly.models.responses import ActionResponse, failed, ok
from jurifly.services import invites as invite_service
from jurifly.services.profile import ProfileSession

router = APIRouter(prefix="/invites", tags=["Invites"])


def _respond(result: invite_service.InviteResult) -> ActionResponse | JSONResponse:
    success, message = result
    if success:
        return ok(message=message)
    return JSONResponse(status_code=400, content=failed(message).model_dump())


@router.post("/ca", response_model=ActionResponse, summary="Invite an advisor to a company")
async def send_ca_invite(
    body: CaInviteRequest,
    session: ProfileSession = Depends(get_profile_session),
):
    return _respond(await invite_service.send_ca_invite(
        session, body.ca_email, body.company_id, body.company_name,
    ))


@router.post("/client", response_model=ActionResponse, summary="Invite a client (advisors)")
async def send_client_invite(
    body: ClientInviteRequest,
    session: ProfileSession = Depends(get_profile_session),
):
    return _respond(await invite_service.send_client_invite(session, body.client_email))


@router.post("/team", response_model=ActionResponse, summary="Invite a team member")
async def send_team_invite(
    body: TeamInviteRequest,
    session: ProfileSession = Depends(get_profile_session),
):
    return _respond(await invite_service.send_team_invite(session, body.email, body.role))


@router.get("/pending", response_model=ActionResponse, summary="Invites awaiting the advisor")
async def get_pending_invites(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    invites = await invite_service.get_pending_invites(session)
    return ok([invite.model_dump(mode="json") for invite in invites])


@router.post("/{invite_id}/accept", response_model=ActionResponse)
async def accept_invite(
    invite_id: str,
    session: ProfileSession = Depends(get_profile_session),
):
    return _respond(await invite_service.accept_invite(session, invite_id))


@router.post("/check-accepted", response_model=ActionResponse)
async def check_for_accepted_invites(
    session: ProfileSession = Depends(get_profile_session),
):
    return _respond(await invite_service.check_for_accepted_invites(session))


@router.delete("/{invite_id}", response_model=ActionResponse, summary="Revoke a sent invite")
async def revoke_team_invite(
    invite_id: str,
    session: ProfileSession = Depends(get_profile_session),
):
    return _respond(await invite_service.revoke_team_invite(session, invite_id))


@router.delete("/team/{member_id}", response_model=ActionResponse)
async def remove_team_member(
    member_id: str,
    session: ProfileSession = Depends(get_profile_session),
):
    return _respond(await invite_service.remove_team_member(session, member_id))
