# =============================================================================
# Invites Service — Advisor, Client & Team Invitations
# =============================================================================
#
# Invites live in their own collection so the invited party can find them by
# email. The sender also keeps a copy in their profile's `invites` list for
# display.
#
# LIFECYCLE (founder_to_ca):
#   Founder sends ──→ pending ──(advisor accepts)──→ accepted
#        ──(founder's next check_for_accepted_invites)──→ processed
#   Processing links the company (connected_ca_uid) and notifies the founder.
#
# Every operation returns (success, message). Rule violations are reported
# in the message, not raised; store failures still raise StoreError.
# =============================================================================

from __future__ import annotations

import logging

from jurifly.models.domain import Invite, UserProfile, utcnow
from jurifly.services.profile import ProfileSession

logger = logging.getLogger(__name__)

InviteResult = tuple[bool, str]


async def _remember_invite(session: ProfileSession, invite: Invite) -> None:
    await session.mutate(lambda profile: profile.invites.append(invite))


def _caller_email(session: ProfileSession) -> str | None:
    return session.profile.email or session.identity.email


def _same_email(a: str | None, b: str | None) -> bool:
    return bool(a and b) and a.strip().lower() == b.strip().lower()


async def send_ca_invite(
    session: ProfileSession,
    ca_email: str,
    company_id: str,
    company_name: str,
) -> InviteResult:
    profile = session.profile
    if profile.role != "Founder":
        return False, "Only founders can send invites."
    if profile.company(company_id) is None:
        return False, "Company not found in your workspace."

    if any(
        inv.target_email == ca_email
        and inv.company_id == company_id
        and inv.status == "pending"
        for inv in profile.invites
    ):
        return False, "An invitation has already been sent to this advisor for this company."

    invite = await session.store.add_invite(Invite(
        type="founder_to_ca",
        target_email=ca_email,
        founder_id=session.uid,
        founder_name=profile.name,
        company_id=company_id,
        company_name=company_name,
    ))
    await _remember_invite(session, invite)
    logger.info("uid=%s invited advisor %s to company %s", session.uid, ca_email, company_id)
    return True, "Invitation sent successfully!"


async def send_client_invite(session: ProfileSession, client_email: str) -> InviteResult:
    profile = session.profile
    if not profile.is_advisor:
        return False, "Only CAs can invite clients."

    # The client creates their own workspace; the advisor's uid stands in
    invite = await session.store.add_invite(Invite(
        type="ca_to_client",
        target_email=client_email,
        founder_id=session.uid,
        founder_name=profile.name,
        company_id=session.uid,
        company_name="New Client Workspace",
    ))
    await _remember_invite(session, invite)
    logger.info("Advisor uid=%s invited client %s", session.uid, client_email)
    return True, "Client invitation sent."


async def send_team_invite(session: ProfileSession, email: str, role: str) -> InviteResult:
    profile = session.profile
    if any(member.email == email for member in profile.team_members):
        return False, "This user is already a member of your team."
    if any(
        inv.target_email == email
        and inv.status == "pending"
        and inv.type == "team_invite"
        for inv in profile.invites
    ):
        return False, "An invitation has already been sent to this email address."

    invite = await session.store.add_invite(Invite(
        type="team_invite",
        target_email=email,
        founder_id=session.uid,
        founder_name=profile.name,
        company_id=session.uid,
        company_name=f"{profile.name}'s Workspace",
        role=role,
    ))
    await _remember_invite(session, invite)
    logger.info("uid=%s invited %s to the team as %s", session.uid, email, role)
    return True, "Invitation sent."


async def get_pending_invites(session: ProfileSession) -> list[Invite]:
    """Pending invites addressed to the calling advisor's email."""
    profile = session.profile
    email = _caller_email(session)
    if not profile.is_advisor or not email:
        return []
    return await session.store.find_invites(target_email=email, status="pending")


async def accept_invite(session: ProfileSession, invite_id: str) -> InviteResult:
    """
    Only the advisor the invite was addressed to may accept it. An invite
    for someone else is reported exactly like a missing one.
    """
    profile = session.profile
    if not profile.is_advisor:
        return False, "Only advisors can accept invites."

    not_found = False, "Invite not found or has already been processed."
    invite = await session.store.get_invite(invite_id)
    if invite is None or not _same_email(invite.target_email, _caller_email(session)):
        if invite is not None:
            logger.warning(
                "uid=%s tried to accept invite %s addressed to someone else",
                session.uid, invite_id,
            )
        return not_found

    invite = await session.store.transition_invite(invite_id, "pending", {
        "status": "accepted",
        "accepted_at": utcnow(),
        "ca_id": session.uid,
        "ca_name": profile.name,
    })
    if invite is None:
        return not_found

    def add_client(advisor: UserProfile) -> None:
        if invite.founder_id not in advisor.client_uids:
            advisor.client_uids.append(invite.founder_id)

    if invite.type == "founder_to_ca":
        await session.mutate(add_client)

    logger.info("Advisor uid=%s accepted invite %s", session.uid, invite_id)
    return True, "Invitation Accepted! The new client will appear on your dashboard shortly."


async def check_for_accepted_invites(session: ProfileSession) -> InviteResult:
    """
    Link companies whose advisor invite has been accepted.

    Invites for companies that already have an advisor stay `accepted`.
    """
    if session.profile.role != "Founder":
        return False, "Only founders can check for accepted invites."

    accepted = await session.store.find_invites(
        founder_id=session.uid, status="accepted", type="founder_to_ca",
    )
    if not accepted:
        return True, "No newly accepted invites."

    def link(profile: UserProfile) -> list[Invite]:
        linked = []
        for invite in accepted:
            company = profile.company(invite.company_id)
            if company is not None and not company.connected_ca_uid:
                company.connected_ca_uid = invite.ca_id
                linked.append(invite)
        linked_ids = {invite.id for invite in linked}
        for copy in profile.invites:
            if copy.id in linked_ids:
                copy.status = "processed"
        return linked

    linked = await session.mutate(link)

    for invite in linked:
        await session.store.update_invite(invite.id, {"status": "processed"})
        await session.add_notification(
            title="Advisor Connected!",
            description=(
                f"{invite.ca_name} has accepted your invitation and can now "
                f"manage {invite.company_name}."
            ),
            icon="CheckCircle",
            link="/dashboard/ca-connect",
        )
        logger.info(
            "Company %s linked to advisor %s for uid=%s",
            invite.company_id, invite.ca_id, session.uid,
        )

    if not linked:
        return True, "No newly accepted invites."
    return True, f"{len(linked)} advisor(s) connected."


async def revoke_team_invite(session: ProfileSession, invite_id: str) -> InviteResult:
    invite = await session.store.get_invite(invite_id)
    if invite is None or invite.founder_id != session.uid:
        return False, "Invite not found."

    await session.store.update_invite(invite_id, {"status": "revoked"})

    def forget(profile: UserProfile) -> None:
        profile.invites = [inv for inv in profile.invites if inv.id != invite_id]

    await session.mutate(forget)
    logger.info("uid=%s revoked invite %s", session.uid, invite_id)
    return True, "Invite revoked."


async def remove_team_member(session: ProfileSession, member_id: str) -> InviteResult:
    if member_id == session.uid:
        return False, "You cannot remove yourself."

    def remove(profile: UserProfile) -> bool:
        remaining = [m for m in profile.team_members if m.id != member_id]
        removed = len(remaining) != len(profile.team_members)
        profile.team_members = remaining
        return removed

    if not await session.mutate(remove):
        return False, "Team member not found."

    logger.info("uid=%s removed team member %s", session.uid, member_id)
    return True, "Member removed."
