# =============================================================================
# Unit Tests — Invites & Team Management
# =============================================================================
#
# Walks the advisor invite lifecycle (pending → accepted → processed) and the
# team invite rules against a MemoryDocumentStore.
# =============================================================================

from __future__ import annotations

import asyncio

from jurifly.models.domain import Company, Identity, TeamMember
from jurifly.services.invites import (
    accept_invite,
    check_for_accepted_invites,
    get_pending_invites,
    remove_team_member,
    revoke_team_invite,
    send_ca_invite,
    send_client_invite,
    send_team_invite,
)
from jurifly.services.profile import ProfileSession
from jurifly.services.store import MemoryDocumentStore


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


async def _session(store, uid, role="Founder", name=None) -> ProfileSession:
    session = ProfileSession(
        store, Identity(uid=uid, email=f"{uid}@example.com", display_name=name),
    )
    await session.fetch_profile(role=role)
    return session


async def _founder_with_company(store) -> ProfileSession:
    founder = await _session(store, "f1", name="Asha")
    await founder.update_profile({
        "name": "Asha",
        "companies": [Company(id="c1", name="Acme", type="LLP", founder_uid="f1")],
    })
    return founder


# ---------------------------------------------------------------------------
# Advisor invites
# ---------------------------------------------------------------------------


class TestAdvisorInvite:
    """Tests for the founder_to_ca lifecycle."""

    def test_full_lifecycle(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            advisor = await _session(store, "ca1", role="CA", name="Ravi")
            await advisor.update_profile({"name": "Ravi"})

            sent = await send_ca_invite(founder, "ca1@example.com", "c1", "Acme")
            pending = await get_pending_invites(advisor)
            accepted = await accept_invite(advisor, pending[0].id)
            checked = await check_for_accepted_invites(founder)
            notifications = await founder.list_notifications()
            return sent, pending, accepted, checked, founder.profile, advisor.profile, \
                notifications, await store.get_invite(pending[0].id)

        (sent, pending, accepted, checked, founder, advisor,
         notifications, invite) = _run(scenario())

        assert sent == (True, "Invitation sent successfully!")
        assert len(pending) == 1
        assert accepted[0] is True
        assert checked == (True, "1 advisor(s) connected.")
        assert founder.company("c1").connected_ca_uid == "ca1"
        assert founder.invites[0].status == "processed"
        assert advisor.client_uids == ["f1"]
        assert invite.status == "processed"
        assert invite.ca_name == "Ravi"
        assert notifications[0].title == "Advisor Connected!"
        assert "Ravi" in notifications[0].description

    def test_only_founders_send(self):
        store = MemoryDocumentStore()

        async def scenario():
            advisor = await _session(store, "ca1", role="CA")
            return await send_ca_invite(advisor, "x@example.com", "c1", "Acme")

        assert _run(scenario()) == (False, "Only founders can send invites.")

    def test_duplicate_pending_invite_rejected(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            await send_ca_invite(founder, "ca1@example.com", "c1", "Acme")
            return await send_ca_invite(founder, "ca1@example.com", "c1", "Acme")

        ok, message = _run(scenario())
        assert ok is False
        assert "already been sent" in message

    def test_only_advisors_accept(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            await send_ca_invite(founder, "ca1@example.com", "c1", "Acme")
            return await accept_invite(founder, founder.profile.invites[0].id)

        assert _run(scenario()) == (False, "Only advisors can accept invites.")

    def test_accepting_twice_fails(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            advisor = await _session(store, "ca1", role="CA")
            await send_ca_invite(founder, "ca1@example.com", "c1", "Acme")
            invite_id = founder.profile.invites[0].id
            await accept_invite(advisor, invite_id)
            return await accept_invite(advisor, invite_id)

        assert _run(scenario()) == (
            False, "Invite not found or has already been processed.",
        )

    def test_other_advisor_cannot_accept(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            intruder = await _session(store, "ca2", role="CA")
            await send_ca_invite(founder, "ca1@example.com", "c1", "Acme")
            invite_id = founder.profile.invites[0].id
            result = await accept_invite(intruder, invite_id)
            checked = await check_for_accepted_invites(founder)
            return result, checked, founder.profile, await store.get_invite(invite_id)

        result, checked, founder, invite = _run(scenario())
        assert result == (False, "Invite not found or has already been processed.")
        assert checked == (True, "No newly accepted invites.")
        assert founder.company("c1").connected_ca_uid is None
        assert invite.status == "pending"
        assert invite.ca_id is None

    def test_email_match_ignores_case(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            advisor = await _session(store, "ca1", role="CA")
            await send_ca_invite(founder, "CA1@Example.com", "c1", "Acme")
            return await accept_invite(advisor, founder.profile.invites[0].id)

        assert _run(scenario())[0] is True

    def test_concurrent_accepts_only_one_wins(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            advisor = await _session(store, "ca1", role="CA")
            await send_ca_invite(founder, "ca1@example.com", "c1", "Acme")
            invite_id = founder.profile.invites[0].id
            return await asyncio.gather(
                accept_invite(advisor, invite_id),
                accept_invite(advisor, invite_id),
            )

        results = _run(scenario())
        assert sorted(ok for ok, _ in results) == [False, True]

    def test_invite_for_foreign_company_rejected(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            sent = await send_ca_invite(founder, "ca1@example.com", "other", "Elsewhere")
            return sent, founder.profile.invites, await store.find_invites()

        sent, remembered, stored = _run(scenario())
        assert sent == (False, "Company not found in your workspace.")
        assert remembered == []
        assert stored == []

    def test_nothing_to_check(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            return await check_for_accepted_invites(founder)

        assert _run(scenario()) == (True, "No newly accepted invites.")

    def test_pending_invites_empty_for_founder(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _founder_with_company(store)
            return await get_pending_invites(founder)

        assert _run(scenario()) == []


class TestClientInvite:
    """Tests for ca_to_client invites."""

    def test_advisor_invites_client(self):
        store = MemoryDocumentStore()

        async def scenario():
            advisor = await _session(store, "ca1", role="Legal Advisor")
            result = await send_client_invite(advisor, "client@example.com")
            return result, await store.find_invites(type="ca_to_client")

        result, invites = _run(scenario())
        assert result == (True, "Client invitation sent.")
        assert invites[0].target_email == "client@example.com"
        assert invites[0].company_name == "New Client Workspace"

    def test_founder_cannot_invite_clients(self):
        store = MemoryDocumentStore()

        async def scenario():
            founder = await _session(store, "f1")
            return await send_client_invite(founder, "client@example.com")

        assert _run(scenario()) == (False, "Only CAs can invite clients.")


# ---------------------------------------------------------------------------
# Team
# ---------------------------------------------------------------------------


class TestTeam:
    """Tests for team invites and membership."""

    def test_team_invite_and_revoke(self):
        store = MemoryDocumentStore()

        async def scenario():
            owner = await _session(store, "f1", name="Asha")
            sent = await send_team_invite(owner, "dev@example.com", "Member")
            invite_id = owner.profile.invites[0].id
            revoked = await revoke_team_invite(owner, invite_id)
            return sent, revoked, owner.profile.invites, await store.get_invite(invite_id)

        sent, revoked, remaining, invite = _run(scenario())
        assert sent == (True, "Invitation sent.")
        assert revoked == (True, "Invite revoked.")
        assert remaining == []
        assert invite.status == "revoked"
        assert invite.role == "Member"

    def test_existing_member_cannot_be_invited(self):
        store = MemoryDocumentStore()

        async def scenario():
            owner = await _session(store, "f1")
            return await send_team_invite(owner, "f1@example.com", "Admin")

        assert _run(scenario()) == (False, "This user is already a member of your team.")

    def test_duplicate_team_invite(self):
        store = MemoryDocumentStore()

        async def scenario():
            owner = await _session(store, "f1")
            await send_team_invite(owner, "dev@example.com", "Member")
            return await send_team_invite(owner, "dev@example.com", "Viewer")

        assert _run(scenario()) == (
            False, "An invitation has already been sent to this email address.",
        )

    def test_cannot_revoke_someone_elses_invite(self):
        store = MemoryDocumentStore()

        async def scenario():
            owner = await _session(store, "f1")
            other = await _session(store, "f2")
            await send_team_invite(owner, "dev@example.com", "Member")
            return await revoke_team_invite(other, owner.profile.invites[0].id)

        assert _run(scenario()) == (False, "Invite not found.")

    def test_remove_member(self):
        store = MemoryDocumentStore()

        async def scenario():
            owner = await _session(store, "f1")
            await owner.mutate(lambda p: p.team_members.append(
                TeamMember(id="m2", name="Dev", email="dev@example.com"),
            ))
            removed = await remove_team_member(owner, "m2")
            missing = await remove_team_member(owner, "m2")
            myself = await remove_team_member(owner, "f1")
            return removed, missing, myself, owner.profile.team_members

        removed, missing, myself, members = _run(scenario())
        assert removed == (True, "Member removed.")
        assert missing == (False, "Team member not found.")
        assert myself == (False, "You cannot remove yourself.")
        assert [m.id for m in members] == ["f1"]
