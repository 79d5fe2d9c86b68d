# =============================================================================
# Unit Tests — Companies, Cap Tables & Document Requests
# =============================================================================
#
# Pure helpers are tested directly; profile mutations run against a
# MemoryDocumentStore.
# =============================================================================

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from jurifly.errors import NotFoundError
from jurifly.models.domain import (
    CapTableEntry,
    Company,
    DocumentRequest,
    Identity,
    ProvidedFile,
)
from jurifly.services.companies import (
    add_cap_table_entry,
    add_company,
    add_doc_request,
    cap_table_summary,
    classify_doc_request,
    filter_doc_requests,
    mark_doc_request_received,
    remove_cap_table_entry,
    remove_company,
    update_company,
)
from jurifly.services.profile import ProfileSession
from jurifly.services.store import MemoryDocumentStore


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


async def _founder(store, uid="f1") -> ProfileSession:
    session = ProfileSession(store, Identity(uid=uid, email=f"{uid}@example.com"))
    await session.fetch_profile()
    return session


def _entry(holder, entry_type, shares) -> CapTableEntry:
    return CapTableEntry(
        holder=holder, type=entry_type, shares=shares, grant_date=date(2024, 1, 1),
    )


# ---------------------------------------------------------------------------
# Cap table summary
# ---------------------------------------------------------------------------


class TestCapTableSummary:
    """Tests for cap_table_summary()."""

    def test_percentages(self):
        summary = cap_table_summary([
            _entry("Asha", "Founder", 6000),
            _entry("Seed Fund", "Investor", 3000),
            _entry("Pool", "ESOP", 1000),
        ])
        assert summary.total_shares == 10000
        assert summary.founder_percentage == 60.0
        assert summary.investor_percentage == 30.0
        assert summary.esop_percentage == 10.0
        assert sum(h.percentage for h in summary.holdings) == pytest.approx(100.0)

    def test_holder_percentages_sum_to_hundred(self):
        summary = cap_table_summary([
            _entry("A", "Founder", 1),
            _entry("B", "Founder", 1),
            _entry("C", "Investor", 1),
            _entry("D", "ESOP", 7),
            _entry("E", "Investor", 13),
        ])
        assert abs(sum(h.percentage for h in summary.holdings) - 100) < 0.05

    def test_entries_for_same_holder_combine(self):
        summary = cap_table_summary([
            _entry("Asha", "Founder", 500),
            _entry("Ravi", "Founder", 250),
            _entry("Asha", "Founder", 250),
        ])
        holdings = {h.holder: h for h in summary.holdings}
        assert len(holdings) == 2
        assert holdings["Asha"].shares == 750
        assert holdings["Asha"].percentage == 75.0

    def test_rounds_to_two_places(self):
        summary = cap_table_summary([
            _entry("A", "Founder", 1),
            _entry("B", "Founder", 1),
            _entry("C", "Investor", 1),
        ])
        assert summary.holdings[0].percentage == 33.33

    def test_empty_table(self):
        summary = cap_table_summary([])
        assert summary.total_shares == 0
        assert summary.holdings == []
        assert summary.founder_percentage == 0.0


# ---------------------------------------------------------------------------
# Document request classification
# ---------------------------------------------------------------------------


TODAY = date(2025, 6, 15)


def _request(title, due, status="Pending") -> DocumentRequest:
    return DocumentRequest(title=title, due_date=due, status=status)


class TestDocRequests:
    """Tests for classify_doc_request() and filter_doc_requests()."""

    def test_pending_before_due_date(self):
        assert classify_doc_request(_request("PAN", date(2025, 6, 20)), TODAY) == "Pending"

    def test_due_today_is_not_overdue(self):
        assert classify_doc_request(_request("PAN", TODAY), TODAY) == "Pending"

    def test_pending_after_due_date_is_overdue(self):
        assert classify_doc_request(_request("PAN", date(2025, 6, 1)), TODAY) == "Overdue"

    def test_received_is_never_overdue(self):
        late = _request("PAN", date(2025, 1, 1), status="Received")
        assert classify_doc_request(late, TODAY) == "Received"

    def test_views(self):
        requests = [
            _request("Upcoming", date(2025, 7, 1)),
            _request("Late", date(2025, 5, 1)),
            _request("Done", date(2025, 5, 1), status="Received"),
        ]
        assert [r.title for r in filter_doc_requests(requests, "pending", TODAY)] == ["Upcoming"]
        assert [r.title for r in filter_doc_requests(requests, "overdue", TODAY)] == ["Late"]
        assert len(filter_doc_requests(requests, "all", TODAY)) == 3


# ---------------------------------------------------------------------------
# Company mutations
# ---------------------------------------------------------------------------


class TestCompanyMutations:
    """Tests for add/update/remove company and nested records."""

    def test_first_company_becomes_active(self):
        store = MemoryDocumentStore()

        async def scenario():
            session = await _founder(store)
            company = await add_company(session, Company(name="Acme", type="LLP"))
            await add_company(session, Company(name="Beta", type="LLP"))
            return company, await store.get_profile("f1")

        company, stored = _run(scenario())
        assert stored.active_company_id == company.id
        assert len(stored.companies) == 2
        assert stored.companies[0].founder_uid == "f1"
        assert stored.companies[0].health is not None

    def test_update_company_merges_fields(self):
        store = MemoryDocumentStore()

        async def scenario():
            session = await _founder(store)
            company = await add_company(session, Company(name="Acme", type="LLP"))
            return await update_company(session, company.id, {"sector": "Fintech"})

        updated = _run(scenario())
        assert updated.sector == "Fintech"
        assert updated.name == "Acme"

    def test_removing_active_company_moves_active(self):
        store = MemoryDocumentStore()

        async def scenario():
            session = await _founder(store)
            first = await add_company(session, Company(name="Acme", type="LLP"))
            second = await add_company(session, Company(name="Beta", type="LLP"))
            await remove_company(session, first.id)
            return second, session.profile

        second, profile = _run(scenario())
        assert profile.active_company_id == second.id
        assert [c.name for c in profile.companies] == ["Beta"]

    def test_unknown_company_raises(self):
        store = MemoryDocumentStore()

        async def scenario():
            session = await _founder(store)
            await remove_company(session, "missing")

        with pytest.raises(NotFoundError):
            _run(scenario())

    def test_cap_table_add_and_remove(self):
        store = MemoryDocumentStore()

        async def scenario():
            session = await _founder(store)
            company = await add_company(session, Company(name="Acme", type="LLP"))
            entry = await add_cap_table_entry(
                session, company.id, _entry("Asha", "Founder", 100),
            )
            after_add = len(session.profile.company(company.id).cap_table)
            await remove_cap_table_entry(session, company.id, entry.id)
            return after_add, session.profile.company(company.id).cap_table

        after_add, remaining = _run(scenario())
        assert after_add == 1
        assert remaining == []

    def test_doc_request_received(self):
        store = MemoryDocumentStore()
        provided = ProvidedFile(id="file1", name="pan.pdf", url="https://files/pan.pdf")

        async def scenario():
            session = await _founder(store)
            company = await add_company(session, Company(name="Acme", type="LLP"))
            request = await add_doc_request(session, company.id, "PAN card", date(2025, 7, 1))
            await mark_doc_request_received(session, company.id, request.id, provided)
            return (await store.get_profile("f1")).company(company.id).doc_requests[0]

        stored = _run(scenario())
        assert stored.status == "Received"
        assert stored.provided_file.name == "pan.pdf"

    def test_unknown_doc_request_raises(self):
        store = MemoryDocumentStore()

        async def scenario():
            session = await _founder(store)
            company = await add_company(session, Company(name="Acme", type="LLP"))
            await mark_doc_request_received(session, company.id, "missing")

        with pytest.raises(NotFoundError):
            _run(scenario())
