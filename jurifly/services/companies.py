# =============================================================================
# Companies Service — Companies, Cap Tables & Document Requests
# =============================================================================
#
# Companies live inside the owning profile document, so every write here is
# a ProfileSession.mutate() call: find the company, change it, persist the
# whole profile in one store transaction.
#
# The pure helpers (cap_table_summary, classify_doc_request,
# filter_doc_requests) take plain domain objects and never touch the store.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from typing import Any, Literal, TypeVar

from pydantic import BaseModel

from jurifly.errors import NotFoundError
from jurifly.models.domain import (
    CapTableEntry,
    Company,
    DocumentRequest,
    ProvidedFile,
    UserProfile,
)
from jurifly.services.profile import ProfileSession, default_health

logger = logging.getLogger(__name__)

T = TypeVar("T")

DocRequestState = Literal["Pending", "Overdue", "Received"]
DocRequestView = Literal["pending", "overdue", "all"]


# ---------------------------------------------------------------------------
# Cap table
# ---------------------------------------------------------------------------


class CapTableHolding(BaseModel):
    holder: str
    type: str
    shares: int
    percentage: float


class CapTableSummary(BaseModel):
    total_shares: int
    holdings: list[CapTableHolding]
    founder_percentage: float
    investor_percentage: float
    esop_percentage: float


def _percent(part: int, total: int) -> float:
    return round(part / total * 100, 2) if total else 0.0


def cap_table_summary(entries: list[CapTableEntry]) -> CapTableSummary:
    """
    Ownership per holder and per entry type.

    Entries for the same holder are combined. Percentages are
    shares / total × 100, rounded to 2 dp.
    """
    total = sum(entry.shares for entry in entries)

    by_holder: dict[str, tuple[str, int]] = {}
    by_type = {"Founder": 0, "Investor": 0, "ESOP": 0}
    for entry in entries:
        entry_type, shares = by_holder.get(entry.holder, (entry.type, 0))
        by_holder[entry.holder] = (entry_type, shares + entry.shares)
        by_type[entry.type] += entry.shares

    return CapTableSummary(
        total_shares=total,
        holdings=[
            CapTableHolding(
                holder=holder,
                type=entry_type,
                shares=shares,
                percentage=_percent(shares, total),
            )
            for holder, (entry_type, shares) in by_holder.items()
        ],
        founder_percentage=_percent(by_type["Founder"], total),
        investor_percentage=_percent(by_type["Investor"], total),
        esop_percentage=_percent(by_type["ESOP"], total),
    )


# ---------------------------------------------------------------------------
# Document requests
# ---------------------------------------------------------------------------


def classify_doc_request(request: DocumentRequest, today: date) -> DocRequestState:
    """A pending request past its due date is Overdue."""
    if request.status == "Pending":
        return "Overdue" if request.due_date < today else "Pending"
    return "Received"


def filter_doc_requests(
    requests: list[DocumentRequest],
    view: DocRequestView,
    today: date,
) -> list[DocumentRequest]:
    """Select requests for a view. Received requests appear only in "all"."""
    if view == "all":
        return list(requests)
    wanted = "Overdue" if view == "overdue" else "Pending"
    return [r for r in requests if classify_doc_request(r, today) == wanted]


# ---------------------------------------------------------------------------
# Profile mutations
# ---------------------------------------------------------------------------


def _find_company(profile: UserProfile, company_id: str) -> Company:
    company = profile.company(company_id)
    if company is None:
        raise NotFoundError(f"Company {company_id} not found.")
    return company


async def _mutate_company(
    session: ProfileSession,
    company_id: str,
    change: Callable[[Company], T],
) -> T:
    return await session.mutate(
        lambda profile: change(_find_company(profile, company_id)),
    )


async def add_company(session: ProfileSession, company: Company) -> Company:
    """Attach a company to the caller. The first company becomes active."""
    if company.health is None:
        company.health = default_health()
    if company.founder_uid is None and not session.profile.is_advisor:
        company.founder_uid = session.uid

    def add(profile: UserProfile) -> Company:
        profile.companies.append(company)
        if not profile.active_company_id:
            profile.active_company_id = company.id
        return company

    added = await session.mutate(add)
    logger.info("Added company %s (%s) for uid=%s", added.id, added.name, session.uid)
    return added


async def update_company(
    session: ProfileSession, company_id: str, fields: dict[str, Any],
) -> Company:
    def update(profile: UserProfile) -> Company:
        current = _find_company(profile, company_id)
        merged = Company.model_validate(
            {**current.model_dump(mode="json"), **fields, "id": company_id},
        )
        profile.companies = [
            merged if c.id == company_id else c for c in profile.companies
        ]
        return merged

    return await session.mutate(update)


async def remove_company(session: ProfileSession, company_id: str) -> None:
    def remove(profile: UserProfile) -> None:
        _find_company(profile, company_id)
        profile.companies = [c for c in profile.companies if c.id != company_id]
        if profile.active_company_id == company_id:
            profile.active_company_id = (
                profile.companies[0].id if profile.companies else ""
            )

    await session.mutate(remove)
    logger.info("Removed company %s for uid=%s", company_id, session.uid)


async def add_cap_table_entry(
    session: ProfileSession, company_id: str, entry: CapTableEntry,
) -> CapTableEntry:
    def add(company: Company) -> CapTableEntry:
        company.cap_table.append(entry)
        return entry

    return await _mutate_company(session, company_id, add)


async def remove_cap_table_entry(
    session: ProfileSession, company_id: str, entry_id: str,
) -> None:
    def remove(company: Company) -> None:
        remaining = [e for e in company.cap_table if e.id != entry_id]
        if len(remaining) == len(company.cap_table):
            raise NotFoundError(f"Cap table entry {entry_id} not found.")
        company.cap_table = remaining

    await _mutate_company(session, company_id, remove)


async def add_doc_request(
    session: ProfileSession, company_id: str, title: str, due_date: date,
) -> DocumentRequest:
    request = DocumentRequest(title=title, due_date=due_date, status="Pending")

    def add(company: Company) -> DocumentRequest:
        company.doc_requests.append(request)
        return request

    return await _mutate_company(session, company_id, add)


async def mark_doc_request_received(
    session: ProfileSession,
    company_id: str,
    request_id: str,
    provided_file: ProvidedFile | None = None,
) -> DocumentRequest:
    def mark(company: Company) -> DocumentRequest:
        for request in company.doc_requests:
            if request.id == request_id:
                request.status = "Received"
                if provided_file is not None:
                    request.provided_file = provided_file
                return request
        raise NotFoundError(f"Document request {request_id} not found.")

    return await _mutate_company(session, company_id, mark)
