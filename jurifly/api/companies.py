# =============================================================================
# Companies API — Companies, Cap Table, Document Requests, Checklist
# =============================================================================
#
# Companies are nested inside the caller's profile document. Cap table
# routes are gated on the `capTable` feature; the rest only need a profile.
# =============================================================================

from __future__ import annotations

import logging
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query

from jurifly.api.deps import get_profile_session, require_feature
from jurifly.errors import NotFoundError
from jurifly.models.domain import CapTableEntry, Company
from jurifly.models.requests import (
    CapTableEntryCreate,
    ChecklistUpdate,
    CompanyCreate,
    CompanyUpdate,
    DocRequestCreate,
    DocRequestReceived,
)
from jurifly.models.responses import ActionResponse, ok
from jurifly.services import companies as company_service
from jurifly.services.profile import ProfileSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["Companies"])


def _company_or_404(session: ProfileSession, company_id: str) -> Company:
    company = session.profile.company(company_id)
    if company is None:
        raise NotFoundError(f"Company {company_id} not found.")
    return company


# ---------------------------------------------------------------------------
# Company CRUD
# ---------------------------------------------------------------------------


@router.get("", response_model=ActionResponse)
async def list_companies(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    return ok([c.model_dump(mode="json") for c in session.profile.companies])


@router.post("", response_model=ActionResponse, status_code=201)
async def create_company(
    body: CompanyCreate,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    company = await company_service.add_company(
        session, Company(**body.model_dump()),
    )
    await session.record_activity(f"Added company {company.name}")
    return ok(company.model_dump(mode="json"), message="Company added.")


@router.get("/{company_id}", response_model=ActionResponse)
async def get_company(
    company_id: str,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    return ok(_company_or_404(session, company_id).model_dump(mode="json"))


@router.patch("/{company_id}", response_model=ActionResponse)
async def update_company(
    company_id: str,
    body: CompanyUpdate,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    company = await company_service.update_company(
        session, company_id, body.model_dump(mode="json", exclude_unset=True),
    )
    return ok(company.model_dump(mode="json"), message="Company updated.")


@router.delete("/{company_id}", response_model=ActionResponse)
async def delete_company(
    company_id: str,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    await company_service.remove_company(session, company_id)
    return ok(message="Company removed.")


# ---------------------------------------------------------------------------
# Cap table
# ---------------------------------------------------------------------------


@router.get("/{company_id}/cap-table", response_model=ActionResponse)
async def get_cap_table(
    company_id: str,
    session: ProfileSession = Depends(require_feature("capTable")),
) -> ActionResponse:
    company = _company_or_404(session, company_id)
    summary = company_service.cap_table_summary(company.cap_table)
    return ok({
        "entries": [e.model_dump(mode="json") for e in company.cap_table],
        "summary": summary.model_dump(),
    })


@router.post("/{company_id}/cap-table", response_model=ActionResponse, status_code=201)
async def add_cap_table_entry(
    company_id: str,
    body: CapTableEntryCreate,
    session: ProfileSession = Depends(require_feature("capTable")),
) -> ActionResponse:
    entry = await company_service.add_cap_table_entry(
        session, company_id, CapTableEntry(**body.model_dump()),
    )
    return ok(entry.model_dump(mode="json"), message="Cap table entry added.")


@router.delete("/{company_id}/cap-table/{entry_id}", response_model=ActionResponse)
async def remove_cap_table_entry(
    company_id: str,
    entry_id: str,
    session: ProfileSession = Depends(require_feature("capTable")),
) -> ActionResponse:
    await company_service.remove_cap_table_entry(session, company_id, entry_id)
    return ok(message="Cap table entry removed.")


# ---------------------------------------------------------------------------
# Document requests
# ---------------------------------------------------------------------------


@router.get("/{company_id}/doc-requests", response_model=ActionResponse)
async def list_doc_requests(
    company_id: str,
    view: Literal["pending", "overdue", "all"] = Query(default="all"),
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    company = _company_or_404(session, company_id)
    today = date.today()
    requests = company_service.filter_doc_requests(company.doc_requests, view, today)
    return ok([
        {
            **r.model_dump(mode="json"),
            "state": company_service.classify_doc_request(r, today),
        }
        for r in requests
    ])


@router.post("/{company_id}/doc-requests", response_model=ActionResponse, status_code=201)
async def add_doc_request(
    company_id: str,
    body: DocRequestCreate,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    request = await company_service.add_doc_request(
        session, company_id, body.title, body.due_date,
    )
    return ok(request.model_dump(mode="json"), message="Document requested.")


@router.post(
    "/{company_id}/doc-requests/{request_id}/received",
    response_model=ActionResponse,
)
async def mark_doc_request_received(
    company_id: str,
    request_id: str,
    body: DocRequestReceived,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    request = await company_service.mark_doc_request_received(
        session, company_id, request_id, body.provided_file,
    )
    return ok(request.model_dump(mode="json"), message="Marked as received.")


# ---------------------------------------------------------------------------
# Compliance checklist
# ---------------------------------------------------------------------------


@router.put("/{company_id}/checklist", response_model=ActionResponse)
async def update_checklist(
    company_id: str,
    body: ChecklistUpdate,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    status = await session.update_company_checklist(company_id, body.updates)
    return ok(status, message="Checklist updated.")
