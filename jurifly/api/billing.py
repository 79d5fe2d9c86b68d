# =============================================================================
# Billing API — UPI Transaction Records
# =============================================================================
#
# Payments happen outside the API (UPI QR). The client then submits the UPI
# transaction id, which is stored as `pending_verification`. An admin
# verifies it (POST /admin/transactions/{id}/verify) and only then is the
# plan applied or the credits added.
# =============================================================================

from __future__ import annotations

import calendar
import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from jurifly.api.deps import get_profile_session
from jurifly.config import settings
from jurifly.errors import JuriflyError
from jurifly.models.domain import Transaction, utcnow
from jurifly.models.requests import TransactionCreate
from jurifly.models.responses import ActionResponse, ok
from jurifly.services.profile import ProfileSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


def add_months(start: datetime, months: int) -> datetime:
    """Same day-of-month `months` later, clamped to the month's last day."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def plan_end_date(start: datetime, cycle: str) -> datetime:
    return add_months(start, 12 if cycle == "yearly" else 1)


@router.get("/payment-details", response_model=ActionResponse)
async def payment_details() -> ActionResponse:
    """Where to send UPI payments."""
    return ok({"upi_id": settings.upi_id, "merchant_name": settings.merchant_name})


@router.post("/transactions", response_model=ActionResponse, status_code=201)
async def create_transaction(
    body: TransactionCreate,
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    now = utcnow()
    start: datetime | None = None
    end: datetime | None = None

    if body.type == "plan":
        if body.plan is None or body.cycle is None:
            raise JuriflyError("Plan purchases need both plan and cycle.", status_code=422)
        start, end = now, plan_end_date(now, body.cycle)
    elif body.credits is None:
        raise JuriflyError("Credit pack purchases need a credit amount.", status_code=422)

    transaction = await session.store.add_transaction(Transaction(
        uid=session.uid,
        email=session.profile.email or session.identity.email or "",
        type=body.type,
        name=body.name,
        amount=body.amount,
        upi_transaction_id=body.upi_transaction_id,
        plan=body.plan if body.type == "plan" else None,
        cycle=body.cycle if body.type == "plan" else None,
        credits=body.credits if body.type == "credit_pack" else None,
        plan_start_date=start,
        plan_end_date=end,
        created_at=now,
    ))
    logger.info(
        "Transaction %s (%s, %.2f) submitted by uid=%s",
        transaction.id, transaction.type, transaction.amount, session.uid,
    )
    return ok(
        transaction.model_dump(mode="json"),
        message=(
            "Transaction submitted for verification. "
            "Your plan will be activated shortly."
        ),
    )


@router.get("/transactions", response_model=ActionResponse)
async def list_transactions(
    session: ProfileSession = Depends(get_profile_session),
) -> ActionResponse:
    transactions = await session.store.list_transactions(session.uid)
    return ok([t.model_dump(mode="json") for t in transactions])

