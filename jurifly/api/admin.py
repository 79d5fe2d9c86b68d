# =============================================================================
# Admin API — Transactions, Access Passes, Keys, Audit Log
# =============================================================================
#
# All endpoints require the "admin" scope. Keys issued through /auth carry
# only "user", so admin keys come from POST /admin/keys or the
# scripts/issue_admin_key.py bootstrap script.
#
# DESIGN DECISION: Verification applies the purchase to the buyer's profile
# through a ProfileSession for that uid, so plan changes and credit grants
# go through the same store primitives as the buyer's own actions.
#
# The transaction is claimed (pending_verification → verified/failed) with a
# status-guarded store transition before anything is applied. Of two
# concurrent verify calls only one claims it; the other gets 409.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from jurifly.api.deps import get_document_store, require_scope
from jurifly.errors import JuriflyError, NotFoundError, ProfileNotFoundError
from jurifly.models.domain import AccessPass, Identity, Transaction, utcnow
from jurifly.models.requests import AccessPassCreate
from jurifly.models.responses import ActionResponse, ok
from jurifly.services.auth import issue_api_key
from jurifly.services.profile import ProfileSession
from jurifly.services.store import DocumentStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

_admin = require_scope("admin")


class AdminKeyCreate(BaseModel):
    uid: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    scopes: list[str] | None = Field(default=None, description="Null = full access")
    rate_limit_rpm: int | None = Field(default=None, gt=0)


# ---------------------------------------------------------------------------
# POST /admin/transactions/{id}/verify — Apply a Purchase
# ---------------------------------------------------------------------------


@router.post("/transactions/{transaction_id}/verify", response_model=ActionResponse)
async def verify_transaction(
    transaction_id: str,
    admin: Identity = Depends(_admin),
    store: DocumentStore = Depends(get_document_store),
) -> ActionResponse:
    transaction = await _pending_transaction(store, transaction_id)
    if await store.get_profile(transaction.uid) is None:
        raise ProfileNotFoundError(f"Profile {transaction.uid} not found.")

    transaction = await _claim(store, transaction_id, "verified")
    buyer = ProfileSession(store, Identity(uid=transaction.uid))
    try:
        await buyer.fetch_profile()
        if transaction.type == "plan":
            await buyer.update_profile({
                "plan": transaction.plan,
                "plan_start_date": transaction.plan_start_date or utcnow(),
                "plan_expiry_date": transaction.plan_end_date,
            })
            description = f"Your {transaction.plan} plan is now active."
        else:
            await buyer.add_credits(transaction.credits or 0)
            description = f"{transaction.credits} credits have been added to your account."
    except Exception:
        # Nothing was applied, so the transaction goes back in the queue
        await store.update_transaction(transaction_id, {"status": "pending_verification"})
        raise

    await buyer.add_notification(
        title="Payment Verified",
        description=description,
        icon="CheckCircle",
        link="/dashboard/billing",
    )
    logger.info(
        "Admin %s verified transaction %s for uid=%s",
        admin.uid, transaction_id, transaction.uid,
    )
    return ok(buyer.profile.model_dump(mode="json"), message="Transaction verified.")


@router.post("/transactions/{transaction_id}/reject", response_model=ActionResponse)
async def reject_transaction(
    transaction_id: str,
    admin: Identity = Depends(_admin),
    store: DocumentStore = Depends(get_document_store),
) -> ActionResponse:
    await _pending_transaction(store, transaction_id)
    await _claim(store, transaction_id, "failed")
    logger.info("Admin %s rejected transaction %s", admin.uid, transaction_id)
    return ok(message="Transaction marked as failed.")


async def _pending_transaction(store: DocumentStore, transaction_id: str) -> Transaction:
    transaction = await store.get_transaction(transaction_id)
    if transaction is None:
        raise NotFoundError(f"Transaction {transaction_id} not found.")
    if transaction.status != "pending_verification":
        raise JuriflyError(f"Transaction is already {transaction.status}.", status_code=409)
    return transaction


async def _claim(store: DocumentStore, transaction_id: str, status: str) -> Transaction:
    """Move a pending transaction to `status`; 409 if another admin got there first."""
    claimed = await store.transition_transaction(
        transaction_id, "pending_verification", {"status": status},
    )
    if claimed is None:
        raise JuriflyError("Transaction is no longer pending verification.", status_code=409)
    return claimed


# ---------------------------------------------------------------------------
# POST /admin/access-passes — Create a Pass
# ---------------------------------------------------------------------------


@router.post("/access-passes", response_model=ActionResponse, status_code=201)
async def create_access_pass(
    body: AccessPassCreate,
    admin: Identity = Depends(_admin),
    store: DocumentStore = Depends(get_document_store),
) -> ActionResponse:
    reward = body.reward
    if reward.type == "trial" and not reward.duration_days:
        raise JuriflyError("Trial passes need duration_days.", status_code=422)
    if reward.type == "credits" and not reward.amount:
        raise JuriflyError("Credit passes need an amount.", status_code=422)

    access_pass = await store.create_access_pass(AccessPass(**body.model_dump()))
    logger.info("Admin %s created access pass %s", admin.uid, access_pass.code)
    return ok(access_pass.model_dump(mode="json"), message="Access pass created.")


# ---------------------------------------------------------------------------
# POST /admin/keys — Issue a Key with Arbitrary Scopes
# ---------------------------------------------------------------------------


@router.post("/keys", response_model=ActionResponse, status_code=201)
async def create_api_key(
    body: AdminKeyCreate,
    admin: Identity = Depends(_admin),
    store: DocumentStore = Depends(get_document_store),
) -> ActionResponse:
    raw_key, record = await issue_api_key(
        store, body.uid, body.name,
        scopes=body.scopes, rate_limit_rpm=body.rate_limit_rpm,
    )
    logger.info("Admin %s issued key %s for uid=%s", admin.uid, record.key_prefix, body.uid)
    return ok(
        {**record.model_dump(mode="json", exclude={"key_hash"}), "raw_key": raw_key},
        message="Store this key securely.",
    )


# ---------------------------------------------------------------------------
# GET /admin/audit — Audit Log
# ---------------------------------------------------------------------------


@router.get("/audit", response_model=ActionResponse)
async def list_audit_logs(
    uid: str | None = Query(default=None, description="Only this caller's requests"),
    limit: int = Query(default=100, ge=1, le=1000),
    admin: Identity = Depends(_admin),
    store: DocumentStore = Depends(get_document_store),
) -> ActionResponse:
    logs = await store.list_audit_logs(uid, limit)
    return ok([entry.model_dump(mode="json") for entry in logs])
