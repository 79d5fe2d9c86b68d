# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Every endpoint except /health answers with the same envelope:
#
#   {"data": ..., "error": null, "message": "..."}   success
#   {"data": null, "error": "...", "message": null}  failure
#
# DESIGN DECISION: One envelope for every action. Dashboard clients check
# `error` once instead of branching on per-endpoint shapes, and the
# exception handler in main.py can render any JuriflyError the same way.
# =============================================================================

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

DataT = TypeVar("DataT")


class ActionResponse(BaseModel, Generic[DataT]):
    """Envelope returned by every action endpoint."""

    data: DataT | None = None
    error: str | None = None
    message: str | None = None


def ok(data: Any = None, message: str | None = None) -> ActionResponse:
    return ActionResponse(data=data, message=message)


def failed(error: str) -> ActionResponse:
    return ActionResponse(error=error)


class HealthResponse(BaseModel):
    """Liveness payload for GET /health."""

    status: str = "ok"
    version: str
    service: str
    store_backend: str


class ApiKeyCreated(BaseModel):
    """
    A freshly issued key. `raw_key` appears in this response only; after
    that the key is identified by its prefix.
    """

    id: str
    name: str
    key_prefix: str
    raw_key: str
    uid: str
    scopes: list[str] | None = None
    created_at: datetime
    expires_at: datetime | None = None


class SignupResult(BaseModel):
    profile: dict[str, Any]
    api_key: ApiKeyCreated
    access_pass_message: str | None = None


class CreditBalance(BaseModel):
    credits: int


class CapabilitiesResult(BaseModel):
    role: str
    plan: str
    plan_active: bool
    features: dict[str, str] = Field(
        description='feature → "enabled" | "locked" | "unavailable"',
    )


class FlowSummary(BaseModel):
    name: str
    description: str
    credit_cost: int
    feature: str
    input_schema: dict[str, Any]


class FlowRunResult(BaseModel):
    flow: str
    output: dict[str, Any]
    model: str
    input_tokens: int
    output_tokens: int
    credits_charged: int
    credits_remaining: int
