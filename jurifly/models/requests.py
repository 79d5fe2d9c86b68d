# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
# FastAPI uses them for request body validation (automatic 422 errors) and
# for the OpenAPI docs at /docs.
#
# Flow invocation bodies are NOT declared here: each flow validates its own
# payload against the input model in jurifly/flows/schemas.py.
# =============================================================================

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from jurifly.models.domain import (
    AccessPassReward,
    ChatMessage,
    ProvidedFile,
    TeamRole,
    UserPlan,
    UserRole,
)

# ---------------------------------------------------------------------------
# Auth & profile
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """
    Request body for POST /auth/signup.

    Creates the caller's profile and returns their first bearer key.

    Example:
        {
            "uid": "u_8f2c",
            "email": "asha@example.com",
            "name": "Asha Rao",
            "role": "Founder",
            "ref_id": "u_1a9d"
        }
    """

    uid: str = Field(..., min_length=1, max_length=128)
    email: str = Field(..., min_length=3, max_length=320)
    name: str | None = Field(default=None, max_length=200)
    role: UserRole = "Founder"
    legal_region: str | None = None

    # The referrer's uid, taken from the ?ref= link they shared
    ref_id: str | None = None

    # Redeemed right after the profile is created
    access_pass: str | None = None


class ApiKeyCreate(BaseModel):
    """Request body for POST /auth/keys."""

    name: str = Field(..., min_length=1, max_length=100)
    expires_at: datetime | None = None


class ProfileUpdate(BaseModel):
    """
    Request body for PATCH /profile.

    Only the fields sent are merged (last writer wins). Credits and plan are
    not editable here: credits move through /profile/credits and access
    passes, plans through verified transactions.
    """

    name: str | None = Field(default=None, max_length=200)
    phone: str | None = None
    legal_region: str | None = None
    active_company_id: str | None = None

    model_config = ConfigDict(extra="forbid")


class DeductRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Credits to spend")


class AccessPassRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)


class FeedbackRequest(BaseModel):
    category: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=5000)
    sentiment: Literal["positive", "negative"] | None = None


class ChatHistoryRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., description='e.g. "Private Limited Company"')
    legal_region: str = "India"
    pan: str = ""
    cin: str | None = None
    gstin: str | None = None
    incorporation_date: date | None = None
    sector: str = ""
    location: str = ""
    founder_uid: str | None = None


class CompanyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: str | None = None
    legal_region: str | None = None
    pan: str | None = None
    cin: str | None = None
    gstin: str | None = None
    incorporation_date: date | None = None
    sector: str | None = None
    location: str | None = None

    model_config = ConfigDict(extra="forbid")


class CapTableEntryCreate(BaseModel):
    holder: str = Field(..., min_length=1)
    type: Literal["Founder", "Investor", "ESOP"]
    shares: int = Field(..., gt=0)
    grant_date: date
    vesting: str = ""
    investment_amount: float | None = Field(default=None, ge=0)
    valuation: float | None = Field(default=None, ge=0)


class DocRequestCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    due_date: date


class DocRequestReceived(BaseModel):
    provided_file: ProvidedFile | None = None


class ChecklistUpdate(BaseModel):
    """Item id → done. Keys are sanitised before they are stored."""

    updates: dict[str, bool] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Invites
# ---------------------------------------------------------------------------


class CaInviteRequest(BaseModel):
    ca_email: str = Field(..., min_length=3)
    company_id: str
    company_name: str


class ClientInviteRequest(BaseModel):
    client_email: str = Field(..., min_length=3)


class TeamInviteRequest(BaseModel):
    email: str = Field(..., min_length=3)
    role: TeamRole = "Member"


# ---------------------------------------------------------------------------
# Billing & admin
# ---------------------------------------------------------------------------


class TransactionCreate(BaseModel):
    """
    Request body for POST /billing/transactions.

    `plan` and `cycle` are required for plan purchases; `credits` for
    credit packs. The route checks the combination.
    """

    type: Literal["plan", "credit_pack"]
    name: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    upi_transaction_id: str = Field(..., min_length=4, max_length=64)
    plan: UserPlan | None = None
    cycle: Literal["monthly", "yearly"] | None = None
    credits: int | None = Field(default=None, gt=0)


class AccessPassCreate(BaseModel):
    code: str = Field(..., min_length=3, max_length=64)
    reward: AccessPassReward
    expires_at: datetime | None = None
    use_limit: int | None = Field(default=None, gt=0)


class FlowRequest(BaseModel):
    """Envelope for POST /flows/{name}: the payload is flow-specific."""

    input: dict[str, Any] = Field(
        default_factory=dict,
        description="Fields of the flow's input model (see GET /flows)",
    )
