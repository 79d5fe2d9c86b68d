# =============================================================================
# Domain Models — Profile Documents
# =============================================================================
#
# The profile is a document: one record per identity with nested arrays for
# companies, invites and team members. These Pydantic models describe that
# document. Both store backends persist `model_dump(mode="json")` output and
# rebuild with `model_validate`, so the shape on disk is exactly the shape
# below.
#
# DESIGN DECISION: Domain models are separate from API schemas
# (requests.py / responses.py) and from ORM tables (db/models.py).
# The profile travels through all three layers, but only this module
# defines what a profile *is*.
# =============================================================================

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

UserRole = Literal["Founder", "CA", "Legal Advisor", "Enterprise"]
UserPlan = Literal["Starter", "Founder", "Professional", "Enterprise"]
TeamRole = Literal["Admin", "Member", "Viewer"]
InviteType = Literal["founder_to_ca", "ca_to_client", "team_invite"]
InviteStatus = Literal["pending", "accepted", "processed", "revoked"]
DocRequestStatus = Literal["Pending", "Received"]
NotificationIcon = Literal[
    "AlertTriangle", "RadioTower", "FileClock", "Default", "CheckCircle",
]

ADVISOR_ROLES: frozenset[str] = frozenset({"CA", "Legal Advisor"})


def new_id() -> str:
    """Generate a document id (hex UUID4)."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (older records, form input) as UTC."""
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class _Document(BaseModel):
    """Base for stored documents: unknown keys from older records are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class Identity(BaseModel):
    """The authenticated caller, as resolved by the auth dependency."""

    uid: str
    email: str | None = None
    display_name: str | None = None


# ---------------------------------------------------------------------------
# Company sub-documents
# ---------------------------------------------------------------------------


class CapTableEntry(_Document):
    id: str = Field(default_factory=new_id)
    holder: str
    type: Literal["Founder", "Investor", "ESOP"]
    shares: int = Field(gt=0)
    grant_date: date
    vesting: str = ""
    investment_amount: float | None = None
    valuation: float | None = None


class ProvidedFile(_Document):
    id: str
    name: str
    url: str


class DocumentRequest(_Document):
    id: str = Field(default_factory=new_id)
    title: str
    due_date: date
    status: DocRequestStatus = "Pending"
    provided_file: ProvidedFile | None = None


class CompanyHealth(_Document):
    score: int = 0
    risk: Literal["Low", "Medium", "High"] = "Low"
    deadlines: list[dict] = Field(default_factory=list)


class Company(_Document):
    id: str = Field(default_factory=new_id)
    name: str
    type: str
    legal_region: str = "India"
    pan: str = ""
    cin: str | None = None
    gstin: str | None = None
    incorporation_date: date | None = None
    sector: str = ""
    location: str = ""
    cap_table: list[CapTableEntry] = Field(default_factory=list)
    doc_requests: list[DocumentRequest] = Field(default_factory=list)
    checklist_status: dict[str, bool] = Field(default_factory=dict)
    health: CompanyHealth | None = None
    founder_uid: str | None = None
    connected_ca_uid: str | None = None


# ---------------------------------------------------------------------------
# Profile sub-documents
# ---------------------------------------------------------------------------


class TeamMember(_Document):
    id: str
    name: str
    email: str
    role: TeamRole = "Member"


class Invite(_Document):
    id: str = Field(default_factory=new_id)
    type: InviteType
    # The invited party's email: the advisor for founder_to_ca, the client
    # for ca_to_client, the teammate for team_invite.
    target_email: str
    founder_id: str
    founder_name: str
    company_id: str
    company_name: str
    role: str | None = None
    status: InviteStatus = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    ca_id: str | None = None
    ca_name: str | None = None
    accepted_at: datetime | None = None


class AccessPassUse(_Document):
    code: str
    used_on: datetime = Field(default_factory=utcnow)
    reward_type: str


class ActivityEntry(_Document):
    id: str = Field(default_factory=new_id)
    user_name: str
    action: str
    timestamp: datetime = Field(default_factory=utcnow)


class UserProfile(_Document):
    uid: str
    email: str = ""
    name: str = "New User"
    role: UserRole = "Founder"
    plan: UserPlan = "Starter"
    plan_start_date: datetime
    plan_expiry_date: datetime
    credits: int = Field(default=0, ge=0)
    legal_region: str = "India"
    phone: str | None = None

    companies: list[Company] = Field(default_factory=list)
    active_company_id: str = ""

    team_members: list[TeamMember] = Field(default_factory=list)
    invites: list[Invite] = Field(default_factory=list)
    activity_log: list[ActivityEntry] = Field(default_factory=list)
    access_passes_used: list[AccessPassUse] = Field(default_factory=list)

    signup_index: int | None = None
    connected_ca_uid: str | None = None
    client_uids: list[str] = Field(default_factory=list)

    def company(self, company_id: str) -> Company | None:
        for company in self.companies:
            if company.id == company_id:
                return company
        return None

    @property
    def is_advisor(self) -> bool:
        return self.role in ADVISOR_ROLES


# ---------------------------------------------------------------------------
# Top-level collections
# ---------------------------------------------------------------------------


class Notification(_Document):
    id: str = Field(default_factory=new_id)
    title: str
    description: str
    read: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    icon: NotificationIcon = "Default"
    link: str | None = None


class AccessPassReward(BaseModel):
    type: Literal["trial", "credits"]
    duration_days: int | None = None
    amount: int | None = None


class AccessPass(_Document):
    code: str
    reward: AccessPassReward
    expires_at: datetime | None = None
    use_limit: int | None = None
    used_by: list[str] = Field(default_factory=list)


class Transaction(_Document):
    id: str = Field(default_factory=new_id)
    uid: str
    email: str
    type: Literal["plan", "credit_pack"]
    name: str
    amount: float
    upi_transaction_id: str
    status: Literal["pending_verification", "verified", "failed"] = (
        "pending_verification"
    )
    plan: UserPlan | None = None
    cycle: Literal["monthly", "yearly"] | None = None
    credits: int | None = None
    plan_start_date: datetime | None = None
    plan_end_date: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Feedback(_Document):
    id: str = Field(default_factory=new_id)
    uid: str
    email: str | None = None
    category: str
    message: str
    sentiment: Literal["positive", "negative"] | None = None
    created_at: datetime = Field(default_factory=utcnow)


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str | dict


class ChatConversation(_Document):
    id: str = Field(default_factory=new_id)
    messages: list[ChatMessage]
    created_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Operational records
# ---------------------------------------------------------------------------


class ApiKey(_Document):
    """A bearer key bound to one profile. Only the SHA-256 hash is stored."""

    id: str = Field(default_factory=new_id)
    uid: str
    name: str
    key_prefix: str
    key_hash: str
    scopes: list[str] | None = None
    rate_limit_rpm: int | None = None
    is_active: bool = True
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)


class AuditLog(_Document):
    id: str = Field(default_factory=new_id)
    uid: str | None = None
    endpoint: str
    method: str
    path: str
    client_ip: str | None = None
    status_code: int
    response_time_ms: int
    created_at: datetime = Field(default_factory=utcnow)


class FlowRun(_Document):
    """One flow invocation: who ran what, what it cost, whether it worked."""

    id: str = Field(default_factory=new_id)
    uid: str
    flow: str
    credits_charged: int
    model: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    estimated_cost_usd: float | None = None
    latency_ms: int = 0
    success: bool = True
    error: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
