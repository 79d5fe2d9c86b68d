# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# The product was built on a document database. These tables keep that
# shape: each row carries its document as JSONB, plus the handful of columns
# that queries filter on or that must be updated atomically.
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────────┐     ┌──────────────────────────────┐
# │  profiles            │     │  notifications               │
# ├──────────────────────┤     ├──────────────────────────────┤
# │ uid (PK)             │──1:N│ id (PK)                      │
# │ email                │     │ uid (indexed)                │
# │ credits (int ≥ 0)    │     │ title / read / created_at    │
# │ document (jsonb)     │     │ document (jsonb)             │
# │ created_at/updated_at│     └──────────────────────────────┘
# └──────────────────────┘
#   invites, access_passes, transactions, feedback, chat_history,
#   api_keys, audit_logs, flow_runs, counters: one table each.
#
# DESIGN DECISIONS:
#
# 1. `credits` is a real column, not part of the JSON document.
#    The atomic conditional decrement is a single UPDATE ... WHERE
#    credits >= :amount RETURNING credits, with a CHECK constraint
#    backing the non-negative invariant.
#
# 2. JSONB for everything else. Companies, cap tables and document requests
#    are nested arrays inside the profile document, so adding a field to
#    the domain model needs no schema migration.
# =============================================================================

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere
JsonDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class ProfileRow(Base):
    """One profile document per authenticated identity."""

    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="profiles_credits_non_negative"),
    )

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, default="")

    # Authoritative balance. The copy inside `document` is ignored on read.
    credits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    document: Mapped[dict] = mapped_column(JsonDocument, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ProfileRow(uid='{self.uid}', credits={self.credits})>"


class NotificationRow(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    document: Mapped[dict] = mapped_column(JsonDocument, nullable=False)


class InviteRow(Base):
    __tablename__ = "invites"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_email: Mapped[str] = mapped_column(String(320), nullable=False)
    founder_id: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    document: Mapped[dict] = mapped_column(JsonDocument, nullable=False)


class AccessPassRow(Base):
    __tablename__ = "access_passes"

    code: Mapped[str] = mapped_column(String(128), primary_key=True)
    document: Mapped[dict] = mapped_column(JsonDocument, nullable=False)


class TransactionRow(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    document: Mapped[dict] = mapped_column(JsonDocument, nullable=False)


class FeedbackRow(Base):
    __tablename__ = "feedback"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    sentiment: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )


class ChatHistoryRow(Base):
    __tablename__ = "chat_history"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    document: Mapped[dict] = mapped_column(JsonDocument, nullable=False)


class CounterRow(Base):
    __tablename__ = "counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ApiKeyRow(Base):
    """
    Bearer keys bound to a profile.

    SHA-256 hashing (not bcrypt): keys are 32-byte random tokens, so a fast
    deterministic hash is safe and allows direct lookup by hash.
    """

    __tablename__ = "api_keys"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    key_prefix: Mapped[str] = mapped_column(String(20), nullable=False)
    key_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True,
    )
    scopes: Mapped[list | None] = mapped_column(JsonDocument, nullable=True)
    rate_limit_rpm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )


class AuditLogRow(Base):
    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    uid: Mapped[str | None] = mapped_column(String(128), nullable=True)
    endpoint: Mapped[str] = mapped_column(String(100), nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    path: Mapped[str] = mapped_column(String(500), nullable=False)
    client_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    response_time_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )


class FlowRunRow(Base):
    """Per-invocation metrics for the prompt-flow layer."""

    __tablename__ = "flow_runs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    flow: Mapped[str] = mapped_column(String(100), nullable=False)
    credits_charged: Mapped[int] = mapped_column(Integer, nullable=False)
    model: Mapped[str | None] = mapped_column(String(200), nullable=True)
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_cost_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    latency_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )


# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------

notification_uid_created_idx = Index(
    "ix_notifications_uid_created_at",
    NotificationRow.uid,
    NotificationRow.created_at.desc(),
)

invite_target_status_idx = Index(
    "ix_invites_target_email_status",
    InviteRow.target_email,
    InviteRow.status,
)

invite_founder_status_idx = Index(
    "ix_invites_founder_id_status",
    InviteRow.founder_id,
    InviteRow.status,
)

transaction_uid_idx = Index("ix_transactions_uid", TransactionRow.uid)

chat_history_uid_created_idx = Index(
    "ix_chat_history_uid_created_at",
    ChatHistoryRow.uid,
    ChatHistoryRow.created_at.desc(),
)

audit_log_uid_idx = Index("ix_audit_logs_uid", AuditLogRow.uid)

flow_run_flow_idx = Index("ix_flow_runs_flow", FlowRunRow.flow)
