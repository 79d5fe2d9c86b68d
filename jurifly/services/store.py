# =============================================================================
# Document Store Abstraction — Pluggable Persistence Protocol
# =============================================================================
#
# Every piece of persisted state (profiles, notifications, invites, access
# passes, transactions, API keys, audit logs) goes through one interface.
#
# DESIGN DECISION: Protocol (structural typing) over ABC, matching the
# LLMProvider pattern in llm.py.
#
# DESIGN DECISION: Atomic credit primitives live IN the store.
# The session layer never computes "balance - amount" and writes it back.
# It asks the store to decrement only if the stored balance still covers
# the amount. Two tabs racing on the same cached balance therefore cannot
# both succeed past zero.
#
# DESIGN DECISION: Stores exchange Pydantic domain models, but persist plain
# JSON. Every read returns a fresh object, the same as a remote document
# database would, so callers cannot mutate stored state by accident.
#
# ARCHITECTURE:
#   DocumentStore (Protocol)
#   ├── MemoryDocumentStore — dicts + asyncio.Lock (dev, tests)
#   ├── SqlDocumentStore    — PostgreSQL via async SQLAlchemy (sql_store.py)
#   └── get_store()         — Lazy singleton factory, reads from config
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from typing import Any, Protocol, TypeVar

from pydantic_core import to_jsonable_python

from jurifly.config import settings
from jurifly.errors import ProfileNotFoundError
from jurifly.models.domain import (
    AccessPass,
    ApiKey,
    AuditLog,
    ChatConversation,
    Feedback,
    FlowRun,
    Invite,
    Notification,
    Transaction,
    UserProfile,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProfileMutation = Callable[[UserProfile], T]
AccessPassRedemption = Callable[[AccessPass | None, UserProfile], str]


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class DocumentStore(Protocol):
    """
    Protocol defining the persistence interface.

    Profile writes come in three strengths:
    - update_profile(): last-writer-wins merge of top-level fields
    - mutate_profile(): read-modify-write inside one store transaction
    - try_deduct_credits() / add_credits(): atomic arithmetic on the balance
    """

    # --- Profiles ---------------------------------------------------------

    async def get_profile(self, uid: str) -> UserProfile | None: ...

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Insert `profile`. If the uid already exists, the stored one wins."""
        ...

    async def update_profile(self, uid: str, fields: dict[str, Any]) -> None:
        """Merge top-level fields. Raises ProfileNotFoundError."""
        ...

    async def mutate_profile(self, uid: str, mutation: ProfileMutation) -> T:
        """
        Run `mutation` on the stored profile inside a transaction and persist
        the result. If the mutation raises, nothing is written.
        """
        ...

    async def try_deduct_credits(self, uid: str, amount: int) -> int | None:
        """
        Atomically subtract `amount` if the balance covers it.

        Returns the new balance, or None if the balance was insufficient
        (in which case nothing was written).
        """
        ...

    async def add_credits(self, uid: str, amount: int) -> int:
        """Atomically add `amount`. Returns the new balance."""
        ...

    async def apply_referral(
        self,
        referrer_uid: str,
        referred_uid: str,
        referrer_bonus: int,
        referred_bonus: int,
    ) -> int | None:
        """
        Credit both sides of a referral in one transaction.

        Returns the referred profile's new balance, or None (nothing
        written) when the referrer does not exist.
        """
        ...

    async def next_signup_index(self) -> int: ...

    # --- Access passes ------------------------------------------------------

    async def create_access_pass(self, access_pass: AccessPass) -> AccessPass: ...

    async def redeem_access_pass(
        self, uid: str, code: str, redemption: AccessPassRedemption,
    ) -> str:
        """
        Load the pass and the profile in one transaction, hand both to
        `redemption` (which validates and mutates them), then persist both.
        """
        ...

    # --- Notifications --------------------------------------------------------

    async def add_notification(
        self, uid: str, notification: Notification,
    ) -> Notification | None:
        """Insert unless an unread notification with the same title exists."""
        ...

    async def list_notifications(
        self, uid: str, limit: int,
    ) -> list[Notification]: ...

    async def mark_notification_read(self, uid: str, notification_id: str) -> bool: ...

    async def mark_all_notifications_read(self, uid: str) -> int: ...

    # --- Invites ----------------------------------------------------------------

    async def add_invite(self, invite: Invite) -> Invite: ...

    async def get_invite(self, invite_id: str) -> Invite | None: ...

    async def update_invite(self, invite_id: str, fields: dict[str, Any]) -> None: ...

    async def transition_invite(
        self, invite_id: str, from_status: str, fields: dict[str, Any],
    ) -> Invite | None:
        """
        Apply `fields` only while the invite is still `from_status`.

        Returns the updated invite, or None if it is missing or another
        caller moved it on first.
        """
        ...

    async def find_invites(
        self,
        *,
        target_email: str | None = None,
        founder_id: str | None = None,
        status: str | None = None,
        type: str | None = None,
    ) -> list[Invite]: ...

    # --- Billing ------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> Transaction: ...

    async def get_transaction(self, transaction_id: str) -> Transaction | None: ...

    async def update_transaction(
        self, transaction_id: str, fields: dict[str, Any],
    ) -> None: ...

    async def transition_transaction(
        self, transaction_id: str, from_status: str, fields: dict[str, Any],
    ) -> Transaction | None:
        """Same contract as transition_invite."""
        ...

    async def list_transactions(self, uid: str) -> list[Transaction]: ...

    # --- Feedback & chat history ------------------------------------------------------

    async def add_feedback(self, feedback: Feedback) -> None: ...

    async def add_chat(self, uid: str, conversation: ChatConversation) -> None: ...

    async def list_chats(self, uid: str, limit: int) -> list[ChatConversation]: ...

    # --- API keys & operational records ---------------------------------------------

    async def add_api_key(self, api_key: ApiKey) -> ApiKey: ...

    async def get_api_key_by_hash(self, key_hash: str) -> ApiKey | None: ...

    async def touch_api_key(self, key_id: str, used_at: datetime) -> None: ...

    async def add_audit_log(self, entry: AuditLog) -> None: ...

    async def list_audit_logs(
        self, uid: str | None, limit: int,
    ) -> list[AuditLog]: ...

    async def add_flow_run(self, run: FlowRun) -> None: ...


def jsonable(fields: dict[str, Any]) -> dict[str, Any]:
    """Convert domain objects inside a field dict to plain JSON values."""
    return to_jsonable_python(fields)


# ---------------------------------------------------------------------------
# Implementation 1: In-Memory
# ---------------------------------------------------------------------------


class MemoryDocumentStore:
    """
    In-process document store.

    Documents are held as JSON dicts. One asyncio.Lock serialises every
    write, which gives the same guarantees as the SQL store's row locks and
    conditional updates within a single process.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._profiles: dict[str, dict] = {}
        self._notifications: dict[str, list[dict]] = defaultdict(list)
        self._invites: dict[str, dict] = {}
        self._access_passes: dict[str, dict] = {}
        self._transactions: dict[str, dict] = {}
        self._feedback: list[dict] = []
        self._chats: dict[str, list[dict]] = defaultdict(list)
        self._api_keys: dict[str, dict] = {}
        self._audit_logs: list[dict] = []
        self._flow_runs: list[dict] = []
        self._counters: dict[str, int] = {}

    # --- Profiles ---------------------------------------------------------

    async def get_profile(self, uid: str) -> UserProfile | None:
        data = self._profiles.get(uid)
        return UserProfile.model_validate(data) if data is not None else None

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        async with self._lock:
            existing = self._profiles.get(profile.uid)
            if existing is not None:
                return UserProfile.model_validate(existing)
            self._profiles[profile.uid] = profile.model_dump(mode="json")
        return profile

    async def update_profile(self, uid: str, fields: dict[str, Any]) -> None:
        async with self._lock:
            current = self._require_profile(uid)
            merged = {**current, **jsonable(fields)}
            # Validate before committing so a bad merge never lands
            UserProfile.model_validate(merged)
            self._profiles[uid] = merged

    async def mutate_profile(self, uid: str, mutation: ProfileMutation) -> T:
        async with self._lock:
            profile = UserProfile.model_validate(self._require_profile(uid))
            result = mutation(profile)
            self._profiles[uid] = profile.model_dump(mode="json")
            return result

    async def try_deduct_credits(self, uid: str, amount: int) -> int | None:
        async with self._lock:
            current = self._require_profile(uid)
            balance = current.get("credits", 0)
            if balance < amount:
                return None
            current["credits"] = balance - amount
            return current["credits"]

    async def add_credits(self, uid: str, amount: int) -> int:
        async with self._lock:
            current = self._require_profile(uid)
            current["credits"] = current.get("credits", 0) + amount
            return current["credits"]

    async def apply_referral(
        self,
        referrer_uid: str,
        referred_uid: str,
        referrer_bonus: int,
        referred_bonus: int,
    ) -> int | None:
        async with self._lock:
            referrer = self._profiles.get(referrer_uid)
            if referrer is None:
                return None
            referred = self._require_profile(referred_uid)
            referrer["credits"] = referrer.get("credits", 0) + referrer_bonus
            referred["credits"] = referred.get("credits", 0) + referred_bonus
            return referred["credits"]

    async def next_signup_index(self) -> int:
        async with self._lock:
            count = self._counters.get("user_counter", 0) + 1
            self._counters["user_counter"] = count
            return count

    # --- Access passes ------------------------------------------------------

    async def create_access_pass(self, access_pass: AccessPass) -> AccessPass:
        async with self._lock:
            self._access_passes[access_pass.code] = access_pass.model_dump(
                mode="json",
            )
        return access_pass

    async def redeem_access_pass(
        self, uid: str, code: str, redemption: AccessPassRedemption,
    ) -> str:
        async with self._lock:
            raw_pass = self._access_passes.get(code)
            access_pass = (
                AccessPass.model_validate(raw_pass) if raw_pass else None
            )
            profile = UserProfile.model_validate(self._require_profile(uid))
            message = redemption(access_pass, profile)
            if access_pass is not None:
                self._access_passes[code] = access_pass.model_dump(mode="json")
            self._profiles[uid] = profile.model_dump(mode="json")
            return message

    # --- Notifications --------------------------------------------------------

    async def add_notification(
        self, uid: str, notification: Notification,
    ) -> Notification | None:
        async with self._lock:
            existing = self._notifications[uid]
            if any(
                n["title"] == notification.title and not n["read"]
                for n in existing
            ):
                return None
            existing.append(notification.model_dump(mode="json"))
            return notification

    async def list_notifications(
        self, uid: str, limit: int,
    ) -> list[Notification]:
        items = [
            Notification.model_validate(n) for n in self._notifications[uid]
        ]
        items.sort(key=lambda n: n.created_at, reverse=True)
        return items[:limit]

    async def mark_notification_read(self, uid: str, notification_id: str) -> bool:
        async with self._lock:
            for n in self._notifications[uid]:
                if n["id"] == notification_id:
                    n["read"] = True
                    return True
            return False

    async def mark_all_notifications_read(self, uid: str) -> int:
        async with self._lock:
            changed = 0
            for n in self._notifications[uid]:
                if not n["read"]:
                    n["read"] = True
                    changed += 1
            return changed

    # --- Invites ----------------------------------------------------------------

    async def add_invite(self, invite: Invite) -> Invite:
        async with self._lock:
            self._invites[invite.id] = invite.model_dump(mode="json")
        return invite

    async def get_invite(self, invite_id: str) -> Invite | None:
        data = self._invites.get(invite_id)
        return Invite.model_validate(data) if data is not None else None

    async def update_invite(self, invite_id: str, fields: dict[str, Any]) -> None:
        async with self._lock:
            if invite_id in self._invites:
                self._invites[invite_id].update(jsonable(fields))

    async def transition_invite(
        self, invite_id: str, from_status: str, fields: dict[str, Any],
    ) -> Invite | None:
        async with self._lock:
            data = self._invites.get(invite_id)
            if data is None or data["status"] != from_status:
                return None
            data.update(jsonable(fields))
            return Invite.model_validate(data)

    async def find_invites(
        self,
        *,
        target_email: str | None = None,
        founder_id: str | None = None,
        status: str | None = None,
        type: str | None = None,
    ) -> list[Invite]:
        filters = {
            "target_email": target_email,
            "founder_id": founder_id,
            "status": status,
            "type": type,
        }
        return [
            Invite.model_validate(data)
            for data in self._invites.values()
            if all(
                value is None or data.get(key) == value
                for key, value in filters.items()
            )
        ]

    # --- Billing ------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        async with self._lock:
            self._transactions[transaction.id] = transaction.model_dump(
                mode="json",
            )
        return transaction

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        data = self._transactions.get(transaction_id)
        return Transaction.model_validate(data) if data is not None else None

    async def update_transaction(
        self, transaction_id: str, fields: dict[str, Any],
    ) -> None:
        async with self._lock:
            if transaction_id in self._transactions:
                self._transactions[transaction_id].update(jsonable(fields))

    async def transition_transaction(
        self, transaction_id: str, from_status: str, fields: dict[str, Any],
    ) -> Transaction | None:
        async with self._lock:
            data = self._transactions.get(transaction_id)
            if data is None or data["status"] != from_status:
                return None
            data.update(jsonable(fields))
            return Transaction.model_validate(data)

    async def list_transactions(self, uid: str) -> list[Transaction]:
        items = [
            Transaction.model_validate(t)
            for t in self._transactions.values()
            if t["uid"] == uid
        ]
        items.sort(key=lambda t: t.created_at, reverse=True)
        return items

    # --- Feedback & chat history ------------------------------------------------------

    async def add_feedback(self, feedback: Feedback) -> None:
        async with self._lock:
            self._feedback.append(feedback.model_dump(mode="json"))

    async def add_chat(self, uid: str, conversation: ChatConversation) -> None:
        async with self._lock:
            self._chats[uid].append(conversation.model_dump(mode="json"))

    async def list_chats(self, uid: str, limit: int) -> list[ChatConversation]:
        items = [ChatConversation.model_validate(c) for c in self._chats[uid]]
        items.sort(key=lambda c: c.created_at, reverse=True)
        return items[:limit]

    # --- API keys & operational records ---------------------------------------------

    async def add_api_key(self, api_key: ApiKey) -> ApiKey:
        async with self._lock:
            self._api_keys[api_key.key_hash] = api_key.model_dump(mode="json")
        return api_key

    async def get_api_key_by_hash(self, key_hash: str) -> ApiKey | None:
        data = self._api_keys.get(key_hash)
        return ApiKey.model_validate(data) if data is not None else None

    async def touch_api_key(self, key_id: str, used_at: datetime) -> None:
        async with self._lock:
            for data in self._api_keys.values():
                if data["id"] == key_id:
                    data["last_used_at"] = used_at.isoformat()

    async def add_audit_log(self, entry: AuditLog) -> None:
        self._audit_logs.append(entry.model_dump(mode="json"))

    async def list_audit_logs(
        self, uid: str | None, limit: int,
    ) -> list[AuditLog]:
        items = [
            AuditLog.model_validate(e)
            for e in self._audit_logs
            if uid is None or e.get("uid") == uid
        ]
        items.sort(key=lambda e: e.created_at, reverse=True)
        return items[:limit]

    async def add_flow_run(self, run: FlowRun) -> None:
        self._flow_runs.append(run.model_dump(mode="json"))

    # --- Internal ---------------------------------------------------------------

    def _require_profile(self, uid: str) -> dict:
        data = self._profiles.get(uid)
        if data is None:
            raise ProfileNotFoundError(f"Profile {uid} not found.")
        return data


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton: the memory store must outlive a single request, and the
# SQL store shares one engine pool.
_store: DocumentStore | None = None


def get_store() -> DocumentStore:
    """
    Return the configured document store.

    Reads `store_backend` from settings:
    - "memory" → MemoryDocumentStore
    - "sql"    → SqlDocumentStore (PostgreSQL)
    """
    global _store
    if _store is None:
        if settings.store_backend == "memory":
            logger.info("Using in-memory document store")
            _store = MemoryDocumentStore()
        else:
            from jurifly.services.sql_store import SqlDocumentStore

            logger.info("Using SQL document store")
            _store = SqlDocumentStore()
    return _store
