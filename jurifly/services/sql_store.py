# =============================================================================
# SQL Document Store — PostgreSQL Implementation of DocumentStore
# =============================================================================
#
# Each store call opens its own transactional session (see
# db/engine.session_scope). Multi-step operations that must be atomic run
# inside a single scope and take row locks with SELECT ... FOR UPDATE.
#
# CREDIT ARITHMETIC:
#   deduct:  UPDATE profiles SET credits = credits - :n
#            WHERE uid = :uid AND credits >= :n RETURNING credits
#   add:     UPDATE profiles SET credits = credits + :n
#            WHERE uid = :uid RETURNING credits
# Both are single statements, so concurrent callers serialise on the row
# and a deduction can never take the balance below zero.
#
# Columns that are filtered on (read, status, ...) are authoritative; the
# JSON document is patched with the column values on every read.
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from jurifly.db.engine import session_scope
from jurifly.db.models import (
    AccessPassRow,
    ApiKeyRow,
    AuditLogRow,
    ChatHistoryRow,
    CounterRow,
    FeedbackRow,
    FlowRunRow,
    InviteRow,
    NotificationRow,
    ProfileRow,
    TransactionRow,
)
from jurifly.errors import ProfileNotFoundError, StoreError
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
from jurifly.services.store import (
    AccessPassRedemption,
    ProfileMutation,
    T,
    jsonable,
)

logger = logging.getLogger(__name__)


def _profile_from_row(row: ProfileRow) -> UserProfile:
    return UserProfile.model_validate({**row.document, "credits": row.credits})


def _profile_document(profile: UserProfile) -> dict:
    document = profile.model_dump(mode="json")
    document.pop("credits", None)
    return document


class SqlDocumentStore:
    """
    PostgreSQL-backed document store.

    Database errors are wrapped in StoreError so the API layer can report
    them uniformly. ProfileNotFoundError and errors raised by caller-supplied
    mutations pass through untouched.
    """

    # --- Profiles ---------------------------------------------------------

    async def get_profile(self, uid: str) -> UserProfile | None:
        try:
            async with session_scope() as session:
                row = await session.get(ProfileRow, uid)
                return _profile_from_row(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read profile: {e}") from e

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        try:
            async with session_scope() as session:
                session.add(ProfileRow(
                    uid=profile.uid,
                    email=profile.email,
                    credits=profile.credits,
                    document=_profile_document(profile),
                ))
            return profile
        except IntegrityError:
            # Another request created it first; the stored profile wins
            logger.info("Profile %s already exists, returning stored copy", profile.uid)
            existing = await self.get_profile(profile.uid)
            if existing is None:
                raise StoreError("Profile creation conflicted and vanished.")
            return existing
        except SQLAlchemyError as e:
            raise StoreError(f"Could not create profile: {e}") from e

    async def update_profile(self, uid: str, fields: dict[str, Any]) -> None:
        try:
            async with session_scope() as session:
                row = await self._locked_profile(session, uid)
                merged = {**row.document, "credits": row.credits, **jsonable(fields)}
                profile = UserProfile.model_validate(merged)
                row.document = _profile_document(profile)
                row.email = profile.email
                if "credits" in fields:
                    row.credits = profile.credits
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update profile: {e}") from e

    async def mutate_profile(self, uid: str, mutation: ProfileMutation) -> T:
        try:
            async with session_scope() as session:
                row = await self._locked_profile(session, uid)
                profile = _profile_from_row(row)
                result = mutation(profile)
                row.document = _profile_document(profile)
                row.credits = profile.credits
                return result
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update profile: {e}") from e

    async def try_deduct_credits(self, uid: str, amount: int) -> int | None:
        stmt = (
            update(ProfileRow)
            .where(ProfileRow.uid == uid, ProfileRow.credits >= amount)
            .values(credits=ProfileRow.credits - amount)
            .returning(ProfileRow.credits)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session_scope() as session:
                new_balance = (await session.execute(stmt)).scalar_one_or_none()
                if new_balance is None:
                    exists = await session.get(ProfileRow, uid)
                    if exists is None:
                        raise ProfileNotFoundError(f"Profile {uid} not found.")
                return new_balance
        except SQLAlchemyError as e:
            raise StoreError(f"Could not deduct credits: {e}") from e

    async def add_credits(self, uid: str, amount: int) -> int:
        new_balance = await self._increment_credits(uid, amount)
        if new_balance is None:
            raise ProfileNotFoundError(f"Profile {uid} not found.")
        return new_balance

    async def apply_referral(
        self,
        referrer_uid: str,
        referred_uid: str,
        referrer_bonus: int,
        referred_bonus: int,
    ) -> int | None:
        try:
            async with session_scope() as session:
                referrer_balance = (await session.execute(
                    self._increment_stmt(referrer_uid, referrer_bonus)
                )).scalar_one_or_none()
                if referrer_balance is None:
                    return None
                referred_balance = (await session.execute(
                    self._increment_stmt(referred_uid, referred_bonus)
                )).scalar_one_or_none()
                if referred_balance is None:
                    # Raising rolls back the referrer's bonus too
                    raise ProfileNotFoundError(f"Profile {referred_uid} not found.")
                return referred_balance
        except SQLAlchemyError as e:
            raise StoreError(f"Could not apply referral: {e}") from e

    async def next_signup_index(self) -> int:
        stmt = (
            pg_insert(CounterRow)
            .values(name="user_counter", count=1)
            .on_conflict_do_update(
                index_elements=[CounterRow.name],
                set_={"count": CounterRow.count + 1},
            )
            .returning(CounterRow.count)
        )
        try:
            async with session_scope() as session:
                return (await session.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not allocate signup index: {e}") from e

    # --- Access passes ------------------------------------------------------

    async def create_access_pass(self, access_pass: AccessPass) -> AccessPass:
        try:
            async with session_scope() as session:
                session.add(AccessPassRow(
                    code=access_pass.code,
                    document=access_pass.model_dump(mode="json"),
                ))
            return access_pass
        except SQLAlchemyError as e:
            raise StoreError(f"Could not create access pass: {e}") from e

    async def redeem_access_pass(
        self, uid: str, code: str, redemption: AccessPassRedemption,
    ) -> str:
        try:
            async with session_scope() as session:
                pass_row = (await session.execute(
                    select(AccessPassRow)
                    .where(AccessPassRow.code == code)
                    .with_for_update()
                )).scalar_one_or_none()
                profile_row = await self._locked_profile(session, uid)

                access_pass = (
                    AccessPass.model_validate(pass_row.document)
                    if pass_row is not None else None
                )
                profile = _profile_from_row(profile_row)
                message = redemption(access_pass, profile)

                if pass_row is not None and access_pass is not None:
                    pass_row.document = access_pass.model_dump(mode="json")
                profile_row.document = _profile_document(profile)
                profile_row.credits = profile.credits
                return message
        except SQLAlchemyError as e:
            raise StoreError(f"Could not redeem access pass: {e}") from e

    # --- Notifications --------------------------------------------------------

    async def add_notification(
        self, uid: str, notification: Notification,
    ) -> Notification | None:
        try:
            async with session_scope() as session:
                duplicate = (await session.execute(
                    select(NotificationRow.id).where(
                        NotificationRow.uid == uid,
                        NotificationRow.title == notification.title,
                        NotificationRow.read.is_(False),
                    ).limit(1)
                )).scalar_one_or_none()
                if duplicate is not None:
                    return None
                session.add(NotificationRow(
                    id=notification.id,
                    uid=uid,
                    title=notification.title,
                    read=notification.read,
                    created_at=notification.created_at,
                    document=notification.model_dump(mode="json"),
                ))
                return notification
        except SQLAlchemyError as e:
            raise StoreError(f"Could not add notification: {e}") from e

    async def list_notifications(
        self, uid: str, limit: int,
    ) -> list[Notification]:
        stmt = (
            select(NotificationRow)
            .where(NotificationRow.uid == uid)
            .order_by(NotificationRow.created_at.desc())
            .limit(limit)
        )
        try:
            async with session_scope() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [
                    Notification.model_validate({**row.document, "read": row.read})
                    for row in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not list notifications: {e}") from e

    async def mark_notification_read(self, uid: str, notification_id: str) -> bool:
        stmt = (
            update(NotificationRow)
            .where(
                NotificationRow.uid == uid,
                NotificationRow.id == notification_id,
            )
            .values(read=True)
            .returning(NotificationRow.id)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session_scope() as session:
                return (await session.execute(stmt)).scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update notification: {e}") from e

    async def mark_all_notifications_read(self, uid: str) -> int:
        stmt = (
            update(NotificationRow)
            .where(NotificationRow.uid == uid, NotificationRow.read.is_(False))
            .values(read=True)
            .returning(NotificationRow.id)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session_scope() as session:
                return len((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update notifications: {e}") from e

    # --- Invites ----------------------------------------------------------------

    async def add_invite(self, invite: Invite) -> Invite:
        try:
            async with session_scope() as session:
                session.add(InviteRow(
                    id=invite.id,
                    type=invite.type,
                    target_email=invite.target_email,
                    founder_id=invite.founder_id,
                    status=invite.status,
                    document=invite.model_dump(mode="json"),
                ))
            return invite
        except SQLAlchemyError as e:
            raise StoreError(f"Could not create invite: {e}") from e

    async def get_invite(self, invite_id: str) -> Invite | None:
        try:
            async with session_scope() as session:
                row = await session.get(InviteRow, invite_id)
                return self._invite_from_row(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read invite: {e}") from e

    async def update_invite(self, invite_id: str, fields: dict[str, Any]) -> None:
        try:
            async with session_scope() as session:
                row = await session.get(InviteRow, invite_id, with_for_update=True)
                if row is None:
                    return
                row.document = {**row.document, **jsonable(fields)}
                if "status" in fields:
                    row.status = fields["status"]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update invite: {e}") from e

    async def transition_invite(
        self, invite_id: str, from_status: str, fields: dict[str, Any],
    ) -> Invite | None:
        try:
            async with session_scope() as session:
                row = await self._transition(
                    session, InviteRow, invite_id, from_status, fields,
                )
                return self._invite_from_row(row) if row is not None else None
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update invite: {e}") from e

    async def find_invites(
        self,
        *,
        target_email: str | None = None,
        founder_id: str | None = None,
        status: str | None = None,
        type: str | None = None,
    ) -> list[Invite]:
        stmt = select(InviteRow)
        if target_email is not None:
            stmt = stmt.where(InviteRow.target_email == target_email)
        if founder_id is not None:
            stmt = stmt.where(InviteRow.founder_id == founder_id)
        if status is not None:
            stmt = stmt.where(InviteRow.status == status)
        if type is not None:
            stmt = stmt.where(InviteRow.type == type)
        try:
            async with session_scope() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [self._invite_from_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not query invites: {e}") from e

    # --- Billing ------------------------------------------------------------------

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        try:
            async with session_scope() as session:
                session.add(TransactionRow(
                    id=transaction.id,
                    uid=transaction.uid,
                    status=transaction.status,
                    created_at=transaction.created_at,
                    document=transaction.model_dump(mode="json"),
                ))
            return transaction
        except SQLAlchemyError as e:
            raise StoreError(f"Could not save transaction: {e}") from e

    async def get_transaction(self, transaction_id: str) -> Transaction | None:
        try:
            async with session_scope() as session:
                row = await session.get(TransactionRow, transaction_id)
                if row is None:
                    return None
                return Transaction.model_validate(
                    {**row.document, "status": row.status},
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read transaction: {e}") from e

    async def update_transaction(
        self, transaction_id: str, fields: dict[str, Any],
    ) -> None:
        try:
            async with session_scope() as session:
                row = await session.get(
                    TransactionRow, transaction_id, with_for_update=True,
                )
                if row is None:
                    return
                row.document = {**row.document, **jsonable(fields)}
                if "status" in fields:
                    row.status = fields["status"]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update transaction: {e}") from e

    async def transition_transaction(
        self, transaction_id: str, from_status: str, fields: dict[str, Any],
    ) -> Transaction | None:
        try:
            async with session_scope() as session:
                row = await self._transition(
                    session, TransactionRow, transaction_id, from_status, fields,
                )
                if row is None:
                    return None
                return Transaction.model_validate(
                    {**row.document, "status": row.status},
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update transaction: {e}") from e

    async def list_transactions(self, uid: str) -> list[Transaction]:
        stmt = (
            select(TransactionRow)
            .where(TransactionRow.uid == uid)
            .order_by(TransactionRow.created_at.desc())
        )
        try:
            async with session_scope() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [
                    Transaction.model_validate({**row.document, "status": row.status})
                    for row in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not list transactions: {e}") from e

    # --- Feedback & chat history ------------------------------------------------------

    async def add_feedback(self, feedback: Feedback) -> None:
        try:
            async with session_scope() as session:
                session.add(FeedbackRow(
                    id=feedback.id,
                    uid=feedback.uid,
                    category=feedback.category,
                    message=feedback.message,
                    sentiment=feedback.sentiment,
                    created_at=feedback.created_at,
                ))
        except SQLAlchemyError as e:
            raise StoreError(f"Could not save feedback: {e}") from e

    async def add_chat(self, uid: str, conversation: ChatConversation) -> None:
        try:
            async with session_scope() as session:
                session.add(ChatHistoryRow(
                    id=conversation.id,
                    uid=uid,
                    created_at=conversation.created_at,
                    document=conversation.model_dump(mode="json"),
                ))
        except SQLAlchemyError as e:
            raise StoreError(f"Could not save chat history: {e}") from e

    async def list_chats(self, uid: str, limit: int) -> list[ChatConversation]:
        stmt = (
            select(ChatHistoryRow)
            .where(ChatHistoryRow.uid == uid)
            .order_by(ChatHistoryRow.created_at.desc())
            .limit(limit)
        )
        try:
            async with session_scope() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [ChatConversation.model_validate(row.document) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read chat history: {e}") from e

    # --- API keys & operational records ---------------------------------------------

    async def add_api_key(self, api_key: ApiKey) -> ApiKey:
        try:
            async with session_scope() as session:
                session.add(ApiKeyRow(
                    id=api_key.id,
                    uid=api_key.uid,
                    name=api_key.name,
                    key_prefix=api_key.key_prefix,
                    key_hash=api_key.key_hash,
                    scopes=api_key.scopes,
                    rate_limit_rpm=api_key.rate_limit_rpm,
                    is_active=api_key.is_active,
                    expires_at=api_key.expires_at,
                    created_at=api_key.created_at,
                ))
            return api_key
        except SQLAlchemyError as e:
            raise StoreError(f"Could not save API key: {e}") from e

    async def get_api_key_by_hash(self, key_hash: str) -> ApiKey | None:
        stmt = select(ApiKeyRow).where(ApiKeyRow.key_hash == key_hash)
        try:
            async with session_scope() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
                if row is None:
                    return None
                return ApiKey(
                    id=row.id,
                    uid=row.uid,
                    name=row.name,
                    key_prefix=row.key_prefix,
                    key_hash=row.key_hash,
                    scopes=row.scopes,
                    rate_limit_rpm=row.rate_limit_rpm,
                    is_active=row.is_active,
                    expires_at=row.expires_at,
                    last_used_at=row.last_used_at,
                    created_at=row.created_at,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read API key: {e}") from e

    async def touch_api_key(self, key_id: str, used_at: datetime) -> None:
        stmt = (
            update(ApiKeyRow)
            .where(ApiKeyRow.id == key_id)
            .values(last_used_at=used_at)
            .execution_options(synchronize_session=False)
        )
        try:
            async with session_scope() as session:
                await session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update API key: {e}") from e

    async def add_audit_log(self, entry: AuditLog) -> None:
        try:
            async with session_scope() as session:
                session.add(AuditLogRow(**entry.model_dump()))
        except SQLAlchemyError as e:
            raise StoreError(f"Could not write audit log: {e}") from e

    async def list_audit_logs(
        self, uid: str | None, limit: int,
    ) -> list[AuditLog]:
        stmt = select(AuditLogRow).order_by(AuditLogRow.created_at.desc())
        if uid is not None:
            stmt = stmt.where(AuditLogRow.uid == uid)
        stmt = stmt.limit(limit)
        try:
            async with session_scope() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return [
                    AuditLog(
                        id=row.id,
                        uid=row.uid,
                        endpoint=row.endpoint,
                        method=row.method,
                        path=row.path,
                        client_ip=row.client_ip,
                        status_code=row.status_code,
                        response_time_ms=row.response_time_ms,
                        created_at=row.created_at,
                    )
                    for row in rows
                ]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read audit logs: {e}") from e

    async def add_flow_run(self, run: FlowRun) -> None:
        try:
            async with session_scope() as session:
                session.add(FlowRunRow(**run.model_dump()))
        except SQLAlchemyError as e:
            raise StoreError(f"Could not record flow run: {e}") from e

    # --- Internal ---------------------------------------------------------------

    async def _locked_profile(self, session, uid: str) -> ProfileRow:
        row = (await session.execute(
            select(ProfileRow).where(ProfileRow.uid == uid).with_for_update()
        )).scalar_one_or_none()
        if row is None:
            raise ProfileNotFoundError(f"Profile {uid} not found.")
        return row

    @staticmethod
    def _increment_stmt(uid: str, amount: int):
        return (
            update(ProfileRow)
            .where(ProfileRow.uid == uid)
            .values(credits=ProfileRow.credits + amount)
            .returning(ProfileRow.credits)
            .execution_options(synchronize_session=False)
        )

    async def _increment_credits(self, uid: str, amount: int) -> int | None:
        try:
            async with session_scope() as session:
                return (await session.execute(
                    self._increment_stmt(uid, amount)
                )).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"Could not add credits: {e}") from e

    @staticmethod
    def _invite_from_row(row: InviteRow) -> Invite:
        return Invite.model_validate({**row.document, "status": row.status})

    @staticmethod
    async def _transition(
        session,
        model: type[InviteRow] | type[TransactionRow],
        row_id: str,
        from_status: str,
        fields: dict[str, Any],
    ):
        # The status-guarded UPDATE takes the row lock; a concurrent caller
        # re-checks the WHERE clause after it and matches nothing.
        claimed = (await session.execute(
            update(model)
            .where(model.id == row_id, model.status == from_status)
            .values(status=fields.get("status", from_status))
            .returning(model.id)
            .execution_options(synchronize_session=False)
        )).scalar_one_or_none()
        if claimed is None:
            return None
        row = await session.get(model, row_id)
        row.document = {**row.document, **jsonable(fields)}
        return row
