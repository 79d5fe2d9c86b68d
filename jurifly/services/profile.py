# =============================================================================
# Profile Session — Per-Request Profile & Credit State
# =============================================================================
#
# A ProfileSession is built for each authenticated request by the
# `get_profile_session` dependency. It holds the caller's identity, an
# explicit store handle, and a cached copy of the profile document.
#
# DESIGN DECISION: Explicit object, not module state. The store is passed
# in, so tests build a session over a MemoryDocumentStore and two sessions
# for the same uid (two browser tabs) share nothing but the store.
#
# CREDIT FLOW:
#   deduct_credits(n)
#     ├── cached balance < n ──────────────→ False, no remote write
#     └── store.try_deduct_credits(n)
#           ├── refused (a concurrent spend won) → refresh cache, False
#           └── accepted ───────────────────→ cache = returned balance, True
#
# Referral signup: the referrer gains `referral_bonus` and the new profile
# gains `referred_bonus` on top of `base_credit_grant`, both in one store
# transaction. A bad referrer never blocks signup.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar

from jurifly.config import settings
from jurifly.errors import (
    AccessPassError,
    NotFoundError,
    ProfileNotFoundError,
    StoreError,
)
from jurifly.models.domain import (
    AccessPass,
    AccessPassUse,
    ActivityEntry,
    ChatConversation,
    ChatMessage,
    Company,
    CompanyHealth,
    Feedback,
    Identity,
    Notification,
    TeamMember,
    UserProfile,
    as_utc,
    utcnow,
)
from jurifly.services.store import DocumentStore, jsonable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Characters the document store rejects in map keys
_CHECKLIST_KEY_CHARS = ".*~/[]"

# Fields added after the first profiles were written
_BACKFILL_FIELDS = ("legal_region", "companies", "access_passes_used")


def sanitize_checklist_key(item_id: str) -> str:
    """Replace each of `. * ~ / [ ]` with an underscore."""
    return "".join("_" if ch in _CHECKLIST_KEY_CHARS else ch for ch in item_id)


def default_health() -> CompanyHealth:
    return CompanyHealth(score=0, risk="Low", deadlines=[])


def _with_default_health(companies: list) -> list:
    filled = []
    for company in companies:
        if isinstance(company, Company):
            if company.health is None:
                company = company.model_copy(update={"health": default_health()})
        elif isinstance(company, dict) and not company.get("health"):
            company = {**company, "health": default_health()}
        filled.append(company)
    return filled


class ProfileSession:
    """
    The caller's profile for the lifetime of one request.

    `profile` is a cache. Every write goes to the store first and is then
    reflected in the cache, so a failed write never leaves the cache ahead
    of the stored document.
    """

    def __init__(self, store: DocumentStore, identity: Identity) -> None:
        self.store = store
        self.identity = identity
        self._profile: UserProfile | None = None

    @property
    def uid(self) -> str:
        return self.identity.uid

    @property
    def profile(self) -> UserProfile:
        if self._profile is None:
            raise ProfileNotFoundError("Profile has not been loaded.")
        return self._profile

    # -------------------------------------------------------------------------
    # Loading & creation
    # -------------------------------------------------------------------------

    async def fetch_profile(
        self,
        role: str | None = None,
        legal_region: str | None = None,
        ref_id: str | None = None,
    ) -> UserProfile:
        """
        Load the caller's profile, creating it on first sign-in.

        role / legal_region / ref_id only apply when the profile is created.
        """
        profile = await self.store.get_profile(self.uid)
        if profile is None:
            profile = await self._create_profile(role, legal_region, ref_id)
        else:
            profile = await self._backfill(profile)
        self._profile = profile
        return profile

    async def _backfill(self, profile: UserProfile) -> UserProfile:
        updates: dict[str, Any] = {}
        missing = set(_BACKFILL_FIELDS) - profile.model_fields_set
        if "companies" in missing:
            updates["companies"] = []
        if "access_passes_used" in missing:
            updates["access_passes_used"] = []
        if "legal_region" in missing or not profile.legal_region:
            updates["legal_region"] = settings.default_legal_region

        if not updates:
            return profile

        try:
            await self.store.update_profile(self.uid, updates)
        except StoreError:
            logger.exception("Failed to backfill profile fields for uid=%s", self.uid)
        return profile.model_copy(update=updates)

    async def _create_profile(
        self,
        role: str | None,
        legal_region: str | None,
        ref_id: str | None,
    ) -> UserProfile:
        now = utcnow()
        signup_index = await self.store.next_signup_index()
        email = self.identity.email or ""

        profile = UserProfile(
            uid=self.uid,
            email=email,
            name=self.identity.display_name or "New User",
            role=role or "Founder",
            plan="Starter",
            plan_start_date=now,
            plan_expiry_date=now + timedelta(days=settings.starter_plan_days),
            credits=settings.base_credit_grant,
            legal_region=legal_region or settings.default_legal_region,
            signup_index=signup_index,
            team_members=[TeamMember(
                id=self.uid,
                name=self.identity.display_name or "Me",
                email=email,
                role="Admin",
            )],
            activity_log=[ActivityEntry(user_name="System", action="Created workspace")],
        )
        stored = await self.store.create_profile(profile)
        if stored.signup_index != signup_index:
            # A concurrent request created the profile first
            return stored

        logger.info(
            "Created profile uid=%s role=%s signup_index=%d",
            self.uid, profile.role, signup_index,
        )

        if ref_id and ref_id != self.uid:
            stored = await self._apply_referral(stored, ref_id)
        return stored

    async def _apply_referral(self, profile: UserProfile, ref_id: str) -> UserProfile:
        try:
            new_balance = await self.store.apply_referral(
                referrer_uid=ref_id,
                referred_uid=self.uid,
                referrer_bonus=settings.referral_bonus,
                referred_bonus=settings.referred_bonus,
            )
        except (StoreError, ProfileNotFoundError):
            logger.exception("Referral from %s to %s failed", ref_id, self.uid)
            return profile

        if new_balance is None:
            logger.warning("Ignoring unknown referrer %s for uid=%s", ref_id, self.uid)
            return profile

        logger.info(
            "Referral applied: referrer=%s +%d, uid=%s now %d credits",
            ref_id, settings.referral_bonus, self.uid, new_balance,
        )
        return profile.model_copy(update={"credits": new_balance})

    # -------------------------------------------------------------------------
    # Profile updates
    # -------------------------------------------------------------------------

    async def update_profile(self, fields: dict[str, Any]) -> UserProfile:
        """
        Merge top-level fields into the stored profile, then the cache.

        Last writer wins. Companies without health get the default.
        """
        if "companies" in fields:
            fields = {**fields, "companies": _with_default_health(fields["companies"])}

        await self.store.update_profile(self.uid, fields)
        self._profile = UserProfile.model_validate(
            {**self.profile.model_dump(mode="json"), **jsonable(fields)},
        )
        return self._profile

    async def mutate(self, mutation: Callable[[UserProfile], T]) -> T:
        """
        Read-modify-write the caller's profile in one store transaction.

        The cache is replaced with the profile as written.
        """
        def run(profile: UserProfile) -> tuple[T, UserProfile]:
            return mutation(profile), profile

        result, written = await self.store.mutate_profile(self.uid, run)
        self._profile = written
        return result

    async def record_activity(self, action: str) -> None:
        """Append an entry to the caller's activity log."""
        entry = ActivityEntry(
            user_name=self.profile.name or self.identity.display_name or "Me",
            action=action,
        )
        await self.mutate(lambda profile: profile.activity_log.append(entry))

    def is_plan_active(self, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return as_utc(self.profile.plan_expiry_date) > now

    # -------------------------------------------------------------------------
    # Credits
    # -------------------------------------------------------------------------

    async def deduct_credits(self, amount: int) -> bool:
        """
        Spend `amount` credits. False when the balance does not cover it.

        The check against the cache only avoids a round trip; the store's
        conditional decrement is what enforces the balance.
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        if self.profile.credits < amount:
            logger.info(
                "Credit deduction refused for uid=%s: %d required, %d cached",
                self.uid, amount, self.profile.credits,
            )
            return False

        new_balance = await self.store.try_deduct_credits(self.uid, amount)
        if new_balance is None:
            refreshed = await self.store.get_profile(self.uid)
            if refreshed is not None:
                self._profile = refreshed
            logger.info(
                "Credit deduction refused by store for uid=%s (%d required)",
                self.uid, amount,
            )
            return False

        self.profile.credits = new_balance
        logger.info(
            "Deducted %d credits from uid=%s, balance %d",
            amount, self.uid, new_balance,
        )
        return True

    async def add_credits(self, amount: int) -> int:
        """Add credits (purchases, passes, refunds). Returns the new balance."""
        new_balance = await self.store.add_credits(self.uid, amount)
        self.profile.credits = new_balance
        logger.info("Added %d credits to uid=%s, balance %d", amount, self.uid, new_balance)
        return new_balance

    # -------------------------------------------------------------------------
    # Access passes
    # -------------------------------------------------------------------------

    async def apply_access_pass(self, code: str) -> tuple[bool, str]:
        """
        Redeem an access pass. Returns (success, message).

        Validation and reward run inside one store transaction; a rejected
        pass writes nothing.
        """
        if any(used.code == code for used in self.profile.access_passes_used):
            return False, "You have already used this access pass."

        try:
            message = await self.store.redeem_access_pass(
                self.uid, code, _redeem_access_pass,
            )
        except AccessPassError as e:
            logger.info("Access pass %s rejected for uid=%s: %s", code, self.uid, e.message)
            return False, e.message

        refreshed = await self.store.get_profile(self.uid)
        if refreshed is not None:
            self._profile = refreshed
        logger.info("Access pass %s redeemed by uid=%s", code, self.uid)
        return True, message

    # -------------------------------------------------------------------------
    # Checklist
    # -------------------------------------------------------------------------

    async def update_company_checklist(
        self, company_id: str, updates: dict[str, bool],
    ) -> dict[str, bool]:
        """
        Set checklist items on one company. Returns the company's new status.

        An advisor editing a client company writes to the founder's
        profile (the company's `founder_uid`), falling back to their own.
        """
        if not updates:
            company = self.profile.company(company_id)
            return dict(company.checklist_status) if company else {}

        sanitized = {sanitize_checklist_key(k): v for k, v in updates.items()}

        target_uid = self.uid
        if self.profile.is_advisor:
            company = self.profile.company(company_id)
            if company is not None and company.founder_uid:
                target_uid = company.founder_uid
            else:
                logger.warning(
                    "Advisor %s updating company %s without founder_uid, "
                    "updating own profile",
                    self.uid, company_id,
                )

        def apply(profile: UserProfile) -> dict[str, bool]:
            company = profile.company(company_id)
            if company is None:
                raise NotFoundError(
                    f"Company with ID {company_id} not found in profile of "
                    f"user {target_uid}."
                )
            company.checklist_status = {**company.checklist_status, **sanitized}
            return dict(company.checklist_status)

        if target_uid == self.uid:
            return await self.mutate(apply)

        status = await self.store.mutate_profile(target_uid, apply)

        # Keep the advisor's copy of the client company in step
        local = self.profile.company(company_id)
        if local is not None:
            local.checklist_status = {**local.checklist_status, **sanitized}
            await self.store.update_profile(
                self.uid, {"companies": self.profile.companies},
            )
        return status

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def add_notification(
        self,
        title: str,
        description: str,
        icon: str = "Default",
        link: str | None = None,
        target_uid: str | None = None,
    ) -> Notification | None:
        """
        Notify `target_uid` (default: the caller).

        Returns None when an unread notification with the same title exists.
        """
        notification = Notification(
            title=title, description=description, icon=icon, link=link,
        )
        return await self.store.add_notification(target_uid or self.uid, notification)

    async def list_notifications(self) -> list[Notification]:
        return await self.store.list_notifications(
            self.uid, settings.notification_limit,
        )

    async def mark_notification_read(self, notification_id: str) -> bool:
        return await self.store.mark_notification_read(self.uid, notification_id)

    async def mark_all_notifications_read(self) -> int:
        return await self.store.mark_all_notifications_read(self.uid)

    # -------------------------------------------------------------------------
    # Feedback & chat history
    # -------------------------------------------------------------------------

    async def add_feedback(
        self, category: str, message: str, sentiment: str | None = None,
    ) -> Feedback:
        feedback = Feedback(
            uid=self.uid,
            email=self.profile.email or self.identity.email,
            category=category,
            message=message,
            sentiment=sentiment,
        )
        await self.store.add_feedback(feedback)
        return feedback

    async def save_chat_history(self, messages: list[ChatMessage]) -> ChatConversation:
        conversation = ChatConversation(messages=messages)
        await self.store.add_chat(self.uid, conversation)
        return conversation

    async def get_chat_history(self) -> list[ChatConversation]:
        return await self.store.list_chats(self.uid, settings.chat_history_limit)


def _redeem_access_pass(access_pass: AccessPass | None, profile: UserProfile) -> str:
    """Validate and apply a pass. Runs inside the store transaction."""
    if access_pass is None:
        raise AccessPassError("Invalid Access Pass. Please check the code and try again.")

    now = utcnow()
    if access_pass.expires_at and as_utc(access_pass.expires_at) < now:
        raise AccessPassError("This Access Pass has expired.")
    if access_pass.use_limit and len(access_pass.used_by) >= access_pass.use_limit:
        raise AccessPassError("This Access Pass has reached its usage limit.")
    if profile.uid in access_pass.used_by:
        raise AccessPassError("You have already redeemed this pass.")

    reward = access_pass.reward
    if reward.type == "trial":
        days = reward.duration_days or 0
        profile.plan = "Professional" if profile.role == "CA" else "Founder"
        trial_end = now + timedelta(days=days)
        profile.plan_expiry_date = max(trial_end, as_utc(profile.plan_expiry_date))
        message = f"Success! Your Pro trial for {days} days has been activated."
    else:
        amount = reward.amount or 0
        profile.credits += amount
        message = f"Success! {amount} bonus credits have been added to your account."

    profile.access_passes_used.append(
        AccessPassUse(code=access_pass.code, reward_type=reward.type),
    )
    access_pass.used_by.append(profile.uid)
    return message
