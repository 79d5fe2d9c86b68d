# =============================================================================
# Capability Table — Role × Plan → Enabled Features
# =============================================================================
#
# One lookup decides what a caller may use. Each role has its own feature
# list (the dashboard navigation per role); each feature carries a lock:
#
#   None   → always available to the role
#   "pro"  → needs a plan ranked above Starter
#   "beta" → needs settings.beta_features_enabled
#
# Enterprise accounts always have `team`, whatever their plan.
#
# Routes consult this table once, through the `require_feature` dependency
# factory in api/deps.py.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from jurifly.config import settings
from jurifly.errors import FeatureLockedError
from jurifly.models.domain import UserProfile

FeatureLock = Literal["pro", "beta"]
FeatureState = Literal["enabled", "locked", "unavailable"]

PLAN_RANK: dict[str, int] = {
    "Starter": 0,
    "Founder": 1,
    "Professional": 2,
    "Enterprise": 3,
}


@dataclass(frozen=True)
class Feature:
    key: str
    lock: FeatureLock | None = None


_PRO = "pro"
_BETA = "beta"

ROLE_FEATURES: dict[str, tuple[Feature, ...]] = {
    "Founder": (
        Feature("dashboard"),
        Feature("aiToolkit"),
        Feature("capTable"),
        Feature("financials"),
        Feature("reconciliation", _PRO),
        Feature("launchPad"),
        Feature("playbook"),
        Feature("docVault"),
        Feature("analytics", _PRO),
        Feature("team", _PRO),
        Feature("clauseLibrary", _PRO),
        Feature("reportCenter"),
        Feature("connections", _BETA),
        Feature("community", _BETA),
        Feature("learnHub"),
        Feature("latestNews"),
    ),
    "CA": (
        Feature("dashboard"),
        Feature("clients"),
        Feature("team", _PRO),
        Feature("aiToolkit"),
        Feature("capTable"),
        Feature("financials"),
        Feature("reconciliation", _PRO),
        Feature("launchPad"),
        Feature("docVault"),
        Feature("taxesAndCalc"),
        Feature("portfolioAnalytics"),
        Feature("playbook"),
        Feature("reportCenter"),
        Feature("connections", _BETA),
        Feature("workflows", _BETA),
        Feature("clauseLibrary", _PRO),
        Feature("community", _BETA),
        Feature("learnHub"),
        Feature("latestNews"),
    ),
    "Legal Advisor": (
        Feature("dashboard"),
        Feature("clients"),
        Feature("aiToolkit"),
        Feature("clauseLibrary", _PRO),
        Feature("playbook"),
        Feature("invitations"),
        Feature("connections", _BETA),
        Feature("portfolioAnalytics"),
        Feature("latestNews"),
    ),
    "Enterprise": (
        Feature("dashboard"),
        Feature("team"),
        Feature("clients"),
        Feature("portfolioAnalytics"),
        Feature("playbook"),
        Feature("docVault"),
        Feature("latestNews"),
    ),
}


def is_pro_plan(plan: str) -> bool:
    return PLAN_RANK.get(plan, 0) > 0


def feature_status(role: str, plan: str, feature: str) -> FeatureState:
    """
    "unavailable" when the role has no such feature, "locked" when the
    plan or the beta switch keeps it closed, "enabled" otherwise.
    """
    for item in ROLE_FEATURES.get(role, ()):
        if item.key != feature:
            continue
        if item.lock == _PRO and not is_pro_plan(plan):
            return "locked"
        if item.lock == _BETA and not settings.beta_features_enabled:
            return "locked"
        return "enabled"
    return "unavailable"


def capabilities(role: str, plan: str) -> dict[str, FeatureState]:
    """Every feature of the role with its state, in navigation order."""
    return {
        item.key: feature_status(role, plan, item.key)
        for item in ROLE_FEATURES.get(role, ())
    }


def enabled_features(role: str, plan: str) -> list[str]:
    return [
        key for key, state in capabilities(role, plan).items()
        if state == "enabled"
    ]


def require_feature(profile: UserProfile, feature: str) -> None:
    """
    Raises:
        FeatureLockedError: the feature is locked or not part of the role.
    """
    state = feature_status(profile.role, profile.plan, feature)
    if state == "unavailable":
        raise FeatureLockedError(
            f"'{feature}' is not available for the {profile.role} role."
        )
    if state == "locked":
        raise FeatureLockedError(
            f"'{feature}' is not included in the {profile.plan} plan. "
            "Upgrade to unlock it."
        )
