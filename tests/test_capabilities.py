# =============================================================================
# Unit Tests — Capability Table
# =============================================================================

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from jurifly.config import settings
from jurifly.errors import FeatureLockedError
from jurifly.models.domain import UserProfile
from jurifly.services.capabilities import (
    capabilities,
    enabled_features,
    feature_status,
    is_pro_plan,
    require_feature,
)


def _profile(role="Founder", plan="Starter") -> UserProfile:
    now = datetime.now(UTC)
    return UserProfile(
        uid="u1", role=role, plan=plan, plan_start_date=now, plan_expiry_date=now,
    )


class TestFeatureStatus:
    """Tests for feature_status()."""

    def test_pro_feature_locked_on_starter(self):
        assert feature_status("Founder", "Starter", "analytics") == "locked"

    def test_pro_feature_enabled_on_paid_plan(self):
        assert feature_status("Founder", "Founder", "analytics") == "enabled"
        assert feature_status("CA", "Professional", "reconciliation") == "enabled"

    def test_unlocked_feature_on_starter(self):
        assert feature_status("Founder", "Starter", "aiToolkit") == "enabled"

    def test_feature_outside_role(self):
        assert feature_status("Founder", "Enterprise", "clients") == "unavailable"
        assert feature_status("Legal Advisor", "Professional", "financials") == "unavailable"

    def test_enterprise_team_always_enabled(self):
        assert feature_status("Enterprise", "Starter", "team") == "enabled"

    def test_beta_follows_setting(self, monkeypatch):
        monkeypatch.setattr(settings, "beta_features_enabled", False)
        assert feature_status("Founder", "Enterprise", "community") == "locked"
        monkeypatch.setattr(settings, "beta_features_enabled", True)
        assert feature_status("Founder", "Starter", "community") == "enabled"

    def test_is_pro_plan(self):
        assert not is_pro_plan("Starter")
        assert is_pro_plan("Founder")
        assert not is_pro_plan("Unknown")


class TestCapabilities:
    """Tests for capabilities() and enabled_features()."""

    def test_keeps_navigation_order(self):
        keys = list(capabilities("Founder", "Starter"))
        assert keys[:3] == ["dashboard", "aiToolkit", "capTable"]

    def test_enabled_excludes_locked(self, monkeypatch):
        monkeypatch.setattr(settings, "beta_features_enabled", False)
        enabled = enabled_features("CA", "Starter")
        assert "clients" in enabled
        assert "team" not in enabled
        assert "workflows" not in enabled

    def test_unknown_role_has_nothing(self):
        assert capabilities("Nobody", "Enterprise") == {}


class TestRequireFeature:
    """Tests for require_feature()."""

    def test_enabled_passes(self):
        require_feature(_profile(), "dashboard")

    def test_locked_raises_with_upgrade_hint(self):
        with pytest.raises(FeatureLockedError) as exc_info:
            require_feature(_profile(), "reconciliation")
        assert exc_info.value.status_code == 403
        assert "Upgrade" in exc_info.value.message

    def test_unavailable_raises(self):
        with pytest.raises(FeatureLockedError) as exc_info:
            require_feature(_profile(role="Enterprise"), "financials")
        assert "Enterprise role" in exc_info.value.message
