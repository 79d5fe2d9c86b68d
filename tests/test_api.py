# =============================================================================
# API Tests — Routes, Envelope & Error Handling
# =============================================================================
#
# Drives the FastAPI app through TestClient with the store and the LLM
# swapped out via dependency_overrides:
#   - get_document_store → a fresh MemoryDocumentStore per test
#   - get_llm            → a MagicMock with an AsyncMock complete()
#   - check_rate_limit   → patched out (no Redis)
#
# Callers authenticate with the key returned by POST /auth/signup, the same
# way a real client would.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from jurifly.api.admin import verify_transaction
from jurifly.api.deps import get_document_store, get_llm
from jurifly.config import settings
from jurifly.errors import JuriflyError, StoreError
from jurifly.main import app
from jurifly.models.domain import AccessPass, AccessPassReward, Identity, Transaction
from jurifly.services.auth import issue_api_key
from jurifly.services.llm import LLMResponse
from jurifly.services.news import NewsArticle
from jurifly.services.profile import ProfileSession
from jurifly.services.store import MemoryDocumentStore

LEARN_OUTPUT = {
    "title": "Burn Rate",
    "summary": "How fast you spend cash.",
    "content": "Monthly expenses minus revenue.",
    "further_reading": ["Runway"],
}


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def llm():
    provider = MagicMock()
    provider.provider_type = "anthropic"
    provider.complete = AsyncMock(return_value=LLMResponse(
        content=json.dumps(LEARN_OUTPUT),
        model="claude-sonnet-4-6",
        input_tokens=200,
        output_tokens=100,
    ))
    return provider


@pytest.fixture
def client(store, llm, monkeypatch):
    monkeypatch.setattr(settings, "auth_enabled", True)
    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_llm] = lambda: llm
    with patch("jurifly.api.flows.check_rate_limit", new=AsyncMock()):
        yield TestClient(app)
    app.dependency_overrides.clear()


def _signup(client, uid="u1", **extra) -> dict:
    response = client.post("/auth/signup", json={
        "uid": uid, "email": f"{uid}@example.com", "name": uid.upper(), **extra,
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _auth(raw_key: str) -> dict:
    return {"Authorization": f"Bearer {raw_key}"}


def _headers(client, uid="u1", **extra) -> dict:
    return _auth(_signup(client, uid, **extra)["api_key"]["raw_key"])


def _admin_headers(store) -> dict:
    raw_key, _ = _run(issue_api_key(store, "ops", "admin", scopes=["admin", "user"]))
    return _auth(raw_key)


# ---------------------------------------------------------------------------
# Health & auth
# ---------------------------------------------------------------------------


class TestHealthAndAuth:
    """Tests for /health, signup and key handling."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_signup_creates_profile_and_key(self, client):
        data = _signup(client, role="CA", legal_region="USA")
        assert data["profile"]["credits"] == settings.base_credit_grant
        assert data["profile"]["role"] == "CA"
        assert data["profile"]["legal_region"] == "USA"
        assert data["api_key"]["raw_key"].startswith("sk-")
        assert data["api_key"]["scopes"] == ["user"]

    def test_duplicate_signup_is_409(self, client):
        _signup(client)
        response = client.post("/auth/signup", json={"uid": "u1", "email": "u1@example.com"})
        assert response.status_code == 409
        assert response.json()["error"] == "An account with this id already exists."

    def test_signup_with_referral_and_pass(self, client, store):
        _run(store.create_access_pass(AccessPass(
            code="LAUNCH", reward=AccessPassReward(type="credits", amount=20),
        )))
        _signup(client, "A")
        data = _signup(client, "B", ref_id="A", access_pass="LAUNCH")
        assert data["profile"]["credits"] == (
            settings.base_credit_grant + settings.referred_bonus + 20
        )
        assert data["access_pass_message"].startswith("Success!")

    def test_missing_key_is_401_envelope(self, client):
        response = client.get("/profile")
        assert response.status_code == 401
        body = response.json()
        assert body["data"] is None
        assert "Missing API key" in body["error"]

    def test_header_identity_when_auth_disabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "auth_enabled", False)
        response = client.get("/profile", headers={"X-User-Id": "dev"})
        assert response.status_code == 200
        assert response.json()["data"]["uid"] == "dev"

    def test_issue_additional_key(self, client):
        headers = _headers(client)
        response = client.post("/auth/keys", json={"name": "laptop"}, headers=headers)
        assert response.status_code == 201
        new_key = response.json()["data"]["raw_key"]
        assert client.get("/profile", headers=_auth(new_key)).status_code == 200


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


class TestProfileRoutes:
    """Tests for /profile."""

    def test_update_profile(self, client):
        headers = _headers(client)
        response = client.patch("/profile", json={"phone": "+91 98000 00000"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["phone"] == "+91 98000 00000"

    def test_credits_cannot_be_patched(self, client):
        headers = _headers(client)
        response = client.patch("/profile", json={"credits": 10_000}, headers=headers)
        assert response.status_code == 422

    def test_unknown_active_company_is_404(self, client):
        headers = _headers(client)
        response = client.patch("/profile", json={"active_company_id": "nope"}, headers=headers)
        assert response.status_code == 404

    def test_deduct_credits(self, client):
        headers = _headers(client)
        response = client.post("/profile/credits/deduct", json={"amount": 10}, headers=headers)
        assert response.status_code == 200
        assert response.json()["data"]["credits"] == settings.base_credit_grant - 10

    def test_deduct_more_than_balance_is_402(self, client):
        headers = _headers(client)
        response = client.post("/profile/credits/deduct", json={"amount": 1000}, headers=headers)
        assert response.status_code == 402
        assert "Insufficient credits" in response.json()["error"]

    def test_invalid_access_pass_is_400(self, client):
        headers = _headers(client)
        response = client.post("/profile/access-pass", json={"code": "NOPE"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid Access Pass")

    def test_capabilities(self, client):
        headers = _headers(client)
        data = client.get("/profile/capabilities", headers=headers).json()["data"]
        assert data["plan"] == "Starter"
        assert data["plan_active"] is True
        assert data["features"]["reconciliation"] == "locked"
        assert data["features"]["aiToolkit"] == "enabled"

    def test_chat_history_round_trip(self, client):
        headers = _headers(client)
        saved = client.post("/profile/chat-history", json={"messages": [
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
        ]}, headers=headers)
        assert saved.status_code == 201
        history = client.get("/profile/chat-history", headers=headers).json()["data"]
        assert len(history) == 1

    def test_feedback(self, client):
        headers = _headers(client)
        response = client.post("/profile/feedback", json={
            "category": "Bug", "message": "Button is misaligned", "sentiment": "negative",
        }, headers=headers)
        assert response.status_code == 201
        assert response.json()["message"] == "Thank you for your feedback!"


# ---------------------------------------------------------------------------
# Companies & invites
# ---------------------------------------------------------------------------


class TestCompanyRoutes:
    """Tests for /companies."""

    def test_company_lifecycle(self, client):
        headers = _headers(client)
        created = client.post("/companies", json={"name": "Acme", "type": "LLP"}, headers=headers)
        assert created.status_code == 201
        company_id = created.json()["data"]["id"]

        client.post(f"/companies/{company_id}/cap-table", json={
            "holder": "U1", "type": "Founder", "shares": 900, "grant_date": "2024-01-01",
        }, headers=headers)
        client.post(f"/companies/{company_id}/cap-table", json={
            "holder": "Pool", "type": "ESOP", "shares": 100, "grant_date": "2024-01-01",
        }, headers=headers)
        summary = client.get(f"/companies/{company_id}/cap-table", headers=headers).json()
        assert summary["data"]["summary"]["founder_percentage"] == 90.0

        checklist = client.put(f"/companies/{company_id}/checklist", json={
            "updates": {"gst.q1": True},
        }, headers=headers)
        assert checklist.json()["data"] == {"gst_q1": True}

        deleted = client.delete(f"/companies/{company_id}", headers=headers)
        assert deleted.status_code == 200
        assert client.get("/companies", headers=headers).json()["data"] == []

    def test_overdue_doc_requests(self, client):
        headers = _headers(client)
        company_id = client.post(
            "/companies", json={"name": "Acme", "type": "LLP"}, headers=headers,
        ).json()["data"]["id"]
        client.post(f"/companies/{company_id}/doc-requests", json={
            "title": "Bank statement", "due_date": "2020-01-01",
        }, headers=headers)

        overdue = client.get(
            f"/companies/{company_id}/doc-requests?view=overdue", headers=headers,
        ).json()["data"]
        assert [r["title"] for r in overdue] == ["Bank statement"]
        assert overdue[0]["state"] == "Overdue"

    def test_unknown_company_is_404(self, client):
        headers = _headers(client)
        response = client.get("/companies/missing", headers=headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Company missing not found."


class TestInviteRoutes:
    """Tests for /invites."""

    def test_rule_violation_is_400_envelope(self, client):
        headers = _headers(client)
        response = client.post(
            "/invites/client", json={"client_email": "c@example.com"}, headers=headers,
        )
        assert response.status_code == 400
        assert response.json() == {
            "data": None, "error": "Only CAs can invite clients.", "message": None,
        }

    def test_advisor_flow(self, client):
        founder = _headers(client, "f1")
        advisor = _headers(client, "ca1", role="CA")
        company_id = client.post(
            "/companies", json={"name": "Acme", "type": "LLP"}, headers=founder,
        ).json()["data"]["id"]

        sent = client.post("/invites/ca", json={
            "ca_email": "ca1@example.com", "company_id": company_id, "company_name": "Acme",
        }, headers=founder)
        assert sent.json()["message"] == "Invitation sent successfully!"

        pending = client.get("/invites/pending", headers=advisor).json()["data"]
        assert len(pending) == 1
        accepted = client.post(f"/invites/{pending[0]['id']}/accept", headers=advisor)
        assert accepted.status_code == 200

        checked = client.post("/invites/check-accepted", headers=founder)
        assert checked.json()["message"] == "1 advisor(s) connected."

        notifications = client.get("/notifications", headers=founder).json()["data"]
        assert notifications[0]["title"] == "Advisor Connected!"


# ---------------------------------------------------------------------------
# Flows
# ---------------------------------------------------------------------------


class TestFlowRoutes:
    """Tests for /flows."""

    def test_list_flows(self, client):
        flows = client.get("/flows").json()["data"]
        names = [flow["name"] for flow in flows]
        assert "legal-research" in names
        assert all("input_schema" in flow for flow in flows)

    def test_run_flow_charges_credits(self, client, store):
        headers = _headers(client)
        response = client.post("/flows/learn", json={"input": {"topic": "Burn Rate"}}, headers=headers)
        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["output"]["title"] == "Burn Rate"
        assert data["credits_charged"] == 1
        assert data["credits_remaining"] == settings.base_credit_grant - 1

        run = store._flow_runs[0]
        assert run["success"] is True
        assert run["estimated_cost_usd"] == pytest.approx(200 * 3e-6 + 100 * 15e-6)

    def test_unknown_flow_is_404(self, client):
        headers = _headers(client)
        response = client.post("/flows/nope", json={"input": {}}, headers=headers)
        assert response.status_code == 404

    def test_invalid_input_is_422_and_free(self, client, llm):
        headers = _headers(client)
        response = client.post("/flows/learn", json={"input": {}}, headers=headers)
        assert response.status_code == 422
        profile = client.get("/profile", headers=headers).json()["data"]
        assert profile["credits"] == settings.base_credit_grant
        llm.complete.assert_not_called()

    def test_locked_feature_is_403(self, client):
        headers = _headers(client)
        response = client.post("/flows/reconciliation", json={"input": {"documents": [
            {"name": "GST", "document_text": "a"},
            {"name": "ITR", "document_text": "b"},
        ]}}, headers=headers)
        assert response.status_code == 403
        assert "Upgrade" in response.json()["error"]

    def test_expired_plan_is_402(self, client, store):
        headers = _headers(client)
        _run(store.update_profile("u1", {
            "plan_expiry_date": datetime.now(UTC) - timedelta(days=1),
        }))
        response = client.post("/flows/learn", json={"input": {"topic": "x"}}, headers=headers)
        assert response.status_code == 402

    def test_insufficient_credits_is_402(self, client, store):
        headers = _headers(client)
        _run(store.update_profile("u1", {"credits": 0}))
        response = client.post("/flows/learn", json={"input": {"topic": "x"}}, headers=headers)
        assert response.status_code == 402
        assert "Insufficient credits" in response.json()["error"]

    def test_provider_failure_refunds(self, client, store, llm):
        headers = _headers(client)
        llm.complete.side_effect = RuntimeError("upstream timeout")
        response = client.post("/flows/learn", json={"input": {"topic": "x"}}, headers=headers)

        assert response.status_code == 502
        assert "refunded" in response.json()["error"]
        assert _run(store.get_profile("u1")).credits == settings.base_credit_grant
        assert store._flow_runs[0]["success"] is False
        assert store._flow_runs[0]["credits_charged"] == 0

    def test_bad_model_output_refunds(self, client, store, llm):
        headers = _headers(client)
        llm.complete.return_value = LLMResponse(
            content="not json", model="claude-sonnet-4-6", input_tokens=1, output_tokens=1,
        )
        response = client.post("/flows/learn", json={"input": {"topic": "x"}}, headers=headers)
        assert response.status_code == 502
        assert _run(store.get_profile("u1")).credits == settings.base_credit_grant

    def test_failed_refund_keeps_original_error(self, client, store, llm):
        headers = _headers(client)
        llm.complete.return_value = LLMResponse(
            content="not json", model="claude-sonnet-4-6", input_tokens=1, output_tokens=1,
        )
        with patch.object(store, "add_credits", AsyncMock(side_effect=StoreError("down"))):
            response = client.post("/flows/learn", json={"input": {"topic": "x"}}, headers=headers)

        assert response.status_code == 502
        assert "down" not in response.json()["error"]
        run = store._flow_runs[0]
        assert run["success"] is False
        assert run["credits_charged"] == 1

    def test_failed_refund_on_provider_error(self, client, store, llm):
        headers = _headers(client)
        llm.complete.side_effect = RuntimeError("upstream timeout")
        with patch.object(store, "add_credits", AsyncMock(side_effect=StoreError("down"))):
            response = client.post("/flows/learn", json={"input": {"topic": "x"}}, headers=headers)

        assert response.status_code == 502
        assert "refunded" not in response.json()["error"]
        assert store._flow_runs[0]["credits_charged"] == 1


# ---------------------------------------------------------------------------
# News & financials
# ---------------------------------------------------------------------------


class TestNewsAndFinancialsRoutes:
    """Tests for /news and /financials."""

    def test_news_defaults_to_region_topic(self, client):
        headers = _headers(client)
        article = NewsArticle.model_validate({
            "source": {"name": "Mint"},
            "title": "New company law amendments",
            "url": "https://example.com/a",
            "publishedAt": "2024-05-01T10:00:00Z",
        })
        with patch("jurifly.api.news.fetch_news", new=AsyncMock(return_value=[article])) as fetch:
            response = client.get("/news", headers=headers)

        assert response.status_code == 200, response.text
        fetch.assert_awaited_once_with("corporate law", "India")
        data = response.json()["data"]
        assert data[0]["title"] == "New company law amendments"
        assert data[0]["url_to_image"] is None

    def test_news_without_key_is_503(self, client, monkeypatch):
        monkeypatch.setattr(settings, "news_api_key", "")
        headers = _headers(client)
        response = client.get("/news?topic=taxation", headers=headers)
        assert response.status_code == 503
        assert response.json()["error"] == "News service is currently unavailable."

    def test_news_topics(self, client):
        headers = _headers(client)
        topics = client.get("/news/topics", headers=headers).json()["data"]
        assert topics[0] == {"topic": "corporate law", "label": "Corporate Law"}

    def test_forecast_is_free(self, client):
        headers = _headers(client)
        response = client.post("/financials/forecast", json={
            "cash_balance": 1000, "monthly_revenue": 100,
            "monthly_expenses": 200, "revenue_growth_rate": 0,
        }, headers=headers)

        assert response.status_code == 200, response.text
        data = response.json()["data"]
        assert data["runway_in_months"] == 11
        assert len(data["forecast"]) == 12
        assert response.json()["message"] == data["summary"]
        profile = client.get("/profile", headers=headers).json()["data"]
        assert profile["credits"] == settings.base_credit_grant

    def test_forecast_needs_financials_feature(self, client):
        headers = _headers(client, "e1", role="Enterprise")
        response = client.post("/financials/forecast", json={
            "cash_balance": 1000, "monthly_revenue": 100,
            "monthly_expenses": 200, "revenue_growth_rate": 0,
        }, headers=headers)
        assert response.status_code == 403


# ---------------------------------------------------------------------------
# Billing & admin
# ---------------------------------------------------------------------------


class TestBillingAndAdmin:
    """Tests for /billing and /admin."""

    def test_plan_purchase_verified_by_admin(self, client, store):
        headers = _headers(client)
        submitted = client.post("/billing/transactions", json={
            "type": "plan", "name": "Founder Monthly", "amount": 999,
            "upi_transaction_id": "UPI123456", "plan": "Founder", "cycle": "monthly",
        }, headers=headers)
        assert submitted.status_code == 201
        transaction_id = submitted.json()["data"]["id"]
        assert submitted.json()["data"]["status"] == "pending_verification"

        verified = client.post(
            f"/admin/transactions/{transaction_id}/verify", headers=_admin_headers(store),
        )
        assert verified.status_code == 200, verified.text

        profile = client.get("/profile", headers=headers).json()["data"]
        assert profile["plan"] == "Founder"
        notifications = client.get("/notifications", headers=headers).json()["data"]
        assert notifications[0]["title"] == "Payment Verified"

        again = client.post(
            f"/admin/transactions/{transaction_id}/verify", headers=_admin_headers(store),
        )
        assert again.status_code == 409

    def test_credit_pack_purchase(self, client, store):
        headers = _headers(client)
        transaction_id = client.post("/billing/transactions", json={
            "type": "credit_pack", "name": "50 credits", "amount": 199,
            "upi_transaction_id": "UPI654321", "credits": 50,
        }, headers=headers).json()["data"]["id"]

        client.post(f"/admin/transactions/{transaction_id}/verify", headers=_admin_headers(store))
        profile = client.get("/profile", headers=headers).json()["data"]
        assert profile["credits"] == settings.base_credit_grant + 50

    def test_plan_purchase_needs_cycle(self, client):
        headers = _headers(client)
        response = client.post("/billing/transactions", json={
            "type": "plan", "name": "Founder", "amount": 999,
            "upi_transaction_id": "UPI123456", "plan": "Founder",
        }, headers=headers)
        assert response.status_code == 422

    def test_user_key_cannot_use_admin(self, client):
        headers = _headers(client)
        response = client.get("/admin/audit", headers=headers)
        assert response.status_code == 403
        assert "admin" in response.json()["error"]

    def test_admin_creates_access_pass(self, client, store):
        admin = _admin_headers(store)
        created = client.post("/admin/access-passes", json={
            "code": "TRIAL30", "reward": {"type": "trial", "duration_days": 30},
        }, headers=admin)
        assert created.status_code == 201

        headers = _headers(client)
        redeemed = client.post("/profile/access-pass", json={"code": "TRIAL30"}, headers=headers)
        assert redeemed.status_code == 200
        assert redeemed.json()["data"]["plan"] == "Founder"

    def test_audit_log_records_requests(self, client, store):
        headers = _headers(client)
        client.get("/profile", headers=headers)
        logs = client.get("/admin/audit?uid=u1", headers=_admin_headers(store)).json()["data"]
        assert any(entry["path"] == "/profile" for entry in logs)
        assert all(entry["uid"] == "u1" for entry in logs)

    def test_reject_then_verify_is_409(self, client, store):
        headers = _headers(client)
        transaction_id = client.post("/billing/transactions", json={
            "type": "credit_pack", "name": "50 credits", "amount": 199,
            "upi_transaction_id": "UPI777777", "credits": 50,
        }, headers=headers).json()["data"]["id"]
        admin = _admin_headers(store)

        rejected = client.post(f"/admin/transactions/{transaction_id}/reject", headers=admin)
        assert rejected.status_code == 200
        verified = client.post(f"/admin/transactions/{transaction_id}/verify", headers=admin)
        assert verified.status_code == 409
        assert _run(store.get_profile("u1")).credits == settings.base_credit_grant


class _InterleavingStore(MemoryDocumentStore):
    """Yields after every transaction read, like a round trip to Postgres."""

    async def get_transaction(self, transaction_id):
        transaction = await super().get_transaction(transaction_id)
        await asyncio.sleep(0)
        return transaction


class TestTransactionClaim:
    """Tests for claiming a transaction before applying it."""

    def _pending_credit_pack(self, store) -> Transaction:
        async def setup():
            await ProfileSession(store, Identity(uid="u1")).fetch_profile()
            return await store.add_transaction(Transaction(
                uid="u1", email="u1@example.com", type="credit_pack",
                name="50 credits", amount=199, upi_transaction_id="UPI1", credits=50,
            ))
        return _run(setup())

    def test_concurrent_verifies_credit_once(self):
        store = _InterleavingStore()
        transaction = self._pending_credit_pack(store)
        admin = Identity(uid="ops")

        async def scenario():
            return await asyncio.gather(
                verify_transaction(transaction.id, admin=admin, store=store),
                verify_transaction(transaction.id, admin=admin, store=store),
                return_exceptions=True,
            )

        results = _run(scenario())
        errors = [r for r in results if isinstance(r, JuriflyError)]
        assert len(errors) == 1
        assert errors[0].status_code == 409
        assert _run(store.get_profile("u1")).credits == settings.base_credit_grant + 50
        assert _run(store.get_transaction(transaction.id)).status == "verified"

    def test_failed_apply_returns_transaction_to_queue(self):
        store = MemoryDocumentStore()
        transaction = self._pending_credit_pack(store)

        with patch.object(store, "add_credits", AsyncMock(side_effect=StoreError("down"))):
            with pytest.raises(StoreError):
                _run(verify_transaction(transaction.id, admin=Identity(uid="ops"), store=store))

        assert _run(store.get_transaction(transaction.id)).status == "pending_verification"

    def test_transition_requires_expected_status(self):
        store = MemoryDocumentStore()
        transaction = self._pending_credit_pack(store)

        first = _run(store.transition_transaction(
            transaction.id, "pending_verification", {"status": "failed"},
        ))
        second = _run(store.transition_transaction(
            transaction.id, "pending_verification", {"status": "verified"},
        ))
        assert first.status == "failed"
        assert second is None
        assert _run(store.transition_transaction("missing", "pending_verification", {})) is None
