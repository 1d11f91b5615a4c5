from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from invite_hub.api.routes import internal_access, internal_referrals
from invite_hub.main import app
from invite_hub.referrals.errors import CodeRedemptionError
from invite_hub.referrals.service import (
    CodeIssueResult,
    CodeValidationResult,
    RedemptionResult,
    ReferralOverview,
)
from tests.referrals.referrals_fixtures import FakeSessionLocal

INTERNAL_TOKEN = "internal-secret"


def _settings(allowlist: str = "127.0.0.1/32") -> SimpleNamespace:
    return SimpleNamespace(
        internal_api_token=INTERNAL_TOKEN,
        internal_api_allowlist=allowlist,
        internal_api_trusted_proxies="",
    )


async def _request(method: str, path: str, **kwargs: object):
    async with AsyncClient(
        transport=ASGITransport(app=app, client=("127.0.0.1", 8080)),
        base_url="http://testserver",
    ) as client:
        return await client.request(method, path, headers={"X-Internal-Token": INTERNAL_TOKEN}, **kwargs)


def test_internal_sweep_rejects_missing_token(monkeypatch) -> None:
    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())

    client = TestClient(app)
    response = client.post("/internal/referrals/sweep")

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_sweep_rejects_disallowed_ip(monkeypatch) -> None:
    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings("192.168.0.0/16"))

    client = TestClient(app)
    response = client.post(
        "/internal/referrals/sweep",
        headers={"X-Internal-Token": INTERNAL_TOKEN, "X-Forwarded-For": "10.0.0.25"},
    )

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


@pytest.mark.asyncio
async def test_internal_sweep_returns_summary(monkeypatch) -> None:
    summary = {
        "examined": 3,
        "due": 2,
        "credited": 1,
        "forfeited": 0,
        "capped": 1,
        "credit_failed": 0,
        "billing_identity_missing": 0,
        "skipped": 0,
        "data_errors": 0,
        "errors": 0,
    }

    async def fake_sweep() -> dict[str, int]:
        return dict(summary)

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "sweep_pending_rewards_async", fake_sweep)

    response = await _request("POST", "/internal/referrals/sweep")

    assert response.status_code == 200
    assert response.json() == summary


@pytest.mark.asyncio
async def test_internal_evaluate_runs_payment_hook(monkeypatch) -> None:
    member_id = uuid4()
    referral_id = uuid4()

    async def fake_hook(requested_member_id: UUID) -> dict[str, str]:
        assert requested_member_id == member_id
        return {
            "member_id": str(member_id),
            "qualification": "qualified",
            "referral_id": str(referral_id),
            "reward": "credited",
        }

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "on_payment_succeeded_async", fake_hook)

    response = await _request("POST", f"/internal/referrals/members/{member_id}/evaluate")

    assert response.status_code == 200
    assert response.json() == {
        "member_id": str(member_id),
        "qualification": "qualified",
        "referral_id": str(referral_id),
        "reward": "credited",
    }


@pytest.mark.asyncio
async def test_internal_member_referrals_overview(monkeypatch) -> None:
    member_id = uuid4()
    generated_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    async def fake_overview(session, *, member_id: UUID, now_utc: datetime) -> ReferralOverview | None:  # noqa: ARG001
        return ReferralOverview(
            member_id=member_id,
            referral_code="ANNA-7KQ2XZ",
            total_referrals=3,
            qualified_referrals=2,
            pending_referrals=1,
            rewards_earned_this_year=1,
            rewards_max_per_year=10,
            generated_at=generated_at,
            referrals=(),
        )

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_referrals.ReferralService, "get_referrer_overview", fake_overview)

    response = await _request("GET", f"/internal/members/{member_id}/referrals")

    assert response.status_code == 200
    payload = response.json()
    assert payload["referral_code"] == "ANNA-7KQ2XZ"
    assert payload["rewards_earned_this_year"] == 1
    assert payload["rewards_max_per_year"] == 10
    assert payload["referrals"] == []


@pytest.mark.asyncio
async def test_internal_member_referrals_returns_404_for_unknown_member(monkeypatch) -> None:
    async def fake_overview(session, **kwargs: object) -> None:  # noqa: ARG001
        return None

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_referrals.ReferralService, "get_referrer_overview", fake_overview)

    response = await _request("GET", f"/internal/members/{uuid4()}/referrals")

    assert response.status_code == 404
    assert response.json() == {"detail": {"code": "E_MEMBER_NOT_FOUND"}}


@pytest.mark.asyncio
async def test_internal_code_redeem_maps_rejection_to_400(monkeypatch) -> None:
    async def fake_redeem(session, **kwargs: object) -> RedemptionResult:  # noqa: ARG001
        assert kwargs["member_email"] == "anna@example.com"
        return RedemptionResult(success=False, error="Invalid or inactive code")

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_referrals.ReferralService, "redeem_invitation_code", fake_redeem)

    response = await _request(
        "POST",
        "/internal/codes/redeem",
        json={
            "code": "anna-7kq2xz",
            "product_slug": "notes",
            "member_email": "anna@example.com",
            "member_name": "Anna",
        },
    )

    assert response.status_code == 400
    assert response.json() == {
        "detail": {"code": "E_CODE_REJECTED", "message": "Invalid or inactive code"}
    }


@pytest.mark.asyncio
async def test_internal_code_redeem_maps_conflict_to_409(monkeypatch) -> None:
    async def fake_redeem(session, **kwargs: object) -> RedemptionResult:  # noqa: ARG001
        raise CodeRedemptionError("invitation code ANNA-7KQ2XZ could not be marked redeemed")

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_referrals.ReferralService, "redeem_invitation_code", fake_redeem)

    response = await _request(
        "POST",
        "/internal/codes/redeem",
        json={
            "code": "anna-7kq2xz",
            "product_slug": "notes",
            "member_email": "anna@example.com",
            "member_name": "Anna",
        },
    )

    assert response.status_code == 409
    assert response.json() == {"detail": {"code": "E_CODE_REDEEM_CONFLICT"}}


@pytest.mark.asyncio
async def test_internal_code_validate_reports_invalid_code_with_200(monkeypatch) -> None:
    async def fake_validate(session, **kwargs: object) -> CodeValidationResult:  # noqa: ARG001
        assert kwargs == {"code": "NOTES-ABCD2345", "product_slug": "notes"}
        return CodeValidationResult(valid=False, error="Code is redeemed")

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_referrals.ReferralService, "validate_invitation_code", fake_validate)

    response = await _request(
        "POST",
        "/internal/codes/validate",
        json={"code": "NOTES-ABCD2345", "product_slug": "notes"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "valid": False,
        "code_type": None,
        "trial_days": None,
        "issued_to_email": None,
        "error": "Code is redeemed",
    }


@pytest.mark.asyncio
async def test_internal_code_issue_returns_created_referral_code(monkeypatch) -> None:
    code_id = uuid4()
    referrer_id = uuid4()

    async def fake_issue(session, **kwargs: object) -> CodeIssueResult:  # noqa: ARG001
        assert kwargs["code_type"] == "referral"
        assert kwargs["referrer_code"] == "ANNA-7KQ2XZ"
        assert kwargs["issued_to_email"] == "friend@example.com"
        return CodeIssueResult(
            success=True,
            invitation_code_id=code_id,
            code="NOTES-ABCD2345",
            code_type="referral",
            generated_by_member_id=referrer_id,
        )

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_referrals.ReferralService, "issue_invitation_code", fake_issue)

    response = await _request(
        "POST",
        "/internal/codes",
        json={
            "product_slug": "notes",
            "code_type": "referral",
            "issued_to_email": "friend@example.com",
            "referrer_code": "ANNA-7KQ2XZ",
        },
    )

    assert response.status_code == 201
    assert response.json() == {
        "invitation_code_id": str(code_id),
        "code": "NOTES-ABCD2345",
        "code_type": "referral",
        "product_slug": "notes",
        "generated_by_member_id": str(referrer_id),
    }


@pytest.mark.asyncio
async def test_internal_code_issue_maps_rejection_to_400(monkeypatch) -> None:
    async def fake_issue(session, **kwargs: object) -> CodeIssueResult:  # noqa: ARG001
        return CodeIssueResult(success=False, error="Referrer is no longer active")

    monkeypatch.setattr(internal_access, "get_settings", lambda: _settings())
    monkeypatch.setattr(internal_referrals, "SessionLocal", FakeSessionLocal())
    monkeypatch.setattr(internal_referrals.ReferralService, "issue_invitation_code", fake_issue)

    response = await _request(
        "POST",
        "/internal/codes",
        json={"product_slug": "notes", "code_type": "referral", "referrer_code": "ANNA-7KQ2XZ"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "detail": {"code": "E_CODE_REJECTED", "message": "Referrer is no longer active"}
    }
