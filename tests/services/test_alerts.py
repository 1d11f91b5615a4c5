from __future__ import annotations

from types import SimpleNamespace
from typing import Any

import pytest

from invite_hub.services import alerts


class _Response:
    def raise_for_status(self) -> None:
        return None


class _Client:
    def __init__(self, calls: list[dict[str, Any]], *, fail_urls: set[str] | None = None) -> None:
        self._calls = calls
        self._fail_urls = fail_urls or set()

    async def __aenter__(self) -> "_Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        return None

    async def post(self, url: str, json: dict[str, object]) -> _Response:
        self._calls.append({"url": url, "json": json})
        if url in self._fail_urls:
            raise RuntimeError("delivery failed")
        return _Response()


def _settings(**overrides: object) -> SimpleNamespace:
    base = {
        "app_env": "test",
        "ops_alert_webhook_url": "",
        "ops_alert_slack_webhook_url": "",
    }
    base.update(overrides)
    return SimpleNamespace(**base)


def _patch_http_client(
    monkeypatch: pytest.MonkeyPatch,
    calls: list[dict[str, Any]],
    *,
    fail_urls: set[str] | None = None,
) -> None:
    def factory(timeout: float) -> _Client:  # noqa: ARG001
        return _Client(calls, fail_urls=fail_urls)

    monkeypatch.setattr(alerts.httpx, "AsyncClient", factory)


@pytest.mark.asyncio
async def test_send_ops_alert_returns_false_when_no_targets_configured(monkeypatch) -> None:
    monkeypatch.setattr(alerts, "get_settings", lambda: _settings())
    sent = await alerts.send_ops_alert(event="referral_record_missing", payload={"member_id": "m"})
    assert sent is False


@pytest.mark.asyncio
async def test_send_ops_alert_posts_unknown_event_to_generic_webhook(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(
            ops_alert_webhook_url="https://ops.example.local/hook",
            ops_alert_slack_webhook_url="https://slack.example.local/hook",
        ),
    )
    _patch_http_client(monkeypatch, calls)

    sent = await alerts.send_ops_alert(event="something_new", payload={"count": 2})

    assert sent is True
    assert len(calls) == 1
    assert calls[0]["url"] == "https://ops.example.local/hook"
    body = calls[0]["json"]
    assert body["event"] == "something_new"
    assert body["severity"] == "warning"
    assert body["environment"] == "test"
    assert body["payload"] == {"count": 2}


@pytest.mark.asyncio
async def test_send_ops_alert_routes_credit_failure_to_slack_and_generic(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(
            ops_alert_webhook_url="https://ops.example.local/hook",
            ops_alert_slack_webhook_url="https://slack.example.local/hook",
        ),
    )
    _patch_http_client(monkeypatch, calls)

    sent = await alerts.send_ops_alert(
        event="referral_reward_credit_failed",
        payload={"referral_id": "r1", "reward": "credit_failed"},
    )

    assert sent is True
    assert [call["url"] for call in calls] == [
        "https://slack.example.local/hook",
        "https://ops.example.local/hook",
    ]
    assert calls[0]["json"]["text"] == "[ERROR] referral_reward_credit_failed"
    assert calls[1]["json"]["severity"] == "error"


@pytest.mark.asyncio
async def test_send_ops_alert_returns_true_when_one_provider_fails(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(
            ops_alert_webhook_url="https://ops.example.local/hook",
            ops_alert_slack_webhook_url="https://slack.example.local/hook",
        ),
    )
    _patch_http_client(monkeypatch, calls, fail_urls={"https://slack.example.local/hook"})

    sent = await alerts.send_ops_alert(event="referral_reward_sweep_attention_required", payload={"errors": 1})

    assert sent is True
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_send_ops_alert_returns_false_when_all_providers_fail(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(
        alerts,
        "get_settings",
        lambda: _settings(ops_alert_webhook_url="https://ops.example.local/hook"),
    )
    _patch_http_client(monkeypatch, calls, fail_urls={"https://ops.example.local/hook"})

    sent = await alerts.send_ops_alert(event="referral_record_missing", payload={"member_id": "m"})

    assert sent is False
