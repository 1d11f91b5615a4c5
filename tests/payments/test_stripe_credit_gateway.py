from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

import pytest
import stripe

from invite_hub.payments.credits import StripeCreditGateway


def _gateway(**overrides: Any) -> StripeCreditGateway:
    values: dict[str, Any] = {
        "secret_keys": {"Notes": "sk_test_notes"},
        "currency": "USD",
        "timeout_seconds": 1.0,
    }
    values.update(overrides)
    return StripeCreditGateway(**values)


async def _apply(gateway: StripeCreditGateway, **overrides: Any) -> bool:
    params: dict[str, Any] = {
        "product_slug": "notes",
        "customer_id": "cus_123",
        "amount_minor": 2500,
        "description": "Referral reward - 1 free month",
        "idempotency_key": "referral-reward:abc",
    }
    params.update(overrides)
    return await gateway.apply_credit(**params)


@pytest.mark.asyncio
async def test_apply_credit_posts_negative_invoice_item(monkeypatch) -> None:
    calls: list[dict[str, Any]] = []

    async def fake_create_async(**params: Any) -> SimpleNamespace:
        calls.append(params)
        return SimpleNamespace(id="ii_1")

    monkeypatch.setattr(stripe.InvoiceItem, "create_async", fake_create_async)

    applied = await _apply(_gateway())

    assert applied is True
    assert calls == [
        {
            "api_key": "sk_test_notes",
            "idempotency_key": "referral-reward:abc",
            "customer": "cus_123",
            "amount": -2500,
            "currency": "usd",
            "description": "Referral reward - 1 free month",
            "metadata": {"idempotency_key": "referral-reward:abc"},
        }
    ]


@pytest.mark.asyncio
async def test_apply_credit_returns_false_without_product_key(monkeypatch) -> None:
    async def fail_create_async(**params: Any) -> None:
        raise AssertionError("stripe must not be called")

    monkeypatch.setattr(stripe.InvoiceItem, "create_async", fail_create_async)

    assert await _apply(_gateway(), product_slug="unknown") is False
    assert await _apply(_gateway(secret_keys={"notes": "  "})) is False


@pytest.mark.asyncio
async def test_apply_credit_rejects_non_positive_amount(monkeypatch) -> None:
    async def fail_create_async(**params: Any) -> None:
        raise AssertionError("stripe must not be called")

    monkeypatch.setattr(stripe.InvoiceItem, "create_async", fail_create_async)

    assert await _apply(_gateway(), amount_minor=0) is False


@pytest.mark.asyncio
async def test_apply_credit_returns_false_on_stripe_error(monkeypatch) -> None:
    async def failing_create_async(**params: Any) -> None:
        raise stripe.APIConnectionError("network down")

    monkeypatch.setattr(stripe.InvoiceItem, "create_async", failing_create_async)

    assert await _apply(_gateway()) is False


@pytest.mark.asyncio
async def test_apply_credit_returns_false_on_timeout(monkeypatch) -> None:
    async def slow_create_async(**params: Any) -> None:
        await asyncio.sleep(1.0)

    monkeypatch.setattr(stripe.InvoiceItem, "create_async", slow_create_async)

    assert await _apply(_gateway(timeout_seconds=0.01)) is False
