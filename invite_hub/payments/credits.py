from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Protocol

import stripe
import structlog

from invite_hub.core.config import get_settings
from invite_hub.referrals.errors import CreditGatewayError, CreditGatewayNotConfiguredError

logger = structlog.get_logger(__name__)


class CreditGateway(Protocol):
    async def apply_credit(
        self,
        *,
        product_slug: str,
        customer_id: str,
        amount_minor: int,
        description: str,
        idempotency_key: str,
    ) -> bool: ...


class StripeCreditGateway:
    """Posts referral credits as negative invoice items on the customer's next invoice.

    Each product bills through its own Stripe account, so the secret key is
    resolved per product slug. The call never raises; every failure comes back as
    ``False`` so the caller can leave the reward pending for the next sweep.
    """

    def __init__(
        self,
        *,
        secret_keys: dict[str, str],
        currency: str = "usd",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._secret_keys = {slug.lower(): key for slug, key in secret_keys.items()}
        self._currency = currency.lower()
        self._timeout_seconds = timeout_seconds

    def secret_key_for(self, product_slug: str) -> str | None:
        key = self._secret_keys.get(product_slug.lower(), "").strip()
        return key or None

    async def _create_credit_item(
        self,
        *,
        product_slug: str,
        customer_id: str,
        amount_minor: int,
        description: str,
        idempotency_key: str,
    ) -> str | None:
        api_key = self.secret_key_for(product_slug)
        if api_key is None:
            raise CreditGatewayNotConfiguredError(f"no Stripe secret key for product {product_slug!r}")

        try:
            invoice_item = await asyncio.wait_for(
                stripe.InvoiceItem.create_async(
                    api_key=api_key,
                    idempotency_key=idempotency_key,
                    customer=customer_id,
                    amount=-amount_minor,
                    currency=self._currency,
                    description=description,
                    metadata={"idempotency_key": idempotency_key},
                ),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise CreditGatewayError(f"Stripe did not answer within {self._timeout_seconds}s") from exc
        except stripe.StripeError as exc:
            raise CreditGatewayError(f"Stripe rejected the credit: {type(exc).__name__}") from exc
        return getattr(invoice_item, "id", None)

    async def apply_credit(
        self,
        *,
        product_slug: str,
        customer_id: str,
        amount_minor: int,
        description: str,
        idempotency_key: str,
    ) -> bool:
        if amount_minor <= 0:
            logger.error(
                "stripe_credit_invalid_amount",
                product_slug=product_slug,
                amount_minor=amount_minor,
            )
            return False

        try:
            invoice_item_id = await self._create_credit_item(
                product_slug=product_slug,
                customer_id=customer_id,
                amount_minor=amount_minor,
                description=description,
                idempotency_key=idempotency_key,
            )
        except CreditGatewayNotConfiguredError:
            logger.error("stripe_credit_not_configured", product_slug=product_slug)
            return False
        except CreditGatewayError as exc:
            logger.warning(
                "stripe_credit_failed",
                product_slug=product_slug,
                customer_id=customer_id,
                error=str(exc),
                error_type=type(exc.__cause__).__name__ if exc.__cause__ is not None else None,
            )
            return False

        logger.info(
            "stripe_credit_applied",
            product_slug=product_slug,
            customer_id=customer_id,
            amount_minor=amount_minor,
            invoice_item_id=invoice_item_id,
        )
        return True


@lru_cache(maxsize=1)
def get_credit_gateway() -> StripeCreditGateway:
    settings = get_settings()
    return StripeCreditGateway(
        secret_keys=settings.stripe_secret_keys,
        currency=settings.stripe_credit_currency,
        timeout_seconds=settings.stripe_timeout_seconds,
    )
