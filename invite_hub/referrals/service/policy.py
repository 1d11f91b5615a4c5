from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from invite_hub.db.models.products import Product
from invite_hub.referrals.constants import (
    DEFAULT_MONTHLY_PRICE,
    MINOR_UNITS_PER_MAJOR,
    REWARD_IDEMPOTENCY_KEY_PREFIX,
)


def qualification_date(*, first_paid_at: datetime, qualification_days: int) -> datetime:
    return first_paid_at + timedelta(days=qualification_days)


def reward_date(*, qualified_at: datetime, chargeback_buffer_days: int) -> datetime:
    return qualified_at + timedelta(days=chargeback_buffer_days)


def is_qualification_due(
    *,
    first_paid_at: datetime | None,
    qualification_days: int,
    now_utc: datetime,
) -> bool:
    if first_paid_at is None:
        return False
    return now_utc >= qualification_date(
        first_paid_at=first_paid_at,
        qualification_days=qualification_days,
    )


def is_reward_due(
    *,
    qualified_at: datetime | None,
    chargeback_buffer_days: int,
    now_utc: datetime,
) -> bool:
    if qualified_at is None:
        return False
    return now_utc >= reward_date(
        qualified_at=qualified_at,
        chargeback_buffer_days=chargeback_buffer_days,
    )


def _monthly_price(config: dict[str, object] | None) -> Decimal:
    raw_price = (config or {}).get("monthly_price")
    if raw_price is None or isinstance(raw_price, bool):
        return DEFAULT_MONTHLY_PRICE
    try:
        price = Decimal(str(raw_price))
    except InvalidOperation:
        return DEFAULT_MONTHLY_PRICE
    return price if price > 0 else DEFAULT_MONTHLY_PRICE


def reward_amount_minor(product: Product) -> int:
    monthly_minor = (_monthly_price(product.config) * MINOR_UNITS_PER_MAJOR).quantize(
        Decimal("1"),
        rounding=ROUND_HALF_UP,
    )
    return int(monthly_minor) * max(1, int(product.referral_reward_months))


def reward_description(product: Product) -> str:
    months = max(1, int(product.referral_reward_months))
    suffix = "month" if months == 1 else "months"
    return f"Referral reward - {months} free {suffix}"


def reward_idempotency_key(referral_id: object) -> str:
    return f"{REWARD_IDEMPOTENCY_KEY_PREFIX}:{referral_id}"
