from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.models.members import Member
from invite_hub.db.models.products import Product
from invite_hub.db.repo.members_repo import MembersRepo
from invite_hub.referrals.constants import (
    MEMBER_STATUS_ACTIVE,
    MEMBER_STATUS_CHURNED,
    MEMBER_STATUS_SUSPENDED,
    MEMBER_STATUS_TRIAL,
)

logger = structlog.get_logger(__name__)

SUBSCRIPTION_STATUS_TO_MEMBER_STATUS = {
    "trialing": MEMBER_STATUS_TRIAL,
    "active": MEMBER_STATUS_ACTIVE,
    "canceled": MEMBER_STATUS_CHURNED,
    "unpaid": MEMBER_STATUS_CHURNED,
    "past_due": MEMBER_STATUS_SUSPENDED,
}
SUBSCRIPTION_BILLING_REASONS = frozenset(
    {
        "subscription_cycle",
        "subscription_create",
        "subscription_update",
    }
)
SUBSCRIPTION_EVENT_TYPES = frozenset(
    {
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    }
)


@dataclass(frozen=True, slots=True)
class WebhookHandlingResult:
    outcome: str
    member_id: UUID | None = None
    check_referral: bool = False


def _customer_id(data_object: Mapping[str, Any]) -> str | None:
    customer = data_object.get("customer")
    if isinstance(customer, Mapping):
        customer = customer.get("id")
    if isinstance(customer, str) and customer:
        return customer
    return None


def _timestamp_to_datetime(value: object) -> datetime | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


async def _locate_member(
    session: AsyncSession,
    *,
    product: Product,
    data_object: Mapping[str, Any],
    event_type: str,
) -> Member | None:
    customer_id = _customer_id(data_object)
    if customer_id is None:
        logger.warning("stripe_webhook_customer_missing", event_type=event_type, product_slug=product.slug)
        return None
    member = await MembersRepo.get_by_stripe_customer_for_update(
        session,
        product_id=product.id,
        stripe_customer_id=customer_id,
    )
    if member is None:
        logger.info(
            "stripe_webhook_member_not_found",
            event_type=event_type,
            product_slug=product.slug,
            stripe_customer_id=customer_id,
        )
    return member


async def apply_subscription_event(
    session: AsyncSession,
    *,
    product: Product,
    event_type: str,
    subscription: Mapping[str, Any],
    now_utc: datetime,
) -> WebhookHandlingResult:
    member = await _locate_member(session, product=product, data_object=subscription, event_type=event_type)
    if member is None:
        return WebhookHandlingResult(outcome="member_not_found")

    trial_ends_at: datetime | None = None
    if event_type == "customer.subscription.deleted":
        status = MEMBER_STATUS_CHURNED
    elif event_type == "customer.subscription.created":
        status = MEMBER_STATUS_TRIAL if subscription.get("status") == "trialing" else MEMBER_STATUS_ACTIVE
        trial_ends_at = _timestamp_to_datetime(subscription.get("trial_end"))
    else:
        status = SUBSCRIPTION_STATUS_TO_MEMBER_STATUS.get(
            str(subscription.get("status") or ""),
            member.status,
        )

    await MembersRepo.set_status(
        session,
        member_id=member.id,
        status=status,
        now_utc=now_utc,
        trial_ends_at=trial_ends_at,
    )
    logger.info(
        "member_subscription_status_synced",
        member_id=str(member.id),
        event_type=event_type,
        previous_status=member.status,
        status=status,
    )
    return WebhookHandlingResult(outcome="status_synced", member_id=member.id)


async def apply_payment_succeeded(
    session: AsyncSession,
    *,
    product: Product,
    invoice: Mapping[str, Any],
    now_utc: datetime,
) -> WebhookHandlingResult:
    """Record a paid subscription invoice on the member.

    ``first_paid_at`` is written only when still empty, a trial member becomes
    active, and the caller re-checks the referral after the commit.
    """
    if invoice.get("billing_reason") not in SUBSCRIPTION_BILLING_REASONS:
        return WebhookHandlingResult(outcome="not_subscription_invoice")

    member = await _locate_member(
        session,
        product=product,
        data_object=invoice,
        event_type="invoice.payment_succeeded",
    )
    if member is None:
        return WebhookHandlingResult(outcome="member_not_found")

    first_payment = await MembersRepo.set_first_paid_at_once(
        session,
        member_id=member.id,
        paid_at=now_utc,
    )
    if member.status == MEMBER_STATUS_TRIAL:
        await MembersRepo.set_status(
            session,
            member_id=member.id,
            status=MEMBER_STATUS_ACTIVE,
            now_utc=now_utc,
        )

    logger.info(
        "member_payment_recorded",
        member_id=str(member.id),
        invoice_id=invoice.get("id"),
        first_payment=first_payment,
    )
    return WebhookHandlingResult(outcome="payment_recorded", member_id=member.id, check_referral=True)


async def apply_payment_failed(
    session: AsyncSession,
    *,
    product: Product,
    invoice: Mapping[str, Any],
) -> WebhookHandlingResult:
    member = await _locate_member(
        session,
        product=product,
        data_object=invoice,
        event_type="invoice.payment_failed",
    )
    if member is None:
        return WebhookHandlingResult(outcome="member_not_found")

    logger.warning(
        "member_payment_failed",
        member_id=str(member.id),
        invoice_id=invoice.get("id"),
    )
    return WebhookHandlingResult(outcome="payment_failed_logged", member_id=member.id)


async def handle_stripe_event(
    session: AsyncSession,
    *,
    product: Product,
    event_type: str,
    data_object: Mapping[str, Any],
    now_utc: datetime,
) -> WebhookHandlingResult:
    if event_type in SUBSCRIPTION_EVENT_TYPES:
        return await apply_subscription_event(
            session,
            product=product,
            event_type=event_type,
            subscription=data_object,
            now_utc=now_utc,
        )
    if event_type == "invoice.payment_succeeded":
        return await apply_payment_succeeded(session, product=product, invoice=data_object, now_utc=now_utc)
    if event_type == "invoice.payment_failed":
        return await apply_payment_failed(session, product=product, invoice=data_object)

    logger.info("stripe_webhook_event_unhandled", event_type=event_type, product_slug=product.slug)
    return WebhookHandlingResult(outcome="ignored")
