from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.repo.members_repo import MembersRepo
from invite_hub.db.repo.products_repo import ProductsRepo
from invite_hub.db.repo.referrals_repo import ReferralsRepo
from invite_hub.payments.credits import CreditGateway
from invite_hub.referrals.constants import (
    MEMBER_STATUS_ACTIVE,
    QUALIFICATION_QUALIFIED,
    REWARD_CAPPED,
    REWARD_CREDITED,
    REWARD_FORFEITED,
)
from invite_hub.referrals.states import is_reward_terminal

from .models import DisbursementResult
from .policy import (
    is_reward_due,
    reward_amount_minor,
    reward_description,
    reward_idempotency_key,
)

logger = structlog.get_logger(__name__)


async def _settle(
    session: AsyncSession,
    *,
    referral_id: UUID,
    referrer_member_id: UUID,
    to_status: str,
    now_utc: datetime,
) -> DisbursementResult:
    transitioned = await ReferralsRepo.transition_reward(
        session,
        referral_id=referral_id,
        to_status=to_status,
        now_utc=now_utc,
    )
    if not transitioned:
        return DisbursementResult(
            outcome="already_settled",
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
        )
    logger.info(
        "referral_reward_settled",
        referral_id=str(referral_id),
        referrer_member_id=str(referrer_member_id),
        reward_status=to_status,
    )
    return DisbursementResult(
        outcome=to_status,
        referral_id=referral_id,
        referrer_member_id=referrer_member_id,
    )


async def disburse_referral_reward(
    session: AsyncSession,
    *,
    referral_id: UUID,
    now_utc: datetime,
    gateway: CreditGateway,
) -> DisbursementResult:
    """Settle the reward of one qualified referral.

    The referrer's member row is locked before the cap count and stays locked
    until the caller commits, so disbursements for the same referrer run one at
    a time. The credited write only happens after the gateway confirms; any
    gateway failure leaves the reward pending for the next sweep.
    """
    referrer_member_id = await ReferralsRepo.get_referrer_id(session, referral_id=referral_id)
    if referrer_member_id is None:
        logger.error("referral_reward_referral_missing", referral_id=str(referral_id))
        return DisbursementResult(outcome="referral_missing", referral_id=referral_id)

    referrer = await MembersRepo.get_by_id_for_update(session, referrer_member_id)
    referral = await ReferralsRepo.get_by_id_for_update(session, referral_id=referral_id)
    if referral is None:
        return DisbursementResult(outcome="referral_missing", referral_id=referral_id)

    if is_reward_terminal(referral.reward_status):
        return DisbursementResult(
            outcome="already_settled",
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
        )
    if referral.qualification_status != QUALIFICATION_QUALIFIED:
        return DisbursementResult(
            outcome="not_qualified",
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
        )

    # Forfeiture does not wait for the chargeback buffer.
    if referrer is None or referrer.status != MEMBER_STATUS_ACTIVE:
        return await _settle(
            session,
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
            to_status=REWARD_FORFEITED,
            now_utc=now_utc,
        )

    product = await ProductsRepo.get_by_id(session, referral.product_id)
    if product is None:
        logger.error(
            "referral_product_missing",
            referral_id=str(referral_id),
            product_id=str(referral.product_id),
        )
        return DisbursementResult(
            outcome="product_missing",
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
        )

    if not is_reward_due(
        qualified_at=referral.qualified_at,
        chargeback_buffer_days=product.referral_chargeback_buffer_days,
        now_utc=now_utc,
    ):
        return DisbursementResult(
            outcome="not_due",
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
        )

    credited_this_year = await ReferralsRepo.count_credited_for_referrer_year(
        session,
        referrer_member_id=referrer_member_id,
        reward_year=referral.reward_year,
    )
    if credited_this_year >= product.referral_cap_per_year:
        return await _settle(
            session,
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
            to_status=REWARD_CAPPED,
            now_utc=now_utc,
        )

    if not referrer.stripe_customer_id:
        logger.warning(
            "referral_reward_billing_identity_missing",
            referral_id=str(referral_id),
            referrer_member_id=str(referrer_member_id),
        )
        return DisbursementResult(
            outcome="billing_identity_missing",
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
        )

    amount_minor = reward_amount_minor(product)
    applied = await gateway.apply_credit(
        product_slug=product.slug,
        customer_id=referrer.stripe_customer_id,
        amount_minor=amount_minor,
        description=reward_description(product),
        idempotency_key=reward_idempotency_key(referral_id),
    )
    if not applied:
        logger.warning(
            "referral_reward_credit_failed",
            referral_id=str(referral_id),
            referrer_member_id=str(referrer_member_id),
            amount_minor=amount_minor,
        )
        return DisbursementResult(
            outcome="credit_failed",
            referral_id=referral_id,
            referrer_member_id=referrer_member_id,
            amount_minor=amount_minor,
        )

    result = await _settle(
        session,
        referral_id=referral_id,
        referrer_member_id=referrer_member_id,
        to_status=REWARD_CREDITED,
        now_utc=now_utc,
    )
    if result.outcome != REWARD_CREDITED:
        logger.error(
            "referral_reward_credited_without_transition",
            referral_id=str(referral_id),
            referrer_member_id=str(referrer_member_id),
        )
    return DisbursementResult(
        outcome=result.outcome,
        referral_id=referral_id,
        referrer_member_id=referrer_member_id,
        amount_minor=amount_minor,
    )
