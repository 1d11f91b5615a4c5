from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.repo.members_repo import MembersRepo
from invite_hub.db.repo.products_repo import ProductsRepo
from invite_hub.db.repo.referrals_repo import ReferralsRepo
from invite_hub.referrals.constants import QUALIFICATION_PENDING, QUALIFICATION_QUALIFIED

from .models import QualificationResult
from .policy import is_qualification_due, is_reward_due

logger = structlog.get_logger(__name__)


async def qualify_member_referral(
    session: AsyncSession,
    *,
    member_id: UUID,
    now_utc: datetime,
) -> QualificationResult:
    """Move the referral of a paying referred member from pending to qualified.

    Only the qualification write happens here; the caller commits it before any
    reward attempt and uses ``reward_due`` to decide whether to disburse right away.
    """
    member = await MembersRepo.get_by_id(session, member_id)
    if member is None:
        return QualificationResult(outcome="member_missing")
    if member.referred_by_member_id is None:
        return QualificationResult(outcome="not_referred")
    if member.first_paid_at is None:
        return QualificationResult(outcome="not_paid")

    product = await ProductsRepo.get_by_id(session, member.product_id)
    if product is None:
        logger.error(
            "referral_product_missing",
            member_id=str(member_id),
            product_id=str(member.product_id),
        )
        return QualificationResult(outcome="product_missing")

    if not is_qualification_due(
        first_paid_at=member.first_paid_at,
        qualification_days=product.referral_qualification_days,
        now_utc=now_utc,
    ):
        return QualificationResult(outcome="not_due")

    referral = await ReferralsRepo.get_by_referred_member_id_for_update(
        session,
        referred_member_id=member_id,
    )
    if referral is None or referral.referrer_member_id != member.referred_by_member_id:
        logger.error(
            "referral_record_missing",
            member_id=str(member_id),
            referred_by_member_id=str(member.referred_by_member_id),
        )
        return QualificationResult(outcome="referral_missing")

    if referral.qualification_status == QUALIFICATION_QUALIFIED:
        return QualificationResult(outcome="already_qualified", referral_id=referral.id)
    if referral.qualification_status != QUALIFICATION_PENDING:
        return QualificationResult(outcome="not_pending", referral_id=referral.id)

    transitioned = await ReferralsRepo.transition_qualification(
        session,
        referral_id=referral.id,
        from_status=QUALIFICATION_PENDING,
        to_status=QUALIFICATION_QUALIFIED,
        now_utc=now_utc,
    )
    if not transitioned:
        return QualificationResult(outcome="already_qualified", referral_id=referral.id)

    reward_due = is_reward_due(
        qualified_at=now_utc,
        chargeback_buffer_days=product.referral_chargeback_buffer_days,
        now_utc=now_utc,
    )
    logger.info(
        "referral_qualified",
        referral_id=str(referral.id),
        member_id=str(member_id),
        referrer_member_id=str(referral.referrer_member_id),
        reward_due=reward_due,
    )
    return QualificationResult(
        outcome="qualified",
        referral_id=referral.id,
        reward_due=reward_due,
    )
