from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.db.repo.members_repo import MembersRepo
from invite_hub.db.repo.products_repo import ProductsRepo
from invite_hub.db.repo.referrals_repo import ReferralsRepo
from invite_hub.referrals.constants import (
    DEFAULT_REFERRAL_CAP_PER_YEAR,
    QUALIFICATION_PENDING,
    QUALIFICATION_QUALIFIED,
    RECENT_REFERRALS_LIMIT,
)

from .models import ReferralOverview


async def get_referrer_overview(
    session: AsyncSession,
    *,
    member_id: UUID,
    now_utc: datetime,
    limit: int = RECENT_REFERRALS_LIMIT,
) -> ReferralOverview | None:
    member = await MembersRepo.get_by_id(session, member_id)
    if member is None:
        return None

    product = await ProductsRepo.get_by_id(session, member.product_id)
    cap = product.referral_cap_per_year if product is not None else DEFAULT_REFERRAL_CAP_PER_YEAR

    total = await ReferralsRepo.count_for_referrer(session, referrer_member_id=member_id)
    qualified = await ReferralsRepo.count_for_referrer(
        session,
        referrer_member_id=member_id,
        qualification_status=QUALIFICATION_QUALIFIED,
    )
    pending = await ReferralsRepo.count_for_referrer(
        session,
        referrer_member_id=member_id,
        qualification_status=QUALIFICATION_PENDING,
    )
    rewards_this_year = await ReferralsRepo.count_credited_for_referrer_year(
        session,
        referrer_member_id=member_id,
        reward_year=now_utc.year,
    )
    referrals = await ReferralsRepo.list_recent_for_referrer(
        session,
        referrer_member_id=member_id,
        limit=limit,
    )
    return ReferralOverview(
        member_id=member.id,
        referral_code=member.referral_code,
        total_referrals=total,
        qualified_referrals=qualified,
        pending_referrals=pending,
        rewards_earned_this_year=rewards_this_year,
        rewards_max_per_year=cap,
        generated_at=now_utc,
        referrals=tuple(referrals),
    )
