from __future__ import annotations

from datetime import datetime, timedelta
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.core.referral_codes import generate_member_referral_code
from invite_hub.db.models.members import Member
from invite_hub.db.models.referrals import Referral
from invite_hub.db.repo.invitation_codes_repo import InvitationCodesRepo
from invite_hub.db.repo.members_repo import MembersRepo
from invite_hub.db.repo.products_repo import ProductsRepo
from invite_hub.db.repo.referrals_repo import ReferralsRepo
from invite_hub.referrals.constants import (
    CODE_STATUS_ACTIVE,
    CODE_TYPE_REFERRAL,
    MEMBER_STATUS_ACTIVE,
    MEMBER_STATUS_TRIAL,
    QUALIFICATION_PENDING,
    REWARD_PENDING,
)
from invite_hub.referrals.errors import CodeRedemptionError

from .models import RedemptionResult

logger = structlog.get_logger(__name__)
MAX_REFERRAL_CODE_ATTEMPTS = 10


def _rejected(reason: str, *, code: str, **context: object) -> RedemptionResult:
    logger.info("invitation_code_redeem_rejected", code=code, reason=reason, **context)
    return RedemptionResult(success=False, error=reason)


async def _unique_member_referral_code(session: AsyncSession, member_name: str) -> str:
    for _ in range(MAX_REFERRAL_CODE_ATTEMPTS):
        candidate = generate_member_referral_code(member_name)
        if await MembersRepo.get_by_referral_code(session, candidate) is None:
            return candidate
    return generate_member_referral_code(member_name, length=10)


async def redeem_invitation_code(
    session: AsyncSession,
    *,
    code: str,
    product_slug: str,
    member_email: str,
    member_name: str,
    stripe_customer_id: str | None,
    now_utc: datetime,
) -> RedemptionResult:
    """Create a trial member from an invitation code.

    Referral codes also create the referral edge, bucketed into the
    redemption's calendar year for cap accounting.
    """
    normalized_code = code.strip().upper()
    normalized_email = member_email.strip().lower()

    invitation_code = await InvitationCodesRepo.get_by_code_for_update(session, normalized_code)
    if invitation_code is None or invitation_code.status != CODE_STATUS_ACTIVE:
        return _rejected("Invalid or inactive code", code=normalized_code)

    product = await ProductsRepo.get_by_id(session, invitation_code.product_id)
    if product is None or product.slug != product_slug:
        return _rejected(
            "Code is for a different product",
            code=normalized_code,
            product_slug=product_slug,
        )

    if (
        invitation_code.issued_to_email
        and invitation_code.issued_to_email.lower() != normalized_email
    ):
        return _rejected("Code was issued to a different email address", code=normalized_code)

    existing = await MembersRepo.get_by_product_and_email(
        session,
        product_id=product.id,
        email=normalized_email,
    )
    if existing is not None:
        return _rejected("Member already exists for this product", code=normalized_code)

    referrer_member_id = None
    if invitation_code.code_type == CODE_TYPE_REFERRAL:
        if invitation_code.generated_by_member_id is None:
            return _rejected("Referral code has no referrer", code=normalized_code)
        referrer = await MembersRepo.get_by_id(session, invitation_code.generated_by_member_id)
        if referrer is None or referrer.status != MEMBER_STATUS_ACTIVE:
            return _rejected(
                "Referrer is no longer active",
                code=normalized_code,
                referrer_member_id=str(invitation_code.generated_by_member_id),
            )
        referrer_member_id = referrer.id

    member = await MembersRepo.create(
        session,
        member=Member(
            id=uuid4(),
            product_id=product.id,
            email=normalized_email,
            name=member_name,
            invitation_code_id=invitation_code.id,
            referred_by_member_id=referrer_member_id,
            referral_code=await _unique_member_referral_code(session, member_name),
            stripe_customer_id=stripe_customer_id,
            trial_ends_at=now_utc + timedelta(days=product.trial_days),
            status=MEMBER_STATUS_TRIAL,
            created_at=now_utc,
            updated_at=now_utc,
        ),
    )

    redeemed = await InvitationCodesRepo.mark_redeemed(
        session,
        invitation_code_id=invitation_code.id,
        redeemed_by_member_id=member.id,
        redeemed_at=now_utc,
    )
    if not redeemed:
        raise CodeRedemptionError(f"invitation code {normalized_code} could not be marked redeemed")

    referral_id = None
    if referrer_member_id is not None:
        referral = await ReferralsRepo.create(
            session,
            referral=Referral(
                id=uuid4(),
                product_id=product.id,
                referrer_member_id=referrer_member_id,
                referred_member_id=member.id,
                referral_code_used=normalized_code,
                qualification_status=QUALIFICATION_PENDING,
                reward_status=REWARD_PENDING,
                reward_year=now_utc.year,
                created_at=now_utc,
                updated_at=now_utc,
            ),
        )
        referral_id = referral.id

    logger.info(
        "invitation_code_redeemed",
        code=normalized_code,
        member_id=str(member.id),
        product_slug=product.slug,
        referral_id=str(referral_id) if referral_id is not None else None,
    )
    return RedemptionResult(
        success=True,
        member_id=member.id,
        referral_code=member.referral_code,
        referral_id=referral_id,
    )
