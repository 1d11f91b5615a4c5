from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from invite_hub.core.referral_codes import generate_invitation_code
from invite_hub.db.models.invitation_codes import InvitationCode
from invite_hub.db.repo.invitation_codes_repo import InvitationCodesRepo
from invite_hub.db.repo.members_repo import MembersRepo
from invite_hub.db.repo.products_repo import ProductsRepo
from invite_hub.referrals.constants import (
    CODE_STATUS_ACTIVE,
    CODE_TYPE_REFERRAL,
    CODE_TYPE_SALES,
    CODE_TYPE_STANDARD,
    MEMBER_STATUS_ACTIVE,
)

from .models import CodeIssueResult, CodeValidationResult

logger = structlog.get_logger(__name__)
ISSUABLE_CODE_TYPES = frozenset({CODE_TYPE_STANDARD, CODE_TYPE_REFERRAL, CODE_TYPE_SALES})
MAX_CODE_ATTEMPTS = 10


def _invalid(reason: str, *, code: str) -> CodeValidationResult:
    logger.info("invitation_code_validation_failed", code=code, reason=reason)
    return CodeValidationResult(valid=False, error=reason)


def _issue_rejected(reason: str, *, product_slug: str, **context: object) -> CodeIssueResult:
    logger.info("invitation_code_issue_rejected", product_slug=product_slug, reason=reason, **context)
    return CodeIssueResult(success=False, error=reason)


async def _referrer_is_active(session: AsyncSession, member_id: UUID) -> bool:
    referrer = await MembersRepo.get_by_id(session, member_id)
    return referrer is not None and referrer.status == MEMBER_STATUS_ACTIVE


async def validate_invitation_code(
    session: AsyncSession,
    *,
    code: str,
    product_slug: str,
) -> CodeValidationResult:
    """Read-only pre-check of a code before the signup form is submitted."""
    normalized_code = code.strip().upper()

    invitation_code = await InvitationCodesRepo.get_by_code(session, normalized_code)
    if invitation_code is None:
        return _invalid("Code not found", code=normalized_code)
    if invitation_code.status != CODE_STATUS_ACTIVE:
        return _invalid(f"Code is {invitation_code.status}", code=normalized_code)

    product = await ProductsRepo.get_by_id(session, invitation_code.product_id)
    if product is None or product.slug != product_slug:
        return _invalid("Code is for a different product", code=normalized_code)

    if invitation_code.code_type == CODE_TYPE_REFERRAL and invitation_code.generated_by_member_id:
        if not await _referrer_is_active(session, invitation_code.generated_by_member_id):
            return _invalid("Referrer is no longer active", code=normalized_code)

    return CodeValidationResult(
        valid=True,
        code_type=invitation_code.code_type,
        trial_days=product.trial_days,
        issued_to_email=invitation_code.issued_to_email,
        product_slug=product.slug,
    )


async def _unique_invitation_code(session: AsyncSession, product_slug: str) -> str:
    for _ in range(MAX_CODE_ATTEMPTS):
        candidate = generate_invitation_code(product_slug)
        if await InvitationCodesRepo.get_by_code(session, candidate) is None:
            return candidate
    return generate_invitation_code(product_slug, length=12)


async def issue_invitation_code(
    session: AsyncSession,
    *,
    product_slug: str,
    now_utc: datetime,
    code_type: str = CODE_TYPE_STANDARD,
    issued_to_email: str | None = None,
    referrer_code: str | None = None,
) -> CodeIssueResult:
    """Create a single-use invitation code for a product.

    Referral codes are issued on behalf of an active member of the same
    product, identified by the member's shareable referral code; redeeming one
    creates the referral edge back to that member.
    """
    if code_type not in ISSUABLE_CODE_TYPES:
        return _issue_rejected("Unsupported code type", product_slug=product_slug, code_type=code_type)

    product = await ProductsRepo.get_by_slug(session, product_slug)
    if product is None:
        return _issue_rejected("Product not found", product_slug=product_slug)

    generated_by_member_id = None
    if code_type == CODE_TYPE_REFERRAL:
        if not referrer_code:
            return _issue_rejected("Referral codes need a referrer", product_slug=product_slug)
        normalized_referrer_code = referrer_code.strip().upper()
        referrer = await MembersRepo.get_by_referral_code(session, normalized_referrer_code)
        if referrer is None:
            return _issue_rejected(
                "Referrer not found",
                product_slug=product_slug,
                referrer_code=normalized_referrer_code,
            )
        if referrer.product_id != product.id:
            return _issue_rejected(
                "Referrer belongs to a different product",
                product_slug=product_slug,
                referrer_member_id=str(referrer.id),
            )
        if referrer.status != MEMBER_STATUS_ACTIVE:
            return _issue_rejected(
                "Referrer is no longer active",
                product_slug=product_slug,
                referrer_member_id=str(referrer.id),
            )
        generated_by_member_id = referrer.id
    elif referrer_code:
        return _issue_rejected(
            "Only referral codes carry a referrer",
            product_slug=product_slug,
            code_type=code_type,
        )

    invitation_code = await InvitationCodesRepo.create(
        session,
        invitation_code=InvitationCode(
            id=uuid4(),
            product_id=product.id,
            code=await _unique_invitation_code(session, product.slug),
            code_type=code_type,
            status=CODE_STATUS_ACTIVE,
            issued_to_email=issued_to_email.strip().lower() if issued_to_email else None,
            generated_by_member_id=generated_by_member_id,
            created_at=now_utc,
        ),
    )
    logger.info(
        "invitation_code_issued",
        code=invitation_code.code,
        code_type=code_type,
        product_slug=product.slug,
        generated_by_member_id=str(generated_by_member_id) if generated_by_member_id else None,
    )
    return CodeIssueResult(
        success=True,
        invitation_code_id=invitation_code.id,
        code=invitation_code.code,
        code_type=code_type,
        generated_by_member_id=generated_by_member_id,
    )
