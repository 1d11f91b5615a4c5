from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, Request

from invite_hub.db.session import SessionLocal
from invite_hub.referrals.errors import CodeRedemptionError
from invite_hub.referrals.service import ReferralOverview, ReferralService
from invite_hub.workers.tasks.referrals import (
    on_payment_succeeded_async,
    sweep_pending_rewards_async,
)

from .internal_access import assert_internal_access
from .internal_referrals_models import (
    CodeIssueRequest,
    CodeIssueResponse,
    CodeRedeemRequest,
    CodeRedeemResponse,
    CodeValidateRequest,
    CodeValidateResponse,
    MemberReferralCheckResponse,
    MemberReferralsResponse,
    ReferralItemResponse,
    ReferralSweepResponse,
    ReferredMemberResponse,
)

router = APIRouter(tags=["internal", "referrals"])
logger = structlog.get_logger(__name__)


def _as_overview_response(overview: ReferralOverview) -> MemberReferralsResponse:
    return MemberReferralsResponse(
        member_id=overview.member_id,
        referral_code=overview.referral_code,
        total_referrals=overview.total_referrals,
        qualified_referrals=overview.qualified_referrals,
        pending_referrals=overview.pending_referrals,
        rewards_earned_this_year=overview.rewards_earned_this_year,
        rewards_max_per_year=overview.rewards_max_per_year,
        generated_at=overview.generated_at,
        referrals=[
            ReferralItemResponse(
                referral_id=item.referral_id,
                qualification_status=item.qualification_status,
                qualified_at=item.qualified_at,
                reward_status=item.reward_status,
                reward_credited_at=item.reward_credited_at,
                created_at=item.created_at,
                referred_member=ReferredMemberResponse(
                    name=item.referred_name,
                    email=item.referred_email,
                    status=item.referred_status,
                ),
            )
            for item in overview.referrals
        ],
    )


@router.post("/internal/referrals/sweep", response_model=ReferralSweepResponse)
async def run_referral_reward_sweep(request: Request) -> ReferralSweepResponse:
    assert_internal_access(request)
    summary = await sweep_pending_rewards_async()
    return ReferralSweepResponse(**summary)


@router.post(
    "/internal/referrals/members/{member_id}/evaluate",
    response_model=MemberReferralCheckResponse,
)
async def evaluate_member_referral(member_id: UUID, request: Request) -> MemberReferralCheckResponse:
    assert_internal_access(request)
    result = await on_payment_succeeded_async(member_id)
    logger.info("internal_referral_evaluation_requested", **result)
    return MemberReferralCheckResponse(
        member_id=member_id,
        qualification=result["qualification"],
        referral_id=result.get("referral_id"),
        reward=result.get("reward"),
    )


@router.get(
    "/internal/members/{member_id}/referrals",
    response_model=MemberReferralsResponse,
)
async def get_member_referrals(member_id: UUID, request: Request) -> MemberReferralsResponse:
    assert_internal_access(request)
    async with SessionLocal.begin() as session:
        overview = await ReferralService.get_referrer_overview(
            session,
            member_id=member_id,
            now_utc=datetime.now(timezone.utc),
        )
    if overview is None:
        raise HTTPException(status_code=404, detail={"code": "E_MEMBER_NOT_FOUND"})
    return _as_overview_response(overview)


@router.post("/internal/codes/redeem", response_model=CodeRedeemResponse)
async def redeem_code(payload: CodeRedeemRequest, request: Request) -> CodeRedeemResponse:
    assert_internal_access(request)
    try:
        async with SessionLocal.begin() as session:
            result = await ReferralService.redeem_invitation_code(
                session,
                code=payload.code,
                product_slug=payload.product_slug,
                member_email=str(payload.member_email),
                member_name=payload.member_name,
                stripe_customer_id=payload.stripe_customer_id,
                now_utc=datetime.now(timezone.utc),
            )
    except CodeRedemptionError as exc:
        logger.warning("invitation_code_redeem_conflict", code=payload.code, error=str(exc))
        raise HTTPException(status_code=409, detail={"code": "E_CODE_REDEEM_CONFLICT"}) from exc

    if not result.success:
        raise HTTPException(status_code=400, detail={"code": "E_CODE_REJECTED", "message": result.error})
    return CodeRedeemResponse(
        success=True,
        member_id=result.member_id,
        referral_code=result.referral_code,
        referral_id=result.referral_id,
    )


@router.post("/internal/codes/validate", response_model=CodeValidateResponse)
async def validate_code(payload: CodeValidateRequest, request: Request) -> CodeValidateResponse:
    assert_internal_access(request)
    async with SessionLocal.begin() as session:
        result = await ReferralService.validate_invitation_code(
            session,
            code=payload.code,
            product_slug=payload.product_slug,
        )
    if not result.valid:
        return CodeValidateResponse(valid=False, error=result.error)
    return CodeValidateResponse(
        valid=True,
        code_type=result.code_type,
        trial_days=result.trial_days,
        issued_to_email=result.issued_to_email,
    )


@router.post("/internal/codes", response_model=CodeIssueResponse, status_code=201)
async def issue_code(payload: CodeIssueRequest, request: Request) -> CodeIssueResponse:
    assert_internal_access(request)
    async with SessionLocal.begin() as session:
        result = await ReferralService.issue_invitation_code(
            session,
            product_slug=payload.product_slug,
            code_type=payload.code_type,
            issued_to_email=str(payload.issued_to_email) if payload.issued_to_email else None,
            referrer_code=payload.referrer_code,
            now_utc=datetime.now(timezone.utc),
        )
    if not result.success:
        raise HTTPException(status_code=400, detail={"code": "E_CODE_REJECTED", "message": result.error})
    return CodeIssueResponse(
        invitation_code_id=result.invitation_code_id,
        code=result.code,
        code_type=result.code_type,
        product_slug=payload.product_slug,
        generated_by_member_id=result.generated_by_member_id,
    )
