from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class ReferralSweepResponse(BaseModel):
    examined: int = Field(ge=0)
    due: int = Field(ge=0)
    credited: int = Field(ge=0)
    forfeited: int = Field(ge=0)
    capped: int = Field(ge=0)
    credit_failed: int = Field(ge=0)
    billing_identity_missing: int = Field(ge=0)
    skipped: int = Field(ge=0)
    data_errors: int = Field(default=0, ge=0)
    errors: int = Field(ge=0)


class MemberReferralCheckResponse(BaseModel):
    member_id: UUID
    qualification: str
    referral_id: UUID | None = None
    reward: str | None = None


class ReferredMemberResponse(BaseModel):
    name: str | None = None
    email: str
    status: str


class ReferralItemResponse(BaseModel):
    referral_id: UUID
    qualification_status: str
    qualified_at: datetime | None = None
    reward_status: str
    reward_credited_at: datetime | None = None
    created_at: datetime
    referred_member: ReferredMemberResponse


class MemberReferralsResponse(BaseModel):
    member_id: UUID
    referral_code: str | None = None
    total_referrals: int = Field(ge=0)
    qualified_referrals: int = Field(ge=0)
    pending_referrals: int = Field(ge=0)
    rewards_earned_this_year: int = Field(ge=0)
    rewards_max_per_year: int = Field(ge=0)
    generated_at: datetime
    referrals: list[ReferralItemResponse]


class CodeRedeemRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    product_slug: str = Field(min_length=1, max_length=64)
    member_email: EmailStr
    member_name: str = Field(min_length=1, max_length=200)
    stripe_customer_id: str | None = Field(default=None, max_length=255)


class CodeRedeemResponse(BaseModel):
    success: bool
    member_id: UUID | None = None
    referral_code: str | None = None
    referral_id: UUID | None = None
    error: str | None = None


class CodeValidateRequest(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    product_slug: str = Field(min_length=1, max_length=64)


class CodeValidateResponse(BaseModel):
    valid: bool
    code_type: str | None = None
    trial_days: int | None = None
    issued_to_email: str | None = None
    error: str | None = None


class CodeIssueRequest(BaseModel):
    product_slug: str = Field(min_length=1, max_length=64)
    code_type: Literal["standard", "referral", "sales"] = "standard"
    issued_to_email: EmailStr | None = None
    referrer_code: str | None = Field(default=None, min_length=1, max_length=32)


class CodeIssueResponse(BaseModel):
    invitation_code_id: UUID
    code: str
    code_type: str
    product_slug: str
    generated_by_member_id: UUID | None = None
