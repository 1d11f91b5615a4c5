from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from invite_hub.db.repo.referrals_repo import ReferralListItem


@dataclass(frozen=True, slots=True)
class QualificationResult:
    outcome: str
    referral_id: UUID | None = None
    reward_due: bool = False


@dataclass(frozen=True, slots=True)
class DisbursementResult:
    outcome: str
    referral_id: UUID
    referrer_member_id: UUID | None = None
    amount_minor: int | None = None


@dataclass(frozen=True, slots=True)
class RedemptionResult:
    success: bool
    member_id: UUID | None = None
    referral_code: str | None = None
    referral_id: UUID | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class ReferralOverview:
    member_id: UUID
    referral_code: str | None
    total_referrals: int
    qualified_referrals: int
    pending_referrals: int
    rewards_earned_this_year: int
    rewards_max_per_year: int
    generated_at: datetime
    referrals: tuple[ReferralListItem, ...]


@dataclass(frozen=True, slots=True)
class CodeValidationResult:
    valid: bool
    code_type: str | None = None
    trial_days: int | None = None
    issued_to_email: str | None = None
    product_slug: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class CodeIssueResult:
    success: bool
    invitation_code_id: UUID | None = None
    code: str | None = None
    code_type: str | None = None
    generated_by_member_id: UUID | None = None
    error: str | None = None
