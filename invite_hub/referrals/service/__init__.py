from __future__ import annotations

from .codes import issue_invitation_code, validate_invitation_code
from .models import (
    CodeIssueResult,
    CodeValidationResult,
    DisbursementResult,
    QualificationResult,
    RedemptionResult,
    ReferralOverview,
)
from .overview import get_referrer_overview
from .policy import (
    is_qualification_due,
    is_reward_due,
    qualification_date,
    reward_amount_minor,
    reward_date,
)
from .qualification import qualify_member_referral
from .redemption import redeem_invitation_code
from .rewards import disburse_referral_reward


class ReferralService:
    qualification_date = staticmethod(qualification_date)
    reward_date = staticmethod(reward_date)
    is_qualification_due = staticmethod(is_qualification_due)
    is_reward_due = staticmethod(is_reward_due)
    reward_amount_minor = staticmethod(reward_amount_minor)
    qualify_member_referral = staticmethod(qualify_member_referral)
    disburse_referral_reward = staticmethod(disburse_referral_reward)
    validate_invitation_code = staticmethod(validate_invitation_code)
    issue_invitation_code = staticmethod(issue_invitation_code)
    redeem_invitation_code = staticmethod(redeem_invitation_code)
    get_referrer_overview = staticmethod(get_referrer_overview)


__all__ = [
    "CodeIssueResult",
    "CodeValidationResult",
    "DisbursementResult",
    "QualificationResult",
    "RedemptionResult",
    "ReferralOverview",
    "ReferralService",
]
