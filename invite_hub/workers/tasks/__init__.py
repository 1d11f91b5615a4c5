from invite_hub.workers.tasks.referrals import (
    check_member_referral_qualification,
    sweep_pending_referral_rewards,
)

__all__ = [
    "check_member_referral_qualification",
    "sweep_pending_referral_rewards",
]
