from __future__ import annotations

from decimal import Decimal

QUALIFICATION_PENDING = "pending"
QUALIFICATION_QUALIFIED = "qualified"
QUALIFICATION_FAILED = "failed"

REWARD_PENDING = "pending"
REWARD_CREDITED = "credited"
REWARD_FORFEITED = "forfeited"
REWARD_CAPPED = "capped"

MEMBER_STATUS_TRIAL = "trial"
MEMBER_STATUS_ACTIVE = "active"
MEMBER_STATUS_CHURNED = "churned"
MEMBER_STATUS_SUSPENDED = "suspended"

CODE_TYPE_STANDARD = "standard"
CODE_TYPE_REFERRAL = "referral"
CODE_TYPE_SALES = "sales"

CODE_STATUS_ACTIVE = "active"
CODE_STATUS_REDEEMED = "redeemed"
CODE_STATUS_REVOKED = "revoked"

DEFAULT_MONTHLY_PRICE = Decimal("25")
DEFAULT_REFERRAL_CAP_PER_YEAR = 10
MINOR_UNITS_PER_MAJOR = 100
REWARD_IDEMPOTENCY_KEY_PREFIX = "referral-reward"
RECENT_REFERRALS_LIMIT = 50
