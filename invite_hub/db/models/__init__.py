from invite_hub.db.models.invitation_codes import InvitationCode
from invite_hub.db.models.members import Member
from invite_hub.db.models.products import Product
from invite_hub.db.models.referrals import Referral

__all__ = [
    "InvitationCode",
    "Member",
    "Product",
    "Referral",
]
