from invite_hub.db.repo.invitation_codes_repo import InvitationCodesRepo
from invite_hub.db.repo.members_repo import MembersRepo
from invite_hub.db.repo.products_repo import ProductsRepo
from invite_hub.db.repo.referrals_repo import ReferralsRepo

__all__ = [
    "InvitationCodesRepo",
    "MembersRepo",
    "ProductsRepo",
    "ReferralsRepo",
]
