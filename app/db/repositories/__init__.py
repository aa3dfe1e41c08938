from app.db.repositories.bank_details_repository import BankDetailsRepository
from app.db.repositories.fee_policy_repository import FeePolicyRepository
from app.db.repositories.payout_repository import PayoutRepository
from app.db.repositories.seller_repository import SellerRepository

__all__ = [
    "BankDetailsRepository",
    "FeePolicyRepository",
    "PayoutRepository",
    "SellerRepository",
]
