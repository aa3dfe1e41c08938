from app.db.models.bank_details import BankDetails
from app.db.models.fee_policy import FeePolicyRecord
from app.db.models.seller_payout import SellerPayout
from app.db.models.seller_profile import SellerProfile

__all__ = ["SellerProfile", "BankDetails", "SellerPayout", "FeePolicyRecord"]
