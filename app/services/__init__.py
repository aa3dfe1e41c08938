from app.services.fee_policy_service import FeePolicyService
from app.services.payout_batch import PayoutBatchManager
from app.services.payout_service import PayoutService

__all__ = [
    "FeePolicyService",
    "PayoutBatchManager",
    "PayoutService",
]
