from app.schemas.common import BaseResponse, ErrorDetail, ErrorResponse
from app.schemas.fees import (
    EscrowHoldRequest,
    EscrowHoldResponse,
    FeePolicyCreate,
    FeePolicyResponse,
    FeePolicyUpdate,
    FeeQuoteRequest,
    FeeQuoteResponse,
)
from app.schemas.payouts import (
    BatchConfirmation,
    BatchConfirmRequest,
    BatchConfirmResult,
    BatchFailRequest,
    BatchFailResult,
    BatchStatusSummary,
    PayoutBatch,
    PayoutBatchItem,
    PayoutBatchResponse,
    PayoutCreate,
    PayoutResponse,
    PayoutRetryRequest,
    PayoutRetryResult,
    SellerPayoutSummary,
)

__all__ = [
    "BaseResponse",
    "ErrorDetail",
    "ErrorResponse",
    "EscrowHoldRequest",
    "EscrowHoldResponse",
    "FeePolicyCreate",
    "FeePolicyResponse",
    "FeePolicyUpdate",
    "FeeQuoteRequest",
    "FeeQuoteResponse",
    "BatchConfirmation",
    "BatchConfirmRequest",
    "BatchConfirmResult",
    "BatchFailRequest",
    "BatchFailResult",
    "BatchStatusSummary",
    "PayoutBatch",
    "PayoutBatchItem",
    "PayoutBatchResponse",
    "PayoutCreate",
    "PayoutResponse",
    "PayoutRetryRequest",
    "PayoutRetryResult",
    "SellerPayoutSummary",
]
