from typing import Any, Optional


class BaseAPIException(Exception):
    """
    Base exception for all API errors.

    Provides consistent structure with status_code, error_code, and details.
    """

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}


class ValidationException(BaseAPIException):
    """Invalid input data (HTTP 422)."""

    status_code = 422
    error_code = "VALIDATION_ERROR"


class BusinessException(BaseAPIException):
    """Business rule violation (HTTP 409)."""

    status_code = 409
    error_code = "BUSINESS_RULE_VIOLATION"


class NotFoundException(BaseAPIException):
    """Resource not found (HTTP 404)."""

    status_code = 404
    error_code = "RESOURCE_NOT_FOUND"


class SystemException(BaseAPIException):
    """Internal system error (HTTP 500)."""

    status_code = 500
    error_code = "SYSTEM_ERROR"


# Fee engine
class MinimumOrderAmountException(ValidationException):
    """Base amount below the policy's minimum order amount."""

    error_code = "FEE_BELOW_MINIMUM_ORDER"

    def __init__(self, base_amount: int, min_order_amount: int):
        super().__init__(
            message=f"Minimum order amount is {min_order_amount} cents",
            details={
                "base_amount_cents": base_amount,
                "min_order_amount_cents": min_order_amount,
            },
        )


class InvalidGatewayException(ValidationException):
    error_code = "FEE_INVALID_GATEWAY"

    def __init__(self, gateway: Any):
        super().__init__(
            message=f"Invalid payment gateway: {gateway}",
            details={"gateway": str(gateway)},
        )


class InvalidPaymentMethodException(ValidationException):
    error_code = "FEE_INVALID_PAYMENT_METHOD"

    def __init__(self, method: Any):
        super().__init__(
            message=f"Invalid payment method: {method}",
            details={"method": str(method)},
        )


# Fee policy
class InvalidFeePolicyException(ValidationException):
    """Fee policy fails structural validation (tiers, ranges)."""

    error_code = "FEE_POLICY_INVALID"

    def __init__(self, reason: str):
        super().__init__(
            message=f"Invalid fee policy: {reason}", details={"reason": reason}
        )


class FeePolicyNotFoundException(NotFoundException):
    error_code = "FEE_POLICY_NOT_FOUND"

    def __init__(self, policy_id: str):
        super().__init__(
            message=f"Fee policy not found: {policy_id}",
            details={"policy_id": policy_id},
        )


class ActivePolicyDeletionException(BusinessException):
    """The active fee policy cannot be deleted."""

    error_code = "FEE_POLICY_ACTIVE"

    def __init__(self, policy_id: str):
        super().__init__(
            message="Cannot delete the active fee policy",
            details={"policy_id": policy_id},
        )


# Payouts
class SellerNotFoundException(NotFoundException):
    error_code = "SELLER_NOT_FOUND"

    def __init__(self, seller_id: str):
        super().__init__(
            message=f"Seller not found: {seller_id}",
            details={"seller_id": seller_id},
        )


class PayoutNotFoundException(NotFoundException):
    error_code = "PAYOUT_NOT_FOUND"

    def __init__(self, payout_id: str):
        super().__init__(
            message=f"Payout not found: {payout_id}",
            details={"payout_id": payout_id},
        )


class InvalidPayoutAmountException(ValidationException):
    error_code = "PAYOUT_INVALID_AMOUNT"

    def __init__(self, amount: int):
        super().__init__(
            message="Payout amount must be positive",
            details={"amount_cents": amount},
        )


class PaymentAmountMismatchException(ValidationException):
    """Gateway-reported gross differs from the order's expected gross."""

    error_code = "PAYMENT_AMOUNT_MISMATCH"

    def __init__(self, received_amount: int, expected_amount: int):
        super().__init__(
            message="Received payment amount does not match the expected gross",
            details={
                "received_amount_cents": received_amount,
                "expected_amount_cents": expected_amount,
            },
        )


class BatchNotFoundException(NotFoundException):
    error_code = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        super().__init__(
            message=f"Batch not found: {batch_id}",
            details={"batch_id": batch_id},
        )


class NoEligiblePayoutsException(NotFoundException):
    """Raised at the API boundary when batch creation finds nothing to do."""

    error_code = "NO_ELIGIBLE_PAYOUTS"

    def __init__(self):
        super().__init__(message="No eligible payouts found")

