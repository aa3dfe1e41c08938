from enum import Enum


class Gateway(str, Enum):
    GATEWAY_A = "GATEWAY_A"
    GATEWAY_B = "GATEWAY_B"


class PaymentMethod(str, Enum):
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    UNKNOWN = "UNKNOWN"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"


class BatchStatus(str, Enum):
    PROCESSING = "PROCESSING"
    PARTIALLY_CONFIRMED = "PARTIALLY_CONFIRMED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
