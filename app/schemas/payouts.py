from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import BatchStatus, PayoutStatus
from app.schemas.common import response_meta


class PayoutCreate(BaseModel):
    seller_id: str = Field(..., min_length=1, max_length=36)
    amount: int = Field(..., gt=0)
    order_id: Optional[str] = Field(default=None, max_length=36)
    completed_at: Optional[datetime] = None
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Z]{3}$")


class PayoutResponse(BaseModel):
    id: str
    seller_id: str
    order_id: Optional[str] = None
    amount: int
    currency: str
    status: PayoutStatus
    batch_id: Optional[str] = None
    available_at: datetime
    external_ref: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    created_at: datetime
    meta: dict = Field(default_factory=response_meta)

    model_config = ConfigDict(from_attributes=True)


class PayoutBatchItem(BaseModel):
    payout_id: str
    seller_id: str
    seller_email: str
    seller_name: str
    amount: int
    currency: str
    order_id: Optional[str] = None
    bank_name: str
    account_number: str
    account_number_full: str
    branch_code: str
    account_holder: str
    account_type: str


class PayoutBatch(BaseModel):
    batch_id: str
    created_at: datetime
    items: list[PayoutBatchItem]

    @property
    def payout_count(self) -> int:
        return len(self.items)

    @property
    def total_amount(self) -> int:
        return sum(item.amount for item in self.items)


class PayoutBatchItemResponse(BaseModel):
    """Batch item with the account number masked."""

    payout_id: str
    seller_id: str
    seller_email: str
    seller_name: str
    amount: int
    currency: str
    bank_name: str
    account_number: str
    account_holder: str


class PayoutBatchResponse(BaseModel):
    batch_id: str
    created_at: datetime
    payout_count: int
    total_amount: int
    items: list[PayoutBatchItemResponse]
    meta: dict = Field(default_factory=response_meta)

    @classmethod
    def from_batch(cls, batch: PayoutBatch) -> "PayoutBatchResponse":
        return cls(
            batch_id=batch.batch_id,
            created_at=batch.created_at,
            payout_count=batch.payout_count,
            total_amount=batch.total_amount,
            items=[
                PayoutBatchItemResponse.model_validate(item.model_dump())
                for item in batch.items
            ],
        )


class BatchConfirmation(BaseModel):
    payout_id: str = Field(..., min_length=1)
    external_ref: str = Field(..., min_length=1, max_length=255)


class BatchConfirmRequest(BaseModel):
    confirmations: list[BatchConfirmation] = Field(..., min_length=1)


class BatchConfirmResult(BaseModel):
    success: bool
    confirmed_count: int
    failed_count: int
    errors: list[str] = Field(default_factory=list)


class BatchFailRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    payout_ids: Optional[list[str]] = Field(default=None, min_length=1)


class BatchFailResult(BaseModel):
    failed_count: int


class BatchStatusSummary(BaseModel):
    batch_id: str
    status: BatchStatus
    total_count: int
    paid_count: int
    failed_count: int
    processing_count: int


class SellerPayoutSummary(BaseModel):
    seller_id: str
    pending_count: int
    pending_amount: int
    available_count: int
    available_amount: int
    processing_count: int
    processing_amount: int


class PayoutRetryRequest(BaseModel):
    payout_ids: list[str] = Field(..., min_length=1)


class PayoutRetryResult(BaseModel):
    reset_count: int
    errors: list[str] = Field(default_factory=list)
