from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.core.enums import Gateway, PaymentMethod
from app.schemas.common import response_meta
from app.services.fee_engine import FeeCalculationResult, FeePolicy, SellerTier


class FeeQuoteRequest(BaseModel):
    base_amount: int = Field(..., ge=0)
    gateway: Gateway
    method: PaymentMethod = PaymentMethod.UNKNOWN


class FeeQuoteResponse(BaseModel):
    fees: FeeCalculationResult
    policy_id: Optional[str] = None
    meta: dict = Field(default_factory=response_meta)


class EscrowHoldRequest(BaseModel):
    seller_id: str = Field(..., min_length=1, max_length=36)
    base_amount: int = Field(..., ge=0)
    gateway: Gateway
    method: PaymentMethod = PaymentMethod.UNKNOWN
    received_amount: Optional[int] = Field(default=None, ge=0)
    order_id: Optional[str] = Field(default=None, max_length=36)


class EscrowHoldResponse(BaseModel):
    seller_id: str
    order_id: Optional[str] = None
    held_amount: int
    fees: FeeCalculationResult
    meta: dict = Field(default_factory=response_meta)


class FeePolicyCreate(FeePolicy):
    name: str = Field(..., min_length=1, max_length=100)


class FeePolicyUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    min_order_amount: Optional[int] = None
    buyer_platform_bps: Optional[int] = None
    buyer_platform_min: Optional[int] = None
    buyer_processing_min: Optional[int] = None
    seller_tiers: Optional[list[SellerTier]] = None
    buffer_bps: Optional[int] = None
    buffer_fixed: Optional[int] = None
    vat_bps: Optional[int] = None
    reserve_days: Optional[int] = None
    payout_min: Optional[int] = None


class FeePolicyResponse(BaseModel):
    id: str
    name: str
    is_active: bool
    is_default: bool = False

    min_order_amount: int
    buyer_platform_bps: int
    buyer_platform_min: int
    buyer_processing_min: int
    seller_tiers: list[SellerTier]
    buffer_bps: int
    buffer_fixed: int
    vat_bps: int
    reserve_days: int
    payout_min: int

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
