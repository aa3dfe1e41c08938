"""Gateway-aware fee calculation.

Fee model:
- buyer_platform_fee: marketplace fee charged to the buyer (percentage with a floor)
- buyer_processing_fee: surcharge sized to cover the gateway's own cut
- seller_platform_fee: tiered commission deducted from the seller

gross_amount = base_amount + buyer_platform_fee + buyer_processing_fee
seller_payout_amount = base_amount - seller_platform_fee
platform_revenue = buyer_platform_fee + seller_platform_fee

Everything here is pure: no database, no clock, no metrics.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.core.enums import Gateway, PaymentMethod
from app.core.money import BPS_SCALE, bps_to_rate, percent_of, round_half_up
from app.exceptions import (
    InvalidGatewayException,
    InvalidPaymentMethodException,
    MinimumOrderAmountException,
    ValidationException,
)


class SellerTier(BaseModel):
    """Seller commission bracket. up_to=None means unbounded."""

    model_config = ConfigDict(frozen=True)

    up_to: Optional[int] = Field(default=None, gt=0)
    bps: int = Field(..., ge=0, le=BPS_SCALE)
    min_fee: int = Field(..., ge=0)


class FeePolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_order_amount: int = Field(default=5000, ge=0)

    buyer_platform_bps: int = Field(..., ge=0, le=BPS_SCALE)
    buyer_platform_min: int = Field(..., ge=0)
    buyer_processing_min: int = Field(..., ge=0)

    seller_tiers: tuple[SellerTier, ...]

    buffer_bps: int = Field(..., ge=0, le=BPS_SCALE)
    buffer_fixed: int = Field(..., ge=0)
    vat_bps: int = Field(..., ge=0, le=BPS_SCALE)

    reserve_days: int = Field(..., ge=0, le=90)
    payout_min: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_tiers(self) -> "FeePolicy":
        tiers = self.seller_tiers
        if not tiers:
            raise ValueError("at least one seller tier is required")
        if tiers[-1].up_to is not None:
            raise ValueError("last seller tier must be unbounded")
        bounds = [tier.up_to for tier in tiers[:-1]]
        if any(bound is None for bound in bounds):
            raise ValueError("only the last seller tier may be unbounded")
        if any(lower >= upper for lower, upper in zip(bounds, bounds[1:])):
            raise ValueError("seller tiers must be sorted ascending by up_to")
        return self


DEFAULT_FEE_POLICY = FeePolicy(
    min_order_amount=5000,
    buyer_platform_bps=300,
    buyer_platform_min=1000,
    buyer_processing_min=1500,
    seller_tiers=(
        SellerTier(up_to=50000, bps=1200, min_fee=1500),
        SellerTier(up_to=200000, bps=1000, min_fee=2000),
        SellerTier(up_to=None, bps=800, min_fee=3000),
    ),
    buffer_bps=20,
    buffer_fixed=100,
    vat_bps=1500,
    reserve_days=7,
    payout_min=10000,
)


class GatewayRate(NamedTuple):
    """Gateway pricing ex VAT: bps of gross plus fixed cents, floored at minimum."""

    bps: int
    fixed: int = 0
    minimum: int = 0


# UNKNOWN is priced like CARD, the more expensive rail.
GATEWAY_RATES: dict[tuple[Gateway, PaymentMethod], GatewayRate] = {
    (Gateway.GATEWAY_A, PaymentMethod.CARD): GatewayRate(bps=320, fixed=200),
    (Gateway.GATEWAY_A, PaymentMethod.UNKNOWN): GatewayRate(bps=320, fixed=200),
    (Gateway.GATEWAY_A, PaymentMethod.BANK_TRANSFER): GatewayRate(
        bps=200, minimum=200
    ),
    (Gateway.GATEWAY_B, PaymentMethod.CARD): GatewayRate(bps=200, fixed=150),
    (Gateway.GATEWAY_B, PaymentMethod.UNKNOWN): GatewayRate(bps=200, fixed=150),
    (Gateway.GATEWAY_B, PaymentMethod.BANK_TRANSFER): GatewayRate(
        bps=200, fixed=150
    ),
}


class FeeLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    amount: int


class FeeCalculationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_amount: int
    buyer_platform_fee: int
    buyer_processing_fee: int
    gross_amount: int

    seller_platform_fee: int
    seller_payout_amount: int

    platform_revenue: int

    # Informational only, never charged.
    estimated_gateway_fee: int
    estimated_net_to_platform: int

    currency: str
    gateway: Gateway
    method: PaymentMethod

    breakdown: tuple[FeeLine, ...]


def coerce_gateway(gateway: Any) -> Gateway:
    try:
        return Gateway(gateway)
    except ValueError:
        raise InvalidGatewayException(gateway) from None


def coerce_method(method: Any) -> PaymentMethod:
    try:
        return PaymentMethod(method)
    except ValueError:
        raise InvalidPaymentMethodException(method) from None


def estimate_gateway_fee(
    gross_amount: int,
    gateway: Gateway,
    method: PaymentMethod,
    vat_bps: int,
    buffer_bps: int,
    buffer_fixed: int,
) -> int:
    """Estimate the gateway's fee on gross_amount, VAT and buffer included."""
    rate = GATEWAY_RATES[(gateway, method)]

    fee_ex_vat = Decimal(gross_amount) * bps_to_rate(rate.bps) + rate.fixed
    fee_ex_vat = max(fee_ex_vat, Decimal(rate.minimum))

    fee = fee_ex_vat * (1 + bps_to_rate(vat_bps))
    fee = fee * (1 + bps_to_rate(buffer_bps)) + buffer_fixed

    return round_half_up(fee)


def select_seller_tier(base_amount: int, tiers: tuple[SellerTier, ...]) -> SellerTier:
    return next(
        (tier for tier in tiers if tier.up_to is None or base_amount <= tier.up_to),
        tiers[-1],
    )


def calculate_seller_fee(base_amount: int, tiers: tuple[SellerTier, ...]) -> int:
    tier = select_seller_tier(base_amount, tiers)
    return max(percent_of(base_amount, tier.bps), tier.min_fee)


def calculate_buyer_processing_fee(
    base_amount: int,
    buyer_platform_fee: int,
    gateway: Gateway,
    method: PaymentMethod,
    policy: FeePolicy,
) -> int:
    """Surcharge covering the gateway's fee.

    The gateway fee is estimated against a preliminary gross that assumes
    the minimum processing fee. The real gross is never smaller, so the
    estimate over-covers rather than under-covers.
    """
    preliminary_gross = base_amount + buyer_platform_fee + policy.buyer_processing_min

    estimated_fee = estimate_gateway_fee(
        preliminary_gross,
        gateway,
        method,
        vat_bps=policy.vat_bps,
        buffer_bps=policy.buffer_bps,
        buffer_fixed=policy.buffer_fixed,
    )

    return max(estimated_fee, policy.buyer_processing_min)


def calculate_fees(
    base_amount: int,
    gateway: Any,
    method: Any,
    policy: FeePolicy = DEFAULT_FEE_POLICY,
    currency: str = "ZAR",
) -> FeeCalculationResult:
    if isinstance(base_amount, bool) or not isinstance(base_amount, int):
        raise ValidationException(
            message="Base amount must be an integer number of cents",
            details={"base_amount": str(base_amount)},
        )
    gateway = coerce_gateway(gateway)
    method = coerce_method(method)

    if base_amount < policy.min_order_amount:
        raise MinimumOrderAmountException(base_amount, policy.min_order_amount)

    buyer_platform_fee = max(
        percent_of(base_amount, policy.buyer_platform_bps), policy.buyer_platform_min
    )
    buyer_processing_fee = calculate_buyer_processing_fee(
        base_amount, buyer_platform_fee, gateway, method, policy
    )
    gross_amount = base_amount + buyer_platform_fee + buyer_processing_fee

    seller_platform_fee = calculate_seller_fee(base_amount, policy.seller_tiers)
    seller_payout_amount = base_amount - seller_platform_fee

    platform_revenue = buyer_platform_fee + seller_platform_fee

    # Against the real gross, without buffer, for reconciliation display.
    estimated_gateway_fee = estimate_gateway_fee(
        gross_amount, gateway, method, vat_bps=policy.vat_bps, buffer_bps=0, buffer_fixed=0
    )

    return FeeCalculationResult(
        base_amount=base_amount,
        buyer_platform_fee=buyer_platform_fee,
        buyer_processing_fee=buyer_processing_fee,
        gross_amount=gross_amount,
        seller_platform_fee=seller_platform_fee,
        seller_payout_amount=seller_payout_amount,
        platform_revenue=platform_revenue,
        estimated_gateway_fee=estimated_gateway_fee,
        estimated_net_to_platform=gross_amount - estimated_gateway_fee,
        currency=currency,
        gateway=gateway,
        method=method,
        breakdown=(
            FeeLine(label="Service price", amount=base_amount),
            FeeLine(label="Platform fee", amount=buyer_platform_fee),
            FeeLine(label="Processing fee", amount=buyer_processing_fee),
            FeeLine(label="Total", amount=gross_amount),
        ),
    )


def get_payout_available_at(completed_at: datetime, reserve_days: int) -> datetime:
    return completed_at + timedelta(days=reserve_days)
