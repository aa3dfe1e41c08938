import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.datetime_utils import as_utc, utc_now
from app.core.enums import PaymentMethod, PayoutStatus
from app.core.money import validate_payment_amount
from app.db.models import SellerPayout
from app.db.repositories import PayoutRepository, SellerRepository
from app.exceptions import (
    InvalidPayoutAmountException,
    PaymentAmountMismatchException,
    PayoutNotFoundException,
    SellerNotFoundException,
)
from app.schemas.payouts import PayoutRetryResult, SellerPayoutSummary
from app.services.fee_engine import (
    FeeCalculationResult,
    calculate_fees,
    get_payout_available_at,
)
from app.services.fee_policy_service import FeePolicyService

logger = logging.getLogger(__name__)


class PayoutService:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.payout_repo = PayoutRepository(session)
        self.seller_repo = SellerRepository(session)
        self.policy_service = FeePolicyService(session)

    async def hold_escrow(
        self,
        seller_id: str,
        base_amount: int,
        gateway: Any,
        method: Any = PaymentMethod.UNKNOWN,
        received_amount: Optional[int] = None,
        order_id: Optional[str] = None,
    ) -> FeeCalculationResult:
        """Hold the seller's share of a paid order in escrow.

        The order is priced with the active policy. When the gateway reports
        the amount it collected, it must match the expected gross within the
        configured tolerance. The seller payout amount is credited to the
        seller's escrow balance and released by create_payout on completion.
        """
        seller = await self.seller_repo.get_by_id(seller_id)
        if seller is None:
            raise SellerNotFoundException(seller_id)

        policy = await self.policy_service.get_active_policy()
        fees = calculate_fees(
            base_amount, gateway, method, policy, currency=settings.default_currency
        )

        if received_amount is not None and not validate_payment_amount(
            received_amount, fees.gross_amount, settings.payment_amount_tolerance_cents
        ):
            logger.warning(
                "Payment amount mismatch seller_id=%s order_id=%s received_cents=%s expected_cents=%s",
                seller_id,
                order_id,
                received_amount,
                fees.gross_amount,
                extra={"seller_id": seller_id, "order_id": order_id},
            )
            raise PaymentAmountMismatchException(received_amount, fees.gross_amount)

        await self.seller_repo.adjust_balance(
            seller_id, delta_escrow=fees.seller_payout_amount
        )

        logger.info(
            "Escrow held seller_id=%s order_id=%s gross_cents=%s held_cents=%s",
            seller_id,
            order_id,
            fees.gross_amount,
            fees.seller_payout_amount,
            extra={
                "seller_id": seller_id,
                "order_id": order_id,
                "amount_cents": fees.seller_payout_amount,
            },
        )
        return fees

    async def create_payout(
        self,
        seller_id: str,
        amount: int,
        completed_at: Optional[datetime] = None,
        order_id: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> SellerPayout:
        """Credit a seller for a completed order.

        The payout starts PENDING and becomes eligible for batching once the
        policy's reserve period has passed. The amount moves from the seller's
        escrow balance to the pending balance.
        """
        if amount <= 0:
            raise InvalidPayoutAmountException(amount)

        seller = await self.seller_repo.get_by_id(seller_id)
        if seller is None:
            raise SellerNotFoundException(seller_id)

        policy = await self.policy_service.get_active_policy()
        completed_at = as_utc(completed_at) if completed_at else utc_now()
        available_at = get_payout_available_at(completed_at, policy.reserve_days)

        payout = await self.payout_repo.create_payout(
            seller_id=seller_id,
            amount=amount,
            available_at=available_at,
            currency=currency or settings.default_currency,
            order_id=order_id,
        )
        await self.seller_repo.adjust_balance(
            seller_id, delta_pending=amount, delta_escrow=-amount
        )

        logger.info(
            "Payout created payout_id=%s seller_id=%s amount_cents=%s available_at=%s",
            payout.id,
            seller_id,
            amount,
            available_at.isoformat(),
            extra={
                "payout_id": payout.id,
                "seller_id": seller_id,
                "amount_cents": amount,
            },
        )
        return payout

    async def get_payout(self, payout_id: str) -> SellerPayout:
        payout = await self.payout_repo.get_by_id(payout_id)
        if payout is None:
            raise PayoutNotFoundException(payout_id)
        return payout

    async def get_seller_summary(
        self, seller_id: str, now: Optional[datetime] = None
    ) -> SellerPayoutSummary:
        if await self.seller_repo.get_by_id(seller_id) is None:
            raise SellerNotFoundException(seller_id)

        now = as_utc(now) if now else utc_now()
        payouts = await self.payout_repo.list_for_seller(
            seller_id, [PayoutStatus.PENDING, PayoutStatus.PROCESSING]
        )

        in_reserve = [
            p
            for p in payouts
            if p.status == PayoutStatus.PENDING and as_utc(p.available_at) > now
        ]
        available = [
            p
            for p in payouts
            if p.status == PayoutStatus.PENDING and as_utc(p.available_at) <= now
        ]
        processing = [p for p in payouts if p.status == PayoutStatus.PROCESSING]

        return SellerPayoutSummary(
            seller_id=seller_id,
            pending_count=len(in_reserve),
            pending_amount=sum(p.amount for p in in_reserve),
            available_count=len(available),
            available_amount=sum(p.amount for p in available),
            processing_count=len(processing),
            processing_amount=sum(p.amount for p in processing),
        )

    async def retry_failed(self, payout_ids: list[str]) -> PayoutRetryResult:
        """Return FAILED payouts to PENDING so a later batch can pick them up.

        Failed payouts are never re-batched automatically; this is the
        operator's explicit recovery path. A payout stays FAILED while its
        batch still has PROCESSING members, so an open batch keeps its
        membership until it fully resolves.
        """
        reset_count = 0
        errors: list[str] = []

        for payout_id in payout_ids:
            payout = await self.payout_repo.get_by_id(payout_id)
            if (
                payout is not None
                and payout.status == PayoutStatus.FAILED
                and payout.batch_id
                and await self.payout_repo.count_in_batch(
                    payout.batch_id, PayoutStatus.PROCESSING
                )
            ):
                errors.append(
                    f"Payout {payout_id} belongs to batch {payout.batch_id} "
                    "which still has PROCESSING payouts"
                )
                logger.warning(
                    "Payout retry deferred until batch resolves payout_id=%s batch_id=%s",
                    payout_id,
                    payout.batch_id,
                    extra={"payout_id": payout_id, "batch_id": payout.batch_id},
                )
                continue

            if await self.payout_repo.reset_failed(payout_id):
                reset_count += 1
                logger.info(
                    "Failed payout returned to pending payout_id=%s",
                    payout_id,
                    extra={"payout_id": payout_id},
                )
            else:
                errors.append(f"Payout {payout_id} not found or not in FAILED status")
                logger.warning(
                    "Payout retry rejected payout_id=%s",
                    payout_id,
                    extra={"payout_id": payout_id},
                )

        return PayoutRetryResult(reset_count=reset_count, errors=errors)
