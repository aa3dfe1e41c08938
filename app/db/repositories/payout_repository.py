from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import PayoutStatus
from app.db.models import SellerPayout
from app.metrics import payouts_total


class PayoutRepository:
    """Payout rows. Every status change is a conditional UPDATE keyed on the current status."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_payout(
        self,
        seller_id: str,
        amount: int,
        available_at: datetime,
        currency: str = "ZAR",
        order_id: Optional[str] = None,
    ) -> SellerPayout:
        payout = SellerPayout(
            seller_id=seller_id,
            amount=amount,
            currency=currency,
            order_id=order_id,
            status=PayoutStatus.PENDING,
            available_at=available_at,
        )
        self.session.add(payout)
        await self.session.flush()
        payouts_total.labels(status="created").inc()
        return payout

    async def get_by_id(self, payout_id: str) -> Optional[SellerPayout]:
        stmt = (
            select(SellerPayout)
            .where(SellerPayout.id == payout_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_eligible(self, now: datetime, min_amount: int) -> List[SellerPayout]:
        stmt = (
            select(SellerPayout)
            .where(SellerPayout.status == PayoutStatus.PENDING)
            .where(SellerPayout.available_at <= now)
            .where(SellerPayout.amount >= min_amount)
            .order_by(SellerPayout.available_at, SellerPayout.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_batch(
        self, batch_id: str, status: Optional[PayoutStatus] = None
    ) -> List[SellerPayout]:
        stmt = select(SellerPayout).where(SellerPayout.batch_id == batch_id)
        if status is not None:
            stmt = stmt.where(SellerPayout.status == status)
        stmt = stmt.order_by(SellerPayout.id).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_in_batch(self, batch_id: str, status: PayoutStatus) -> int:
        stmt = (
            select(func.count())
            .select_from(SellerPayout)
            .where(SellerPayout.batch_id == batch_id)
            .where(SellerPayout.status == status)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def find_in_batch(
        self, payout_id: str, batch_id: str, status: PayoutStatus
    ) -> Optional[SellerPayout]:
        stmt = (
            select(SellerPayout)
            .where(SellerPayout.id == payout_id)
            .where(SellerPayout.batch_id == batch_id)
            .where(SellerPayout.status == status)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_seller(
        self, seller_id: str, statuses: Iterable[PayoutStatus]
    ) -> List[SellerPayout]:
        stmt = (
            select(SellerPayout)
            .where(SellerPayout.seller_id == seller_id)
            .where(SellerPayout.status.in_(list(statuses)))
            .order_by(SellerPayout.available_at)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _transition(
        self,
        payout_id: str,
        from_status: PayoutStatus,
        values: dict,
        batch_id: Optional[str] = None,
    ) -> bool:
        stmt = (
            update(SellerPayout)
            .where(SellerPayout.id == payout_id)
            .where(SellerPayout.status == from_status)
        )
        if batch_id is not None:
            stmt = stmt.where(SellerPayout.batch_id == batch_id)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def claim_for_batch(
        self,
        payout_id: str,
        batch_id: str,
        bank_details_snapshot: dict,
        batched_at: datetime,
    ) -> bool:
        """PENDING → PROCESSING. False when another caller claimed the row first."""
        claimed = await self._transition(
            payout_id,
            PayoutStatus.PENDING,
            {
                "status": PayoutStatus.PROCESSING,
                "batch_id": batch_id,
                "bank_details_snapshot": bank_details_snapshot,
                "batched_at": batched_at,
            },
        )
        if claimed:
            payouts_total.labels(status="processing").inc()
        return claimed

    async def mark_paid(
        self, payout_id: str, batch_id: str, external_ref: str, processed_at: datetime
    ) -> bool:
        paid = await self._transition(
            payout_id,
            PayoutStatus.PROCESSING,
            {
                "status": PayoutStatus.PAID,
                "external_ref": external_ref,
                "processed_at": processed_at,
            },
            batch_id=batch_id,
        )
        if paid:
            payouts_total.labels(status="paid").inc()
        return paid

    async def mark_failed(
        self, payout_id: str, batch_id: str, failure_reason: str, failed_at: datetime
    ) -> bool:
        failed = await self._transition(
            payout_id,
            PayoutStatus.PROCESSING,
            {
                "status": PayoutStatus.FAILED,
                "failure_reason": failure_reason,
                "failed_at": failed_at,
            },
            batch_id=batch_id,
        )
        if failed:
            payouts_total.labels(status="failed").inc()
        return failed

    async def reset_failed(self, payout_id: str) -> bool:
        """FAILED → PENDING, detached from its batch."""
        return await self._transition(
            payout_id,
            PayoutStatus.FAILED,
            {
                "status": PayoutStatus.PENDING,
                "batch_id": None,
                "failure_reason": None,
                "failed_at": None,
                "bank_details_snapshot": None,
                "batched_at": None,
            },
        )
