"""Manual bank-transfer payout batches.

Flow:
1. create_batch claims eligible PENDING payouts (reserve period over, amount at
   least the policy's payout_min, seller has default bank details) and marks
   them PROCESSING under a fresh batch id.
2. The batch is exported as CSV and paid out by hand through the bank.
3. confirm_batch marks each paid payout PAID with the bank reference;
   fail_batch marks payouts the bank rejected as FAILED.

A batch is not stored anywhere: it is whatever payouts carry its batch id.
Every per-payout transition is a conditional UPDATE on the current status, so
concurrent callers cannot claim, confirm or fail the same payout twice.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.datetime_utils import as_utc, utc_now
from app.core.enums import BatchStatus, PayoutStatus
from app.db.models import SellerPayout, SellerProfile
from app.db.repositories import BankDetailsRepository, PayoutRepository, SellerRepository
from app.metrics import payout_amount_cents_total, payout_batches_total
from app.schemas.payouts import (
    BatchConfirmation,
    BatchConfirmResult,
    BatchFailResult,
    BatchStatusSummary,
    PayoutBatch,
    PayoutBatchItem,
)
from app.services.fee_policy_service import FeePolicyService
from app.services.notifier import LoggingNotifier, PayoutNotifier

logger = logging.getLogger(__name__)


def generate_batch_id() -> str:
    return f"{settings.batch_id_prefix}_{uuid4().hex}"


def mask_account_number(account_number: str) -> str:
    return f"****{account_number[-4:]}"


def aggregate_batch_status(statuses: Sequence[str]) -> BatchStatus:
    total = len(statuses)
    if statuses.count(PayoutStatus.PROCESSING) == total:
        return BatchStatus.PROCESSING
    if statuses.count(PayoutStatus.PAID) == total:
        return BatchStatus.CONFIRMED
    if statuses.count(PayoutStatus.FAILED) == total:
        return BatchStatus.FAILED
    return BatchStatus.PARTIALLY_CONFIRMED


def build_batch_item(
    payout: SellerPayout, seller: Optional[SellerProfile], bank: dict
) -> PayoutBatchItem:
    account_number = bank.get("account_number", "")
    return PayoutBatchItem(
        payout_id=payout.id,
        seller_id=payout.seller_id,
        seller_email=seller.email if seller else "",
        seller_name=seller.full_name if seller else "",
        amount=payout.amount,
        currency=payout.currency,
        order_id=payout.order_id,
        bank_name=bank.get("bank_name", ""),
        account_number=mask_account_number(account_number),
        account_number_full=account_number,
        branch_code=bank.get("branch_code", ""),
        account_holder=bank.get("account_holder", ""),
        account_type=bank.get("account_type", ""),
    )


class PayoutBatchManager:
    def __init__(
        self, session: AsyncSession, notifier: Optional[PayoutNotifier] = None
    ) -> None:
        self.session = session
        self.payout_repo = PayoutRepository(session)
        self.seller_repo = SellerRepository(session)
        self.bank_repo = BankDetailsRepository(session)
        self.policy_service = FeePolicyService(session)
        self.notifier = notifier or LoggingNotifier()

    async def create_batch(self, now: Optional[datetime] = None) -> Optional[PayoutBatch]:
        """Claim every eligible payout into a new batch.

        Returns None when nothing was claimed, including when every candidate
        was skipped for missing bank details or lost to a concurrent batch.
        """
        now = as_utc(now) if now else utc_now()
        policy = await self.policy_service.get_active_policy()
        batch_id = generate_batch_id()

        candidates = await self.payout_repo.find_eligible(now, policy.payout_min)
        logger.info(
            "Batch creation started batch_id=%s candidates=%s payout_min=%s",
            batch_id,
            len(candidates),
            policy.payout_min,
            extra={"batch_id": batch_id, "candidates": len(candidates)},
        )

        items: list[PayoutBatchItem] = []
        for payout in candidates:
            seller = await self.seller_repo.get_by_id(payout.seller_id)
            if seller is None:
                logger.warning(
                    "Skipping payout without seller payout_id=%s seller_id=%s",
                    payout.id,
                    payout.seller_id,
                    extra={"payout_id": payout.id, "seller_id": payout.seller_id},
                )
                continue

            bank = await self.bank_repo.get_default_for_seller(payout.seller_id)
            if bank is None:
                logger.warning(
                    "Skipping payout without bank details payout_id=%s seller_id=%s",
                    payout.id,
                    payout.seller_id,
                    extra={"payout_id": payout.id, "seller_id": payout.seller_id},
                )
                continue

            snapshot = bank.snapshot()
            claimed = await self.payout_repo.claim_for_batch(
                payout.id, batch_id, snapshot, now
            )
            if not claimed:
                logger.warning(
                    "Payout already claimed by another batch payout_id=%s batch_id=%s",
                    payout.id,
                    batch_id,
                    extra={"payout_id": payout.id, "batch_id": batch_id},
                )
                continue

            items.append(build_batch_item(payout, seller, snapshot))

        if not items:
            payout_batches_total.labels(outcome="empty").inc()
            logger.info(
                "No eligible payouts for batch batch_id=%s",
                batch_id,
                extra={"batch_id": batch_id},
            )
            return None

        batch = PayoutBatch(batch_id=batch_id, created_at=now, items=items)
        payout_batches_total.labels(outcome="created").inc()
        logger.info(
            "Batch created batch_id=%s payout_count=%s total_cents=%s",
            batch_id,
            batch.payout_count,
            batch.total_amount,
            extra={
                "batch_id": batch_id,
                "payout_count": batch.payout_count,
                "total_cents": batch.total_amount,
            },
        )
        return batch

    async def get_batch(self, batch_id: str) -> Optional[PayoutBatch]:
        """Rebuild a batch from its member payouts, e.g. for a CSV re-export."""
        payouts = await self.payout_repo.find_by_batch(batch_id)
        if not payouts:
            return None

        items: list[PayoutBatchItem] = []
        for payout in payouts:
            seller = await self.seller_repo.get_by_id(payout.seller_id)
            bank = payout.bank_details_snapshot
            if not bank:
                current = await self.bank_repo.get_default_for_seller(payout.seller_id)
                bank = current.snapshot() if current else {}
            items.append(build_batch_item(payout, seller, bank))

        created_at = min(as_utc(p.batched_at or p.created_at) for p in payouts)
        return PayoutBatch(batch_id=batch_id, created_at=created_at, items=items)

    async def confirm_batch(
        self, batch_id: str, confirmations: Sequence[BatchConfirmation]
    ) -> BatchConfirmResult:
        """Mark confirmed payouts PAID, item by item.

        Items that are missing, outside the batch or no longer PROCESSING are
        reported in errors. Replaying a confirmation list is safe: already
        PAID payouts fail the precondition and balances are not touched again.
        """
        now = utc_now()
        confirmed_count = 0
        failed_count = 0
        errors: list[str] = []

        for confirmation in confirmations:
            payout = await self.payout_repo.find_in_batch(
                confirmation.payout_id, batch_id, PayoutStatus.PROCESSING
            )
            paid = payout is not None and await self.payout_repo.mark_paid(
                payout.id, batch_id, confirmation.external_ref, now
            )
            if not paid:
                failed_count += 1
                errors.append(
                    f"Payout {confirmation.payout_id} not found in batch or not in PROCESSING status"
                )
                logger.warning(
                    "Payout confirmation rejected payout_id=%s batch_id=%s",
                    confirmation.payout_id,
                    batch_id,
                    extra={"payout_id": confirmation.payout_id, "batch_id": batch_id},
                )
                continue

            await self.seller_repo.adjust_balance(
                payout.seller_id, delta_pending=-payout.amount
            )
            confirmed_count += 1
            payout_amount_cents_total.inc(payout.amount)
            logger.info(
                "Payout confirmed payout_id=%s batch_id=%s external_ref=%s",
                payout.id,
                batch_id,
                confirmation.external_ref,
                extra={"payout_id": payout.id, "batch_id": batch_id},
            )
            await self._notify_paid(payout)

        return BatchConfirmResult(
            success=confirmed_count > 0,
            confirmed_count=confirmed_count,
            failed_count=failed_count,
            errors=errors,
        )

    async def fail_batch(
        self,
        batch_id: str,
        reason: str,
        payout_ids: Optional[Sequence[str]] = None,
    ) -> BatchFailResult:
        """Mark PROCESSING members FAILED.

        With payout_ids, only those members are failed; ids that are not
        PROCESSING in this batch are ignored. Balances are not touched: the
        amount stays in the seller's pending balance until the payout is
        retried.
        """
        now = utc_now()
        targets = await self.payout_repo.find_by_batch(batch_id, PayoutStatus.PROCESSING)
        if payout_ids is not None:
            wanted = set(payout_ids)
            targets = [payout for payout in targets if payout.id in wanted]

        failed_count = 0
        for payout in targets:
            if not await self.payout_repo.mark_failed(payout.id, batch_id, reason, now):
                continue
            failed_count += 1
            logger.info(
                "Payout failed payout_id=%s batch_id=%s reason=%s",
                payout.id,
                batch_id,
                reason,
                extra={"payout_id": payout.id, "batch_id": batch_id},
            )
            await self._notify_failed(payout, reason)

        return BatchFailResult(failed_count=failed_count)

    async def get_batch_status(self, batch_id: str) -> Optional[BatchStatusSummary]:
        payouts = await self.payout_repo.find_by_batch(batch_id)
        if not payouts:
            return None

        statuses = [payout.status for payout in payouts]
        return BatchStatusSummary(
            batch_id=batch_id,
            status=aggregate_batch_status(statuses),
            total_count=len(statuses),
            paid_count=statuses.count(PayoutStatus.PAID),
            failed_count=statuses.count(PayoutStatus.FAILED),
            processing_count=statuses.count(PayoutStatus.PROCESSING),
        )

    async def _notify_paid(self, payout: SellerPayout) -> None:
        try:
            await self.notifier.payout_paid(payout)
        except Exception as e:
            logger.error(
                "Payout paid notification failed payout_id=%s: %s",
                payout.id,
                e,
                exc_info=True,
            )

    async def _notify_failed(self, payout: SellerPayout, reason: str) -> None:
        try:
            await self.notifier.payout_failed(payout, reason)
        except Exception as e:
            logger.error(
                "Payout failed notification failed payout_id=%s: %s",
                payout.id,
                e,
                exc_info=True,
            )
