import logging
from typing import Protocol

from app.db.models import SellerPayout

logger = logging.getLogger(__name__)


class PayoutNotifier(Protocol):
    async def payout_paid(self, payout: SellerPayout) -> None: ...

    async def payout_failed(self, payout: SellerPayout, reason: str) -> None: ...


class LoggingNotifier:
    """Default notifier: records the notification instead of delivering it."""

    async def payout_paid(self, payout: SellerPayout) -> None:
        logger.info(
            "Notify seller payout paid payout_id=%s seller_id=%s amount_cents=%s",
            payout.id,
            payout.seller_id,
            payout.amount,
            extra={"payout_id": payout.id, "seller_id": payout.seller_id},
        )

    async def payout_failed(self, payout: SellerPayout, reason: str) -> None:
        logger.info(
            "Notify seller payout failed payout_id=%s seller_id=%s reason=%s",
            payout.id,
            payout.seller_id,
            reason,
            extra={"payout_id": payout.id, "seller_id": payout.seller_id},
        )
