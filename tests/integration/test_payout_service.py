from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.datetime_utils import as_utc
from app.core.enums import Gateway, PaymentMethod, PayoutStatus
from app.db.repositories import PayoutRepository, SellerRepository
from app.exceptions import (
    InvalidPayoutAmountException,
    MinimumOrderAmountException,
    PaymentAmountMismatchException,
    PayoutNotFoundException,
    SellerNotFoundException,
)
from app.services.payout_service import PayoutService
from tests.utils import PayoutFactory, SellerFactory


@pytest.mark.integration
class TestPayoutService:
    async def test_create_payout_moves_escrow_to_pending(
        self, db_session: AsyncSession
    ) -> None:
        seller = await SellerFactory.create(db_session, escrow_balance=44000)
        completed_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        payout = await PayoutService(db_session).create_payout(
            seller.id, 44000, completed_at=completed_at, order_id="order_001"
        )
        await db_session.commit()

        assert payout.status == PayoutStatus.PENDING
        assert payout.batch_id is None
        assert payout.currency == "ZAR"
        assert as_utc(payout.available_at) == completed_at + timedelta(days=7)

        refreshed = await SellerRepository(db_session).get_by_id(seller.id)
        assert refreshed.pending_balance == 44000
        assert refreshed.escrow_balance == 0

    async def test_escrow_never_goes_negative(self, db_session: AsyncSession) -> None:
        seller = await SellerFactory.create(db_session, escrow_balance=1000)

        await PayoutService(db_session).create_payout(seller.id, 5000)

        refreshed = await SellerRepository(db_session).get_by_id(seller.id)
        assert refreshed.escrow_balance == 0
        assert refreshed.pending_balance == 5000

    async def test_create_payout_unknown_seller(self, db_session: AsyncSession) -> None:
        with pytest.raises(SellerNotFoundException):
            await PayoutService(db_session).create_payout("missing", 5000)

    @pytest.mark.parametrize("amount", [0, -100])
    async def test_create_payout_rejects_non_positive(
        self, db_session: AsyncSession, amount: int
    ) -> None:
        seller = await SellerFactory.create(db_session)

        with pytest.raises(InvalidPayoutAmountException):
            await PayoutService(db_session).create_payout(seller.id, amount)

    async def test_get_payout_not_found(self, db_session: AsyncSession) -> None:
        with pytest.raises(PayoutNotFoundException):
            await PayoutService(db_session).get_payout("missing")

    async def test_seller_summary(
        self,
        db_session: AsyncSession,
        past_datetime: datetime,
        future_datetime: datetime,
    ) -> None:
        seller = await SellerFactory.create(db_session)
        await PayoutFactory.create(db_session, seller.id, 10000, available_at=future_datetime)
        await PayoutFactory.create(db_session, seller.id, 25000, available_at=past_datetime)
        await PayoutFactory.create(db_session, seller.id, 30000, available_at=past_datetime)
        processing = await PayoutFactory.create(db_session, seller.id, 40000)
        await PayoutRepository(db_session).claim_for_batch(
            processing.id, "BAT_test", {}, past_datetime
        )

        summary = await PayoutService(db_session).get_seller_summary(seller.id)

        assert summary.pending_count == 1
        assert summary.pending_amount == 10000
        assert summary.available_count == 2
        assert summary.available_amount == 55000
        assert summary.processing_count == 1
        assert summary.processing_amount == 40000

    async def test_seller_summary_unknown_seller(
        self, db_session: AsyncSession
    ) -> None:
        with pytest.raises(SellerNotFoundException):
            await PayoutService(db_session).get_seller_summary("missing")

    async def test_retry_resets_only_failed_payouts(
        self, db_session: AsyncSession, past_datetime: datetime
    ) -> None:
        seller = await SellerFactory.create(db_session)
        failed = await PayoutFactory.create(db_session, seller.id)
        pending = await PayoutFactory.create(db_session, seller.id)
        repo = PayoutRepository(db_session)
        await repo.claim_for_batch(failed.id, "BAT_test", {"bank_name": "FNB"}, past_datetime)
        await repo.mark_failed(failed.id, "BAT_test", "Account closed", past_datetime)

        result = await PayoutService(db_session).retry_failed(
            [failed.id, pending.id, "missing"]
        )

        assert result.reset_count == 1
        assert len(result.errors) == 2
        reset = await repo.get_by_id(failed.id)
        assert reset.status == PayoutStatus.PENDING
        assert reset.batch_id is None
        assert reset.failure_reason is None
        assert reset.bank_details_snapshot is None

    async def test_retry_waits_for_open_batch(self, db_session: AsyncSession) -> None:
        seller = await SellerFactory.create(db_session)
        rejected = await PayoutFactory.create(db_session, seller.id)
        in_flight = await PayoutFactory.create(db_session, seller.id)
        repo = PayoutRepository(db_session)
        now = datetime.now(timezone.utc)
        await repo.claim_for_batch(rejected.id, "BAT_open", {}, now)
        await repo.claim_for_batch(in_flight.id, "BAT_open", {}, now)
        await repo.mark_failed(rejected.id, "BAT_open", "Account closed", now)

        result = await PayoutService(db_session).retry_failed([rejected.id])

        assert result.reset_count == 0
        assert "BAT_open" in result.errors[0]
        still_failed = await repo.get_by_id(rejected.id)
        assert still_failed.status == PayoutStatus.FAILED
        assert still_failed.batch_id == "BAT_open"

        await repo.mark_paid(in_flight.id, "BAT_open", "FNB-1", now)
        result = await PayoutService(db_session).retry_failed([rejected.id])

        assert result.reset_count == 1
        assert result.errors == []


@pytest.mark.integration
class TestEscrowHold:
    async def test_hold_credits_seller_share(self, db_session: AsyncSession) -> None:
        seller = await SellerFactory.create(db_session)

        fees = await PayoutService(db_session).hold_escrow(
            seller.id,
            50000,
            Gateway.GATEWAY_A,
            PaymentMethod.CARD,
            received_amount=53785,
            order_id="order_001",
        )

        assert fees.gross_amount == 53785
        assert fees.seller_payout_amount == 44000
        refreshed = await SellerRepository(db_session).get_by_id(seller.id)
        assert refreshed.escrow_balance == 44000
        assert refreshed.pending_balance == 0

    async def test_hold_then_payout_releases_escrow(
        self, db_session: AsyncSession
    ) -> None:
        seller = await SellerFactory.create(db_session)
        service = PayoutService(db_session)

        fees = await service.hold_escrow(seller.id, 50000, "GATEWAY_A", "CARD")
        await service.create_payout(seller.id, fees.seller_payout_amount)

        refreshed = await SellerRepository(db_session).get_by_id(seller.id)
        assert refreshed.escrow_balance == 0
        assert refreshed.pending_balance == 44000

    async def test_hold_rejects_amount_mismatch(
        self, db_session: AsyncSession
    ) -> None:
        seller = await SellerFactory.create(db_session)

        with pytest.raises(PaymentAmountMismatchException) as exc_info:
            await PayoutService(db_session).hold_escrow(
                seller.id, 50000, Gateway.GATEWAY_A, PaymentMethod.CARD,
                received_amount=53784,
            )

        assert exc_info.value.details["expected_amount_cents"] == 53785
        refreshed = await SellerRepository(db_session).get_by_id(seller.id)
        assert refreshed.escrow_balance == 0

    async def test_hold_below_minimum_order(self, db_session: AsyncSession) -> None:
        seller = await SellerFactory.create(db_session)

        with pytest.raises(MinimumOrderAmountException):
            await PayoutService(db_session).hold_escrow(
                seller.id, 4999, Gateway.GATEWAY_A
            )

    async def test_hold_unknown_seller(self, db_session: AsyncSession) -> None:
        with pytest.raises(SellerNotFoundException):
            await PayoutService(db_session).hold_escrow(
                "missing", 50000, Gateway.GATEWAY_A
            )
