from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.datetime_utils import utc_now
from app.core.enums import BatchStatus, PayoutStatus
from app.db.repositories import PayoutRepository, SellerRepository
from app.schemas.payouts import BatchConfirmation
from app.services.payout_batch import PayoutBatchManager
from app.services.payout_service import PayoutService
from tests.utils import (
    BankDetailsFactory,
    PayoutFactory,
    SellerFactory,
    create_payable_seller,
)


class RecordingNotifier:
    def __init__(self) -> None:
        self.paid: list[str] = []
        self.failed: list[tuple[str, str]] = []

    async def payout_paid(self, payout) -> None:
        self.paid.append(payout.id)

    async def payout_failed(self, payout, reason: str) -> None:
        self.failed.append((payout.id, reason))


class BrokenNotifier:
    async def payout_paid(self, payout) -> None:
        raise RuntimeError("mail server down")

    async def payout_failed(self, payout, reason: str) -> None:
        raise RuntimeError("mail server down")


@pytest.mark.integration
class TestCreateBatch:
    async def test_claims_eligible_payouts(self, db_session: AsyncSession) -> None:
        seller, payout = await create_payable_seller(db_session, amount=20000)

        batch = await PayoutBatchManager(db_session).create_batch()

        assert batch is not None
        assert batch.batch_id.startswith("BAT_")
        assert batch.payout_count == 1
        assert batch.total_amount == 20000
        item = batch.items[0]
        assert item.payout_id == payout.id
        assert item.seller_name == "Thandi Mokoena"
        assert item.account_number == "****5678"
        assert item.account_number_full == "62812345678"

        claimed = await PayoutRepository(db_session).get_by_id(payout.id)
        assert claimed.status == PayoutStatus.PROCESSING
        assert claimed.batch_id == batch.batch_id
        assert claimed.bank_details_snapshot["account_number"] == "62812345678"

    async def test_ignores_ineligible_payouts(
        self, db_session: AsyncSession, future_datetime: datetime
    ) -> None:
        seller = await SellerFactory.create(db_session)
        await BankDetailsFactory.create(db_session, seller.id)
        await PayoutFactory.create(db_session, seller.id, amount=9999)
        await PayoutFactory.create(
            db_session, seller.id, amount=50000, available_at=future_datetime
        )

        assert await PayoutBatchManager(db_session).create_batch() is None

    async def test_payout_min_boundary(self, db_session: AsyncSession) -> None:
        await create_payable_seller(db_session, amount=10000)

        batch = await PayoutBatchManager(db_session).create_batch()

        assert batch is not None
        assert batch.total_amount == 10000

    async def test_skips_sellers_without_bank_details(
        self, db_session: AsyncSession
    ) -> None:
        await create_payable_seller(db_session, amount=20000)
        await create_payable_seller(db_session, amount=30000)
        no_bank = await SellerFactory.create(db_session)
        skipped = await PayoutFactory.create(db_session, no_bank.id, amount=40000)

        batch = await PayoutBatchManager(db_session).create_batch()

        assert batch.payout_count == 2
        assert skipped.id not in {item.payout_id for item in batch.items}
        still_pending = await PayoutRepository(db_session).get_by_id(skipped.id)
        assert still_pending.status == PayoutStatus.PENDING
        assert still_pending.batch_id is None

    async def test_second_batch_finds_nothing(self, db_session: AsyncSession) -> None:
        await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session)

        assert await manager.create_batch() is not None
        assert await manager.create_batch() is None

    async def test_payout_claimed_elsewhere_is_not_batched_twice(
        self, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _, first = await create_payable_seller(db_session, amount=20000)
        _, second = await create_payable_seller(db_session, amount=30000)
        repo = PayoutRepository(db_session)
        stale = await repo.find_eligible(utc_now(), 10000)

        # Another batch claims the first payout after the candidates were read.
        assert await repo.claim_for_batch(first.id, "BAT_other", {}, utc_now())

        manager = PayoutBatchManager(db_session)
        monkeypatch.setattr(
            manager.payout_repo, "find_eligible", AsyncMock(return_value=stale)
        )
        batch = await manager.create_batch()

        assert [item.payout_id for item in batch.items] == [second.id]
        assert (await repo.get_by_id(first.id)).batch_id == "BAT_other"

    async def test_concurrent_batches_claim_each_payout_once(
        self,
        db_session: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        _, first = await create_payable_seller(db_session, amount=20000)
        _, second = await create_payable_seller(db_session, amount=30000)
        await db_session.commit()

        # Both callers read the same candidates before either claims.
        late_repo = PayoutRepository(db_session)
        candidates = await late_repo.find_eligible(utc_now(), 10000)

        async with session_factory() as other:
            async with other.begin():
                winner = await PayoutBatchManager(other).create_batch()

        late_claims = [
            await late_repo.claim_for_batch(payout.id, "BAT_late", {}, utc_now())
            for payout in candidates
        ]

        assert len(candidates) == 2
        assert {item.payout_id for item in winner.items} == {first.id, second.id}
        assert late_claims == [False, False]
        for payout in (first, second):
            claimed = await late_repo.get_by_id(payout.id)
            assert claimed.batch_id == winner.batch_id

    async def test_get_batch_rebuilds_from_snapshot(
        self, db_session: AsyncSession
    ) -> None:
        seller, _ = await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session)
        batch = await manager.create_batch()
        await BankDetailsFactory.create(
            db_session, seller.id, bank_name="Capitec", account_number="1500000001"
        )

        rebuilt = await manager.get_batch(batch.batch_id)

        assert rebuilt.batch_id == batch.batch_id
        assert rebuilt.items[0].bank_name == "First National Bank"
        assert rebuilt.items[0].account_number_full == "62812345678"
        assert await manager.get_batch("BAT_missing") is None


@pytest.mark.integration
class TestConfirmBatch:
    async def test_confirm_is_idempotent(self, db_session: AsyncSession) -> None:
        seller, payout = await create_payable_seller(
            db_session, amount=20000, pending_balance=50000
        )
        notifier = RecordingNotifier()
        manager = PayoutBatchManager(db_session, notifier=notifier)
        batch = await manager.create_batch()
        confirmations = [BatchConfirmation(payout_id=payout.id, external_ref="FNB-001")]

        first = await manager.confirm_batch(batch.batch_id, confirmations)
        second = await manager.confirm_batch(batch.batch_id, confirmations)

        assert first.success is True
        assert first.confirmed_count == 1
        assert first.failed_count == 0
        assert second.success is False
        assert second.confirmed_count == 0
        assert second.failed_count == 1
        assert "not in PROCESSING status" in second.errors[0]
        assert notifier.paid == [payout.id]

        paid = await PayoutRepository(db_session).get_by_id(payout.id)
        assert paid.status == PayoutStatus.PAID
        assert paid.external_ref == "FNB-001"
        refreshed = await SellerRepository(db_session).get_by_id(seller.id)
        assert refreshed.pending_balance == 30000

    async def test_confirm_rejects_payouts_from_other_batches(
        self, db_session: AsyncSession
    ) -> None:
        _, payout = await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session)
        await manager.create_batch()

        result = await manager.confirm_batch(
            "BAT_other",
            [
                BatchConfirmation(payout_id=payout.id, external_ref="REF"),
                BatchConfirmation(payout_id="missing", external_ref="REF"),
            ],
        )

        assert result.confirmed_count == 0
        assert result.failed_count == 2
        assert (await PayoutRepository(db_session).get_by_id(payout.id)).status == (
            PayoutStatus.PROCESSING
        )

    async def test_notifier_failure_does_not_block_confirmation(
        self, db_session: AsyncSession
    ) -> None:
        _, payout = await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session, notifier=BrokenNotifier())
        batch = await manager.create_batch()

        result = await manager.confirm_batch(
            batch.batch_id, [BatchConfirmation(payout_id=payout.id, external_ref="REF")]
        )

        assert result.confirmed_count == 1

    async def test_pending_balance_floors_at_zero(
        self, db_session: AsyncSession
    ) -> None:
        seller, payout = await create_payable_seller(
            db_session, amount=20000, pending_balance=5000
        )
        manager = PayoutBatchManager(db_session)
        batch = await manager.create_batch()

        await manager.confirm_batch(
            batch.batch_id, [BatchConfirmation(payout_id=payout.id, external_ref="REF")]
        )

        refreshed = await SellerRepository(db_session).get_by_id(seller.id)
        assert refreshed.pending_balance == 0


@pytest.mark.integration
class TestFailBatch:
    async def test_fail_leaves_balances_untouched(
        self, db_session: AsyncSession
    ) -> None:
        seller, payout = await create_payable_seller(db_session, amount=20000)
        before = await SellerRepository(db_session).get_by_id(seller.id)
        balance, pending = before.balance, before.pending_balance
        notifier = RecordingNotifier()
        manager = PayoutBatchManager(db_session, notifier=notifier)
        batch = await manager.create_batch()

        result = await manager.fail_batch(batch.batch_id, "Account closed")

        assert result.failed_count == 1
        assert notifier.failed == [(payout.id, "Account closed")]
        failed = await PayoutRepository(db_session).get_by_id(payout.id)
        assert failed.status == PayoutStatus.FAILED
        assert failed.failure_reason == "Account closed"
        after = await SellerRepository(db_session).get_by_id(seller.id)
        assert (after.balance, after.pending_balance) == (balance, pending)

    async def test_fail_selected_payouts_only(self, db_session: AsyncSession) -> None:
        _, first = await create_payable_seller(db_session)
        _, second = await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session)
        batch = await manager.create_batch()

        result = await manager.fail_batch(
            batch.batch_id, "Invalid branch code", payout_ids=[second.id, "missing"]
        )

        assert result.failed_count == 1
        repo = PayoutRepository(db_session)
        assert (await repo.get_by_id(first.id)).status == PayoutStatus.PROCESSING
        assert (await repo.get_by_id(second.id)).status == PayoutStatus.FAILED

    async def test_fail_skips_paid_payouts(self, db_session: AsyncSession) -> None:
        _, payout = await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session)
        batch = await manager.create_batch()
        await manager.confirm_batch(
            batch.batch_id, [BatchConfirmation(payout_id=payout.id, external_ref="REF")]
        )

        result = await manager.fail_batch(batch.batch_id, "Too late")

        assert result.failed_count == 0

    async def test_failed_payouts_need_explicit_retry(
        self, db_session: AsyncSession
    ) -> None:
        _, payout = await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session)
        batch = await manager.create_batch()
        await manager.fail_batch(batch.batch_id, "Account closed")

        assert await manager.create_batch() is None

        await PayoutService(db_session).retry_failed([payout.id])
        retried = await manager.create_batch()

        assert retried is not None
        assert retried.batch_id != batch.batch_id
        assert [item.payout_id for item in retried.items] == [payout.id]

    async def test_retry_keeps_open_batch_intact(
        self, db_session: AsyncSession
    ) -> None:
        _, rejected = await create_payable_seller(db_session)
        _, in_flight = await create_payable_seller(db_session)
        manager = PayoutBatchManager(db_session)
        batch = await manager.create_batch()
        await manager.fail_batch(
            batch.batch_id, "Account closed", payout_ids=[rejected.id]
        )

        result = await PayoutService(db_session).retry_failed([rejected.id])

        assert result.reset_count == 0
        summary = await manager.get_batch_status(batch.batch_id)
        assert summary.status == BatchStatus.PARTIALLY_CONFIRMED
        assert (summary.total_count, summary.failed_count) == (2, 1)
        rebuilt = await manager.get_batch(batch.batch_id)
        members = {item.payout_id for item in rebuilt.items}
        assert members == {rejected.id, in_flight.id}
        assert await manager.create_batch() is None


@pytest.mark.integration
class TestBatchStatus:
    async def _batch_of_three(self, db_session: AsyncSession):
        payouts = [
            (await create_payable_seller(db_session))[1] for _ in range(3)
        ]
        manager = PayoutBatchManager(db_session)
        batch = await manager.create_batch()
        return manager, batch.batch_id, payouts

    async def test_processing(self, db_session: AsyncSession) -> None:
        manager, batch_id, _ = await self._batch_of_three(db_session)

        summary = await manager.get_batch_status(batch_id)

        assert summary.status == BatchStatus.PROCESSING
        assert summary.processing_count == 3

    async def test_confirmed(self, db_session: AsyncSession) -> None:
        manager, batch_id, payouts = await self._batch_of_three(db_session)
        await manager.confirm_batch(
            batch_id,
            [
                BatchConfirmation(payout_id=p.id, external_ref=f"REF-{i}")
                for i, p in enumerate(payouts)
            ],
        )

        summary = await manager.get_batch_status(batch_id)

        assert summary.status == BatchStatus.CONFIRMED
        assert summary.paid_count == 3

    async def test_partially_confirmed(self, db_session: AsyncSession) -> None:
        manager, batch_id, payouts = await self._batch_of_three(db_session)
        await manager.confirm_batch(
            batch_id,
            [
                BatchConfirmation(payout_id=p.id, external_ref=f"REF-{i}")
                for i, p in enumerate(payouts[:2])
            ],
        )
        await manager.fail_batch(batch_id, "Rejected", payout_ids=[payouts[2].id])

        summary = await manager.get_batch_status(batch_id)

        assert summary.status == BatchStatus.PARTIALLY_CONFIRMED
        assert (summary.paid_count, summary.failed_count) == (2, 1)

    async def test_unknown_batch(self, db_session: AsyncSession) -> None:
        assert await PayoutBatchManager(db_session).get_batch_status("BAT_x") is None
