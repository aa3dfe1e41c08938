import asyncio
import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.core.datetime_utils import utc_now  # noqa: E402
from app.core.money import format_amount  # noqa: E402
from app.db import models  # noqa: E402,F401
from app.db.base import Base  # noqa: E402
from app.db.repositories import BankDetailsRepository, SellerRepository  # noqa: E402
from app.db.session import AsyncSessionLocal, engine  # noqa: E402
from app.services.fee_engine import calculate_fees  # noqa: E402
from app.services.payout_service import PayoutService  # noqa: E402

SELLERS = [
    ("thandi@example.com", "Thandi", "Mokoena", "First National Bank", "62812345678"),
    ("sipho@example.com", "Sipho", "Dlamini", "Capitec", "1500000001"),
    ("anele@example.com", "Anele", "Naidoo", None, None),
]

# (seller index, base amount in cents, days since completion)
ORDERS = [
    (0, 50000, 10),
    (0, 120000, 2),
    (1, 250000, 9),
    (1, 8000, 12),
    (2, 75000, 8),
]


async def seed_marketplace():
    """Creates the schema and seeds sellers, bank details and payouts.

    Each order is held in escrow as if the gateway had paid the full gross,
    then completed, which moves the seller's share to pending. Anele has no
    bank details, so her payout is skipped by batch creation.
    """
    print("Creating schema...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    now = utc_now()
    async with AsyncSessionLocal() as session:
        async with session.begin():
            seller_repo = SellerRepository(session)
            bank_repo = BankDetailsRepository(session)
            payout_service = PayoutService(session)

            seller_ids = []
            for email, first_name, last_name, bank_name, account_number in SELLERS:
                seller = await seller_repo.create_seller(email, first_name, last_name)
                seller_ids.append(seller.id)
                print(f"Seller: {seller.full_name} ({seller.id})")

                if bank_name:
                    await bank_repo.add_bank_details(
                        seller_id=seller.id,
                        bank_name=bank_name,
                        account_number=account_number,
                        branch_code="250655",
                        account_holder=f"{first_name[0]} {last_name}",
                        account_type="CHEQUE",
                    )

            print("-" * 60)
            for seller_index, base_amount, days_ago in ORDERS:
                fees = await payout_service.hold_escrow(
                    seller_ids[seller_index],
                    base_amount,
                    "GATEWAY_A",
                    "CARD",
                    received_amount=calculate_fees(
                        base_amount, "GATEWAY_A", "CARD"
                    ).gross_amount,
                )
                payout = await payout_service.create_payout(
                    seller_ids[seller_index],
                    fees.seller_payout_amount,
                    completed_at=now - timedelta(days=days_ago),
                )
                print(
                    f"Payout {payout.id}: {format_amount(payout.amount)} "
                    f"available {payout.available_at:%Y-%m-%d}"
                )

    await engine.dispose()
    print("-" * 60)
    print("Seed complete")


if __name__ == "__main__":
    asyncio.run(seed_marketplace())
