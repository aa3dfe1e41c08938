import csv
import io

from app.core.config import settings
from app.core.money import to_major_units
from app.schemas.payouts import PayoutBatch

CSV_HEADERS = [
    "Payout ID",
    "Seller Email",
    "Seller Name",
    "Amount",
    "Bank Name",
    "Account Number",
    "Branch Code",
    "Account Holder",
    "Account Type",
    "Reference",
]


def payout_reference(payout_id: str) -> str:
    """Bank reference for a payout; independent of the batch it travels in."""
    return f"{settings.payout_reference_prefix}_{payout_id[-8:].upper()}"


def render_batch_csv(batch: PayoutBatch) -> str:
    """Bank upload file: one row per payout, full account numbers, amounts in major units."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for item in batch.items:
        writer.writerow(
            [
                item.payout_id,
                item.seller_email,
                item.seller_name,
                f"{to_major_units(item.amount)}",
                item.bank_name,
                item.account_number_full,
                item.branch_code,
                item.account_holder,
                item.account_type,
                payout_reference(item.payout_id),
            ]
        )
    return buffer.getvalue()
