from prometheus_client import Counter

fee_calculations_total = Counter(
    "marketplace_fee_calculations_total",
    "Total fee quotes calculated",
    ["gateway", "method"],
)

payouts_total = Counter(
    "marketplace_payouts_total", "Total payout status transitions", ["status"]
)

payout_batches_total = Counter(
    "marketplace_payout_batches_total", "Total payout batch runs", ["outcome"]
)

payout_amount_cents_total = Counter(
    "marketplace_payout_amount_cents_total", "Total cents confirmed as paid out"
)
