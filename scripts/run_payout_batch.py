import asyncio
import argparse
from pathlib import Path
from typing import Any, Dict, Optional

import httpx


class PayoutBatchRunner:
    def __init__(self, api_url: str, timeout: float = 30.0):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.endpoint = f"{self.api_url}/v1/payouts/batches"

    async def create_batch(self, client: httpx.AsyncClient) -> Optional[Dict[str, Any]]:
        response = await client.post(self.endpoint)

        if response.status_code == 201:
            return response.json()
        if response.status_code == 404:
            print("No eligible payouts; nothing to batch")
            return None

        raise RuntimeError(
            f"Batch creation failed - {response.status_code}: {response.text[:200]}"
        )

    async def download_csv(
        self, client: httpx.AsyncClient, batch_id: str, output_dir: Path
    ) -> Path:
        response = await client.get(f"{self.endpoint}/{batch_id}/csv")
        response.raise_for_status()

        output_dir.mkdir(parents=True, exist_ok=True)
        file_path = output_dir / f"payout-batch-{batch_id}.csv"
        file_path.write_text(response.text, encoding="utf-8")
        return file_path

    async def run(self, output_dir: Path) -> Optional[Path]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            batch = await self.create_batch(client)
            if batch is None:
                return None

            self.print_summary(batch)
            return await self.download_csv(client, batch["batch_id"], output_dir)

    def print_summary(self, batch: Dict[str, Any]):
        print("\n" + "=" * 60)
        print("PAYOUT BATCH")
        print("=" * 60)
        print(f"Batch ID:     {batch['batch_id']}")
        print(f"Payouts:      {batch['payout_count']}")
        print(f"Total:        {batch['total_amount'] / 100:.2f}")
        print("-" * 60)
        for item in batch["items"]:
            print(
                f"  {item['payout_id']}  {item['seller_email']:<30} "
                f"{item['amount'] / 100:>10.2f}  {item['bank_name']} {item['account_number']}"
            )


async def main():
    """Create a payout batch through the API and save its bank CSV."""
    parser = argparse.ArgumentParser(description="Create a payout batch and export its CSV")
    parser.add_argument(
        "--url",
        type=str,
        default="http://localhost:8000",
        help="Base URL of the API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="exports",
        help="Directory for the CSV file (default: exports)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )

    args = parser.parse_args()
    runner = PayoutBatchRunner(api_url=args.url, timeout=args.timeout)

    try:
        file_path = await runner.run(Path(args.output))
    except (httpx.HTTPError, RuntimeError) as e:
        print(f"\nError: {e}")
        exit(1)

    if file_path is not None:
        print(f"\nCSV written to {file_path}")
    exit(0)


if __name__ == "__main__":
    asyncio.run(main())
