"""
Fetch availability once for a restaurant and save it as a test fixture.

Usage:
    source .env && python scripts/fetch_slots.py RESTAURANT_ID YYYY-MM-DD PARTY_SIZE
"""

import asyncio
import json
import os
import sys
from dataclasses import asdict

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.adapters.dine_api_client import DineApiClient
from src.config import load_config
from src.domain.availability_error import classify_availability_error
from src.domain.slot_selection import group_by_meal_period, partition_by_notice

OUTPUT_DIR = "tests/fixtures"


async def main(restaurant_id: int, date: str, party_size: int) -> int:
    client = DineApiClient(load_config(), token_provider=lambda: os.environ.get("DINE_ACCESS_TOKEN"))
    try:
        response = await client.get_available_slots(restaurant_id, date, party_size)
    except Exception as exc:
        error = classify_availability_error(exc)
        print(f"{error.title}: {error.message}", file=sys.stderr)
        return 1

    partition = partition_by_notice(response.all_slots)
    print(f"{len(partition.available)} available, {len(partition.requires_notice)} need advance notice")
    for period, slots in group_by_meal_period(response.all_slots):
        print(f"  {period:<10} {' '.join(s.time for s in slots)}")

    output_path = os.path.join(OUTPUT_DIR, f"availability_{restaurant_id}_{date}_{party_size}.json")
    os.makedirs(OUTPUT_DIR, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(
            {
                "slots": [asdict(s) for s in response.slots],
                "allSlots": [asdict(s) for s in response.all_slots],
            },
            f,
            indent=2,
        )
    print(f"\nSaved to {output_path}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 4:
        print(__doc__, file=sys.stderr)
        sys.exit(2)
    sys.exit(asyncio.run(main(int(sys.argv[1]), sys.argv[2], int(sys.argv[3]))))
