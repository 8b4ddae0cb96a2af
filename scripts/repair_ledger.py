#!/usr/bin/env python3
"""
Replay donation reconciliation.

Campaign totals and donor statistics are derived from confirmed donations.
If an aggregate update failed after a donation was recorded, this script
credits it now. Every donation is credited at most once per aggregate, so
the script can be run any number of times.

Usage:
    python scripts/repair_ledger.py                   # Credit uncredited donations
    python scripts/repair_ledger.py --rebuild-users   # Also recompute donor totals
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from pakchain.config.constants import REPAIR_BATCH_SIZE
from pakchain.config.settings import settings
from pakchain.services.donation.ledger_repair_service import LedgerRepairService
from pakchain.utils.database import create_engine, create_session_maker


# Configure logger
logger.remove()
logger.add(sys.stderr, level=settings.log_level, format="{time:HH:mm:ss} | {level} | {message}")


async def repair_ledger(batch_size: int, rebuild_users: bool) -> bool:
    """Replay reconciliation until no uncredited donation is left."""
    engine = create_engine(null_pool=True)
    session_maker = create_session_maker(engine)
    ok = True

    try:
        async with session_maker() as session:
            service = LedgerRepairService(session)

            while True:
                result = await service.replay_uncredited(limit=batch_size)
                if not result.success:
                    # Stop instead of looping over the same failing rows
                    logger.error(f"Replay stopped: {result.error}")
                    ok = False
                    break
                if result.data["processed"] < batch_size:
                    break

            if rebuild_users:
                await service.rebuild_all_user_totals(batch_size=batch_size)
    finally:
        await engine.dispose()

    return ok


def main():
    parser = argparse.ArgumentParser(
        description="Credit confirmed donations missing from aggregates"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=REPAIR_BATCH_SIZE,
        help="Donations per replay batch",
    )
    parser.add_argument(
        "--rebuild-users",
        action="store_true",
        help="Recompute every donor's totals from confirmed donations",
    )
    args = parser.parse_args()

    logger.info("Starting ledger repair...")
    ok = asyncio.run(
        repair_ledger(batch_size=args.batch_size, rebuild_users=args.rebuild_users)
    )
    if not ok:
        sys.exit(1)
    logger.info("Done.")


if __name__ == "__main__":
    main()
