#!/usr/bin/env python3
"""
Re-verify pending donations.

Donations whose transfer was sent but could not be verified in time are
stored as pending. This script checks them against the chain again:

1. Verified -> recorded and credited
2. Permanently failing (reverted, wrong recipient/amount) -> failed
3. Still not indexed -> left pending for the next run

Usage:
    python scripts/verify_pending_donations.py
    python scripts/verify_pending_donations.py --limit 500
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from pakchain.config.constants import PENDING_VERIFICATION_BATCH_SIZE
from pakchain.config.settings import settings
from pakchain.services.blockchain.chain_gateway import Web3ChainGateway
from pakchain.services.donation.donation_service import DonationService
from pakchain.utils.database import create_engine, create_session_maker


# Configure logger
logger.remove()
logger.add(sys.stderr, level=settings.log_level, format="{time:HH:mm:ss} | {level} | {message}")


async def verify_pending_donations(limit: int) -> dict:
    """Run one verification pass over pending donations."""
    engine = create_engine(null_pool=True)
    session_maker = create_session_maker(engine)
    gateway = Web3ChainGateway.from_settings()

    try:
        await gateway.ensure_chain()
        async with session_maker() as session:
            service = DonationService(session, gateway)
            result = await service.verify_pending(limit=limit)
    finally:
        await engine.dispose()

    return result.data


def main():
    parser = argparse.ArgumentParser(
        description="Re-verify pending donations against the chain"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=PENDING_VERIFICATION_BATCH_SIZE,
        help="Max donations to check in this run",
    )
    args = parser.parse_args()

    logger.info("Starting pending donation verification...")
    stats = asyncio.run(verify_pending_donations(limit=args.limit))
    logger.info(
        f"Done. confirmed={stats['confirmed']}, failed={stats['failed']}, "
        f"still pending={stats['pending']}, skipped={stats['skipped']}"
    )


if __name__ == "__main__":
    main()
