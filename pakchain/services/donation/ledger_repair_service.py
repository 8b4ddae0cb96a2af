"""
Ledger repair service.

The donation table is the source of truth; campaign totals and donor
statistics are derived from it. This service replays reconciliation for
confirmed donations an aggregate has not absorbed yet, and recomputes
donor statistics from scratch when needed.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from pakchain.config.constants import REPAIR_BATCH_SIZE
from pakchain.repositories.donation_repository import DonationRepository
from pakchain.repositories.user_repository import UserRepository
from pakchain.services.base_service import (
    BaseService,
    ServiceResult,
    transaction,
)
from pakchain.services.donation.reconciliation_recorder import (
    LedgerEntry,
    ReconciliationRecorder,
)
from pakchain.utils.amounts import format_ether
from pakchain.utils.security import mask_address, mask_tx_hash


class LedgerRepairService(BaseService):
    """Brings derived aggregates back in line with confirmed donations."""

    def __init__(
        self,
        session: AsyncSession,
        recorder: ReconciliationRecorder | None = None,
        donation_repo: DonationRepository | None = None,
        user_repo: UserRepository | None = None,
    ) -> None:
        super().__init__(session)
        self.donation_repo = donation_repo or DonationRepository(session)
        self.user_repo = user_repo or UserRepository(session)
        self.recorder = recorder or ReconciliationRecorder(
            session,
            donation_repo=self.donation_repo,
            user_repo=self.user_repo,
        )

    async def replay_uncredited(
        self, limit: int = REPAIR_BATCH_SIZE
    ) -> ServiceResult:
        """
        Credit confirmed donations whose markers are still unset.

        Args:
            limit: Max donations to process in this run

        Returns:
            ServiceResult with ``processed``, ``repaired`` and ``failed`` counts
        """
        donations = [
            LedgerEntry.of(donation)
            for donation in await self.donation_repo.find_uncredited(limit=limit)
        ]
        self.logger.info(
            f"Replaying reconciliation for {len(donations)} donation(s)"
        )

        repaired = 0
        failed = 0
        for entry in donations:
            warnings = await self.recorder.reconcile(entry)
            if warnings:
                failed += 1
                for warning in warnings:
                    self.logger.warning(
                        f"Replay of {mask_tx_hash(entry.transaction_hash)} "
                        f"incomplete at step {warning.step}: {warning}"
                    )
            else:
                repaired += 1

        stats = {
            "processed": len(donations),
            "repaired": repaired,
            "failed": failed,
        }
        if failed:
            self.logger.warning(f"Ledger replay finished with failures: {stats}")
            return ServiceResult(
                success=False,
                data=stats,
                error=f"{failed} donation(s) could not be fully reconciled",
                error_code="RECONCILIATION_PARTIAL",
            )

        self.logger.success(f"Ledger replay finished: {stats}")
        return ServiceResult(success=True, data=stats)

    @transaction
    async def rebuild_user_totals(self, user_id: str) -> ServiceResult:
        """
        Recompute a donor's statistics from their confirmed donations.

        Marks those donations as absorbed by the donor total first, then
        locks the donor row and sums the marked rows. A donation credited
        concurrently is either committed before the sum (and counted) or
        still waiting on the lock (and added on top afterwards).

        Args:
            user_id: User ID

        Returns:
            ServiceResult with the recomputed totals
        """
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            return ServiceResult(
                success=False, error="User not found", error_code="NOT_FOUND"
            )
        wallet = user.wallet_address
        if not wallet:
            return ServiceResult(success=True, data={"total_donated": "0"})

        marked = await self.donation_repo.mark_donor_credited_for_wallet(wallet)
        await self.user_repo.get_for_update(user_id)
        total, count, first_at = (
            await self.donation_repo.get_credited_totals_for_wallet(wallet)
        )
        await self.user_repo.set_totals(user_id, total, count, first_at)

        self.logger.info(
            f"Rebuilt totals for {mask_address(wallet)}: "
            f"{format_ether(total)} ETH over {count} donation(s), "
            f"{len(marked)} newly marked"
        )
        return ServiceResult(
            success=True,
            data={"total_donated": total, "donation_count": count},
        )

    async def rebuild_all_user_totals(
        self, batch_size: int = REPAIR_BATCH_SIZE
    ) -> ServiceResult:
        """Recompute statistics for every donor with a wallet."""
        rebuilt = 0
        offset = 0
        while True:
            user_ids = [
                user.id
                for user in await self.user_repo.find_with_wallet(
                    limit=batch_size, offset=offset
                )
            ]
            if not user_ids:
                break
            for user_id in user_ids:
                result = await self.rebuild_user_totals(user_id)
                if result.success:
                    rebuilt += 1
            offset += len(user_ids)

        self.logger.success(f"Rebuilt totals for {rebuilt} donor(s)")
        return ServiceResult(success=True, data={"rebuilt": rebuilt})
