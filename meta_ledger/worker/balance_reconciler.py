"""Balance Cache Reconciliation Background Worker

Periodically compares the balance cache against spendable lot sums.
Schedule it after the lot expiry sweep.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from meta_ledger.adapter.repositories import (
    SqlAlchemyBalanceCacheRepository,
    SqlAlchemyCreditLotRepository,
)
from meta_ledger.adapter.services import SqlAlchemyUnitOfWork
from meta_ledger.app.use_cases.ledger import ReconcileBalanceCache, ReconciliationResultDTO

logger = logging.getLogger(__name__)


class BalanceReconcilerWorker:
    """
    Background worker for balance cache reconciliation

    Features:
    - Compares cached balances against lot sums
    - Logs discrepancies for investigation
    - Optionally repairs the cache (RECONCILIATION_AUTO_REPAIR)
    - Can run once or continuously
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        auto_repair: Optional[bool] = None,
    ):
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        if auto_repair is None:
            auto_repair = ApplicationConfig.RECONCILIATION_AUTO_REPAIR
        self.auto_repair = auto_repair

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info(f"BalanceReconcilerWorker initialized (auto_repair={self.auto_repair})")

    async def run_once(self) -> ReconciliationResultDTO:
        if not ApplicationConfig.RECONCILIATION_ENABLED:
            logger.info("Balance reconciliation is disabled, skipping")
            return ReconciliationResultDTO(
                total_owners_checked=0,
                discrepancies_found=0,
                discrepancies=[],
                reconciliation_time=datetime.utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            use_case = ReconcileBalanceCache(
                uow=SqlAlchemyUnitOfWork(session),
                lot_repo=SqlAlchemyCreditLotRepository(session),
                balance_repo=SqlAlchemyBalanceCacheRepository(session),
            )

            result = await use_case.execute(repair=self.auto_repair)

            if result.is_err():
                logger.error(f"Reconciliation failed: {result.error.message}")
                raise RuntimeError(f"Reconciliation failed: {result.error.message}")

            response = result.value
            if response.discrepancies_found > 0:
                logger.error(f"ALERT: {response.discrepancies_found} balance cache discrepancies found!")
                for d in response.discrepancies:
                    logger.error(
                        f"  - Owner {d.owner_id}: expected={d.calculated_balance}, "
                        f"cached={d.cached_balance}, diff={d.discrepancy}, repaired={d.repaired}"
                    )

            return response

    async def run_forever(self, interval_seconds: int = 86400):
        logger.info(f"Starting continuous balance reconciliation with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Reconciliation cycle complete. "
                    f"Checked {result.total_owners_checked} owners, "
                    f"found {result.discrepancies_found} discrepancies "
                    f"in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Reconciliation cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("BalanceReconcilerWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        python -m meta_ledger.worker.balance_reconciler --once
        python -m meta_ledger.worker.balance_reconciler --once --repair
        python -m meta_ledger.worker.balance_reconciler --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=getattr(logging, str(ApplicationConfig.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Balance Cache Reconciliation Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--repair", action="store_true",
        help="Overwrite diverging cache rows with the lot sum"
    )
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.RECONCILIATION_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    args = parser.parse_args()

    worker = BalanceReconcilerWorker(auto_repair=True if args.repair else None)

    try:
        if args.once:
            result = await worker.run_once()
            print("Reconciliation complete:")
            print(f"  Total owners checked: {result.total_owners_checked}")
            print(f"  Discrepancies found: {result.discrepancies_found}")
            print(f"  Execution time: {result.execution_time_ms}ms")
            for d in result.discrepancies:
                print(
                    f"  - Owner {d.owner_id}: expected={d.calculated_balance}, "
                    f"cached={d.cached_balance}, diff={d.discrepancy}"
                )
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
