"""Lot Expiry Sweeper Background Worker

Periodically zeroes out lots past their expiry and writes the matching
EXPIRE events. Can be run as a standalone script or from a scheduler.
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
    SqlAlchemyLedgerEventRepository,
)
from meta_ledger.adapter.services import SqlAlchemyLedgerStore, SqlAlchemyUnitOfWork
from meta_ledger.app.use_cases.ledger import SweepExpiredLots, SweepResultDTO

logger = logging.getLogger(__name__)


class LotExpirySweeperWorker:
    """
    Background worker for the lot expiry sweep

    Usage:
        # Run once
        worker = LotExpirySweeperWorker()
        result = await worker.run_once()

        # Run continuously
        await worker.run_forever(interval_seconds=86400)
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            batch_size: Lots fetched per query (defaults to ApplicationConfig.SWEEP_BATCH_SIZE)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.batch_size = batch_size or ApplicationConfig.SWEEP_BATCH_SIZE

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("LotExpirySweeperWorker initialized")

    async def run_once(self) -> SweepResultDTO:
        """
        Run the sweep once

        Returns:
            SweepResultDTO with sweep counts

        Raises:
            RuntimeError: The sweep could not run at all
        """
        if not ApplicationConfig.SWEEP_ENABLED:
            logger.info("Lot expiry sweep is disabled, skipping")
            return SweepResultDTO(
                lots_scanned=0,
                lots_expired=0,
                lots_failed=0,
                credits_written_off=0,
                sweep_time=datetime.utcnow(),
                execution_time_ms=0,
            )

        async with self.async_session_factory() as session:
            uow = SqlAlchemyUnitOfWork(session)
            lot_repo = SqlAlchemyCreditLotRepository(session)
            ledger_store = SqlAlchemyLedgerStore(
                uow,
                lot_repo,
                SqlAlchemyLedgerEventRepository(session),
                SqlAlchemyBalanceCacheRepository(session),
            )

            use_case = SweepExpiredLots(
                lot_repo=lot_repo,
                ledger_store=ledger_store,
                validity_days=ApplicationConfig.LOT_VALIDITY_DAYS,
                batch_size=self.batch_size,
            )

            result = await use_case.execute()

            if result.is_err():
                logger.error(f"Lot expiry sweep failed: {result.error.message}")
                raise RuntimeError(f"Lot expiry sweep failed: {result.error.message}")

            if result.value.lots_failed:
                logger.warning(
                    f"{result.value.lots_failed} lots could not be expired, "
                    f"they will be retried next run"
                )

            return result.value

    async def run_forever(self, interval_seconds: int = 86400):
        """
        Run the sweep continuously at the given interval

        Args:
            interval_seconds: Seconds between runs (default: 24 hours)
        """
        logger.info(f"Starting continuous lot expiry sweep with {interval_seconds}s interval")

        while True:
            try:
                result = await self.run_once()
                logger.info(
                    f"Sweep cycle complete. Expired {result.lots_expired} lots, "
                    f"wrote off {result.credits_written_off} in {result.execution_time_ms}ms"
                )
            except Exception as e:
                logger.error(f"Sweep cycle failed: {e}")

            await asyncio.sleep(interval_seconds)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("LotExpirySweeperWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Run once
        python -m meta_ledger.worker.lot_expiry_sweeper --once

        # Run continuously (default: ApplicationConfig.SWEEP_INTERVAL_SECONDS)
        python -m meta_ledger.worker.lot_expiry_sweeper --interval 3600
    """
    import argparse

    logging.basicConfig(
        level=getattr(logging, str(ApplicationConfig.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Lot Expiry Sweeper Worker")
    parser.add_argument("--once", action="store_true", help="Run once and exit")
    parser.add_argument(
        "--interval", type=int, default=ApplicationConfig.SWEEP_INTERVAL_SECONDS,
        help="Interval between runs in seconds"
    )
    parser.add_argument(
        "--batch-size", type=int, default=None,
        help="Lots fetched per query"
    )
    args = parser.parse_args()

    worker = LotExpirySweeperWorker(batch_size=args.batch_size)

    try:
        if args.once:
            result = await worker.run_once()
            print("Lot expiry sweep complete:")
            print(f"  Lots scanned: {result.lots_scanned}")
            print(f"  Lots expired: {result.lots_expired}")
            print(f"  Lots failed: {result.lots_failed}")
            print(f"  Credits written off: {result.credits_written_off}")
            print(f"  Execution time: {result.execution_time_ms}ms")
        else:
            await worker.run_forever(interval_seconds=args.interval)
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
