"""Periodic low-stock report for the active store.

Run standalone with ``python -m stockpilot.scheduler`` or through
``stockpilot watch``. Each run fetches the low and out-of-stock variants
of the active store and logs them; a failed run is logged and the next
one is attempted on schedule.
"""

import signal
import sys
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .api.stockpilot_client import StockPilotClient
from .models.product import StockStatus
from .services.app_store import AppStore
from .services.catalog_service import require_store
from .utils.config import get_config
from .utils.logger import get_scheduler_logger
from .utils.notifier import ERROR, INFO, LogNotifier, Notifier


def make_stock_job(
    client: StockPilotClient,
    app_store: AppStore,
    notifier: Optional[Notifier] = None,
) -> Callable[[], None]:
    """Create the low-stock report callable."""
    logger = get_scheduler_logger()

    def stock_job():
        logger.info("=" * 70)
        logger.info(f"Low-stock report started at {datetime.now()}")

        try:
            store = require_store(app_store)
            items = client.low_and_out_of_stock(store.store_id)
            out = [i for i in items if i.status == StockStatus.OUT_OF_STOCK]
            low = [i for i in items if i.status != StockStatus.OUT_OF_STOCK]

            logger.info(f"Store:         {store.store_name} ({store.store_id})")
            logger.info(f"  Low stock:    {len(low)}")
            logger.info(f"  Out of stock: {len(out)}")
            for item in items:
                logger.info(f"  {item.sku or item.variant_id}: {item.product_name} / {item.variant_name} "
                            f"-> {item.stock} ({item.status})")

            if notifier is not None:
                notifier.show(
                    f"{store.store_name}: {len(low)} low, {len(out)} out of stock",
                    ERROR if out else INFO,
                )

        except Exception as e:
            logger.error(f"Low-stock report failed: {str(e)}", exc_info=True)
            if notifier is not None:
                notifier.show(f"Low-stock report failed: {str(e)}", ERROR)

        logger.info("=" * 70)

    return stock_job


class StockWatchScheduler:
    """Blocking scheduler that repeats the low-stock report."""

    def __init__(
        self,
        client: Optional[StockPilotClient] = None,
        app_store: Optional[AppStore] = None,
        notifier: Optional[Notifier] = None,
        interval_minutes: Optional[int] = None,
    ):
        self.config = get_config()
        self.logger = get_scheduler_logger()
        self.client = client or StockPilotClient()
        self.app_store = app_store or AppStore.load(self.config.state_file)
        self.interval_minutes = interval_minutes or self.config.env.stock_watch_interval_minutes
        # Standalone runs have no terminal to print to; reports go to the log.
        self.notifier = notifier or LogNotifier(self.logger)
        self.stock_job = make_stock_job(self.client, self.app_store, self.notifier)

        self.scheduler = BlockingScheduler(timezone=self.config.scheduler.timezone)

    def _shutdown_handler(self, signum, frame):
        self.logger.info(f"Received shutdown signal ({signum}). Stopping scheduler...")
        self.scheduler.shutdown(wait=False)
        self.client.close()
        sys.exit(0)

    def add_jobs(self) -> None:
        self.scheduler.add_job(
            func=self.stock_job,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id="low_stock_report",
            name="Low-stock report",
            max_instances=self.config.scheduler.max_instances,
            coalesce=self.config.scheduler.coalesce,
            misfire_grace_time=self.config.scheduler.misfire_grace_time,
            replace_existing=True
        )

    def start(self):
        """Run one report now, then block and repeat every interval."""
        signal.signal(signal.SIGINT, self._shutdown_handler)
        signal.signal(signal.SIGTERM, self._shutdown_handler)

        self.logger.info("=" * 70)
        self.logger.info("StockPilot low-stock watch starting")
        self.logger.info(f"Environment:      {self.config.env.environment}")
        self.logger.info(f"Timezone:         {self.config.scheduler.timezone}")
        self.logger.info(f"Interval:         {self.interval_minutes} minutes")
        self.logger.info("=" * 70)

        self.add_jobs()
        self.stock_job()

        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            self.logger.info("Scheduler stopped.")


def main():
    """Main entry point for the standalone watcher."""
    try:
        StockWatchScheduler().start()
    except Exception as e:
        get_scheduler_logger().error(f"Scheduler failed to start: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
