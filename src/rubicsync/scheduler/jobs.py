"""
APScheduler job for the daily reconciliation.

Runs every entity type in dependency order: invoices need customer and
product mappings, payments need invoice mappings. Each step is a full
multi-environment orchestration; a failure in one step is logged and the
next step still runs (its own preconditions are checked per record).
"""
import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from rubicsync.config import get_settings
from rubicsync.models.sync import EntityType

logger = logging.getLogger(__name__)

SYNC_ORDER = (
    EntityType.CUSTOMERS,
    EntityType.PRODUCTS,
    EntityType.INVOICES,
    EntityType.PAYMENTS,
)


def build_scheduler(engine) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        engine: SQLAlchemy engine passed through to the orchestrator.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    settings = get_settings()
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _daily_sync,
        trigger="cron",
        hour=settings.sync_hour,
        minute=0,
        id="daily_sync",
        replace_existing=True,
        max_instances=1,
        kwargs={"engine": engine},
    )

    return scheduler


async def _daily_sync(engine) -> None:
    """Daily job: reconcile every entity type into every enabled environment."""
    from rubicsync.sync.orchestrator import run_configured

    settings = get_settings()
    logger.info("Daily sync starting at %s", datetime.utcnow().isoformat())

    for entity_type in SYNC_ORDER:
        try:
            report = await run_configured(entity_type, engine, settings)
            logger.info("Daily %s sync: %s", entity_type.value, report.as_dict())
        except Exception as exc:
            logger.error("Daily %s sync failed: %s", entity_type.value, exc)
