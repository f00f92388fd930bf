"""
Main entrypoint.

Usage:
    python -m rubicsync                     # starts the daily scheduler
    python -m rubicsync sync customers      # one reconciliation, prints JSON
    uvicorn rubicsync.api.main:app --host 0.0.0.0 --port 8000  # trigger API
"""
import argparse
import asyncio
import json
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)

ENTITY_CHOICES = ("customers", "products", "invoices", "payments")


async def _run_once(entity_type: str) -> int:
    from rubicsync.config import get_settings
    from rubicsync.db.engine import get_engine
    from rubicsync.errors import ConfigurationError
    from rubicsync.sync.orchestrator import run_configured

    try:
        report = await run_configured(entity_type, get_engine(), get_settings())
    except ConfigurationError as exc:
        logger.error("Sync could not start: %s", exc)
        return 2

    print(json.dumps(report.as_dict(), indent=2))
    return 0 if report.success else 1


async def _run_scheduler() -> None:
    from rubicsync.config import get_settings
    from rubicsync.db.engine import get_engine
    from rubicsync.scheduler.jobs import build_scheduler

    settings = get_settings()
    # Fail fast on a bad configuration instead of at the first scheduled run.
    settings.source_endpoint()
    envs = settings.target_environments()
    if not envs:
        logger.error("No Tripletex environment configured. Set the *_CONSUMER_TOKEN/*_EMPLOYEE_TOKEN variables.")
        sys.exit(1)

    scheduler = build_scheduler(get_engine())
    scheduler.start()
    logger.info(
        "Scheduler started (daily sync at %02d:00 UTC) for %s",
        settings.sync_hour, ", ".join(e.name for e in envs),
    )
    try:
        await asyncio.Event().wait()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="rubicsync")
    sub = parser.add_subparsers(dest="command")
    sync_p = sub.add_parser("sync", help="run one reconciliation and exit")
    sync_p.add_argument("entity_type", choices=ENTITY_CHOICES)
    args = parser.parse_args(argv)

    if args.command == "sync":
        return asyncio.run(_run_once(args.entity_type))
    asyncio.run(_run_scheduler())
    return 0


if __name__ == "__main__":
    sys.exit(main())
