"""
Fan one reconciliation out across every enabled Tripletex environment.

Environments run sequentially: they all share one Rubic client and its rate
limits. Each environment is its own failure domain: a client that cannot be
built, a source fetch that fails or an unexpected engine exception is
recorded as {processed: 0, failed: -1} for that environment only, and the
next environment is still attempted.
"""
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List

from rubicsync.clients.rubic import RubicClient
from rubicsync.clients.tripletex import TripletexClient
from rubicsync.config import TargetEnvironment
from rubicsync.errors import ConfigurationError
from rubicsync.models.sync import EntityType
from rubicsync.sync.engine import ReconciliationEngine, SyncResult
from rubicsync.sync.runs import DEFAULT_STALE_AFTER

logger = logging.getLogger(__name__)


@dataclass
class OrchestrationReport:
    entity_type: EntityType
    results: Dict[str, SyncResult] = field(default_factory=dict)
    # True once at least one environment got far enough to run the engine.
    success: bool = False
    errors: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "entity_type": self.entity_type.value,
            "results": {
                env: {**r.as_dict(), "outcome": r.outcome.value}
                for env, r in self.results.items()
            },
        }


async def run_environments(
    source,
    environments: List[TargetEnvironment],
    entity_type,
    db_engine,
    *,
    target_factory: Callable[[TargetEnvironment], object] = TripletexClient.for_environment,
    stale_after: timedelta = DEFAULT_STALE_AFTER,
) -> OrchestrationReport:
    """Reconcile entity_type into each environment in turn.

    Args:
        source: Shared RubicClient.
        environments: Enabled, already-validated target environments.
        entity_type: EntityType (or its string value).
        db_engine: SQLAlchemy engine for mappings and sync runs.
        target_factory: Builds the Tripletex client for one environment.

    Raises:
        ConfigurationError: if no environment is enabled.
    """
    entity_type = EntityType(entity_type)
    if not environments:
        raise ConfigurationError("No Tripletex environment is configured")

    report = OrchestrationReport(entity_type=entity_type)
    for env in environments:
        try:
            target = target_factory(env)
        except Exception as exc:
            logger.error("Could not build Tripletex client for %s: %s", env.name, exc)
            report.results[env.name] = SyncResult.errored(str(exc))
            report.errors[env.name] = str(exc)
            continue

        report.success = True
        engine = ReconciliationEngine(
            source, target, db_engine, env.name, stale_after=stale_after
        )
        try:
            result = await engine.reconcile(entity_type)
        except Exception as exc:
            logger.error("%s sync failed for %s: %s", entity_type.value, env.name, exc)
            result = SyncResult.errored(str(exc))

        report.results[env.name] = result
        if result.error:
            report.errors[env.name] = result.error

    return report


async def run_configured(entity_type, db_engine, settings) -> OrchestrationReport:
    """Build clients from settings and run every enabled environment.

    Raises:
        ConfigurationError: if an endpoint is invalid or nothing is enabled.
    """
    source = RubicClient.from_endpoint(settings.source_endpoint())
    return await run_environments(
        source,
        settings.target_environments(),
        entity_type,
        db_engine,
        stale_after=timedelta(minutes=settings.stale_run_minutes),
    )
