"""
ReconciliationEngine: one reconciliation pass for one (entity type, environment).

Flow for reconcile(entity_type):
  1. Take the run lease: SyncRunRecorder.start() returns None if a live run
     exists for this pair → no-op result (ALREADY_RUNNING).
  2. Fetch the complete source set. On failure the run is marked failed and
     the sentinel {processed: 0, failed: -1} is returned.
  3. For each source entity:
       no mapping          → create in Tripletex, then write the mapping
       hash differs/absent → update by stored target id, then rewrite hash
       hash equal          → skip (no call, no counter, no timestamp change)
     A failure on one entity is counted and logged; the loop continues.
  4. Finish the run: failed if any record failed, success otherwise.

Payments are a second phase over invoice mappings: only invoices that are
mapped and not yet flagged payment_synced are candidates. A registered
payment flips the flag; nothing else on the invoice mapping changes.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

from rubicsync import mappers
from rubicsync.models.mapping import InvoiceMapping
from rubicsync.models.sync import EntityType, SyncRun
from rubicsync.sync.handlers import HANDLERS, EntityHandler
from rubicsync.sync.runs import DEFAULT_STALE_AFTER, SyncRunRecorder
from rubicsync.sync.store import MappingStore

logger = logging.getLogger(__name__)


class SyncOutcome(str, Enum):
    COMPLETED = "completed"
    ALREADY_RUNNING = "already_running"
    FETCH_FAILED = "fetch_failed"
    ERROR = "error"


@dataclass(frozen=True)
class SyncResult:
    processed: int
    failed: int
    outcome: SyncOutcome = SyncOutcome.COMPLETED
    error: Optional[str] = None

    @classmethod
    def already_running(cls) -> "SyncResult":
        return cls(0, 0, SyncOutcome.ALREADY_RUNNING)

    @classmethod
    def fetch_failed(cls, error: str) -> "SyncResult":
        return cls(0, -1, SyncOutcome.FETCH_FAILED, error)

    @classmethod
    def errored(cls, error: str) -> "SyncResult":
        return cls(0, -1, SyncOutcome.ERROR, error)

    def as_dict(self) -> Dict[str, int]:
        return {"processed": self.processed, "failed": self.failed}


class ReconciliationEngine:
    """Reconciles Rubic entities into one Tripletex environment."""

    def __init__(
        self,
        source,
        target,
        db_engine,
        environment: str,
        *,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ):
        """
        Args:
            source: RubicClient (or AsyncMock in tests).
            target: TripletexClient for this environment (or AsyncMock).
            db_engine: SQLAlchemy engine holding mappings and sync runs.
            environment: Environment identifier, e.g. "production".
            stale_after: Age after which a running SyncRun counts as abandoned.
        """
        self.source = source
        self.target = target
        self.db_engine = db_engine
        self.environment = environment
        self.runs = SyncRunRecorder(db_engine, stale_after=stale_after)

    async def reconcile(self, entity_type) -> SyncResult:
        entity_type = EntityType(entity_type)
        watermark = self._watermark(entity_type)

        run = self.runs.start(entity_type, self.environment)
        if run is None:
            logger.info(
                "%s sync already running for %s, skipping", entity_type.value, self.environment
            )
            return SyncResult.already_running()

        logger.info("Starting %s sync for %s (run %s)", entity_type.value, self.environment, run.id)

        if entity_type is EntityType.PAYMENTS:
            return await self._reconcile_payments(run, watermark)

        handler = HANDLERS[entity_type]()
        try:
            handler.prepare(self.db_engine, self.environment)
            entities = await handler.fetch(
                self.source, watermark if handler.incremental else None, datetime.utcnow()
            )
        except Exception as exc:
            return self._fetch_failed(run, entity_type, exc)

        processed = failed = 0
        try:
            store = MappingStore(self.db_engine, handler.mapping_model, self.environment)
            for raw in entities:
                source_id = handler.source_id(raw)
                if source_id is None:
                    logger.debug("Skipping %s entity without identifier", entity_type.value)
                    continue
                try:
                    if await self._reconcile_one(handler, store, source_id, raw):
                        processed += 1
                except Exception as exc:
                    failed += 1
                    logger.error(
                        "Failed to sync %s %s to %s: %s",
                        entity_type.value, source_id, self.environment, exc,
                    )
        except Exception as exc:
            self.runs.fail(run, str(exc), processed=processed, failed=failed)
            raise

        return self._finish(run, entity_type, processed, failed)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _reconcile_one(
        self,
        handler: EntityHandler,
        store: MappingStore,
        source_id: str,
        raw: Dict[str, Any],
    ) -> bool:
        """Bring one entity up to date. Returns True if Tripletex was written."""
        new_hash = handler.hash(raw)
        mapping = store.lookup(source_id)

        if mapping is None:
            target_id = await handler.create(self.target, raw)
            store.upsert(
                source_id, target_id, new_hash, datetime.utcnow(), **handler.mapping_extra(raw)
            )
            logger.info(
                "Created %s %s as %s in %s",
                handler.entity_type.value, source_id, target_id, self.environment,
            )
            return True

        if mapping.hash == new_hash:
            logger.debug("%s %s unchanged, skipping", handler.entity_type.value, source_id)
            return False

        if not handler.updatable:
            logger.warning(
                "%s %s changed in Rubic after it was synced as %s; left unchanged",
                handler.entity_type.value, source_id, mapping.target_id,
            )
            return False

        await handler.update(self.target, mapping.target_id, raw)
        store.upsert(source_id, mapping.target_id, new_hash, datetime.utcnow())
        logger.info(
            "Updated %s %s (%s) in %s",
            handler.entity_type.value, source_id, mapping.target_id, self.environment,
        )
        return True

    async def _reconcile_payments(self, run: SyncRun, watermark: Optional[datetime]) -> SyncResult:
        store = MappingStore(self.db_engine, InvoiceMapping, self.environment)
        try:
            candidates = {m.source_id: m for m in store.unpaid()}
            transactions: List[Dict[str, Any]] = await self.source.fetch_invoice_transactions(
                _payments_start(watermark, candidates.values()), datetime.utcnow()
            )
        except Exception as exc:
            return self._fetch_failed(run, EntityType.PAYMENTS, exc)

        processed = failed = 0
        for tx in transactions:
            invoice_id = str(tx.get("invoiceID"))
            mapping = candidates.get(invoice_id)
            if mapping is None:
                logger.debug(
                    "Skipping transaction %s: invoice %s not mapped or already paid",
                    tx.get("invoiceTransactionID"), invoice_id,
                )
                continue
            try:
                await self.target.register_payment(
                    mapping.target_id, mappers.to_tripletex_payment(tx)
                )
                store.mark_payment_synced(invoice_id)
            except Exception as exc:
                failed += 1
                logger.error(
                    "Failed to register payment for invoice %s in %s: %s",
                    invoice_id, self.environment, exc,
                )
                continue
            del candidates[invoice_id]
            processed += 1
            logger.info(
                "Registered payment for invoice %s (%s) in %s",
                invoice_id, mapping.target_id, self.environment,
            )

        return self._finish(run, EntityType.PAYMENTS, processed, failed)

    def _watermark(self, entity_type: EntityType) -> Optional[datetime]:
        """Start of the incremental fetch window: start of the last successful run."""
        if entity_type not in (EntityType.INVOICES, EntityType.PAYMENTS):
            return None
        last = self.runs.last_success(entity_type, self.environment)
        return last.started_at if last else None

    def _fetch_failed(self, run: SyncRun, entity_type: EntityType, exc: Exception) -> SyncResult:
        logger.error(
            "%s sync for %s could not fetch source data: %s",
            entity_type.value, self.environment, exc,
        )
        self.runs.fail(run, str(exc))
        return SyncResult.fetch_failed(str(exc))

    def _finish(
        self, run: SyncRun, entity_type: EntityType, processed: int, failed: int
    ) -> SyncResult:
        self.runs.finish(run, processed=processed, failed=failed)
        logger.info(
            "%s sync for %s completed: processed=%d failed=%d",
            entity_type.value, self.environment, processed, failed,
        )
        return SyncResult(processed, failed)


def _payments_start(watermark: Optional[datetime], unpaid) -> Optional[datetime]:
    """Start of the transaction window for a payments run.

    Invoices mapped since the last successful payments run were not
    candidates when earlier windows were read, so the window reaches back to
    the earliest of their invoice dates. A newly mapped invoice without a
    date forces a full fetch.
    """
    if watermark is None:
        return None
    start = watermark
    for mapping in unpaid:
        if mapping.last_synced_at < watermark:
            continue
        if mapping.invoice_date is None:
            return None
        start = min(start, datetime.combine(mapping.invoice_date, time.min))
    return start
