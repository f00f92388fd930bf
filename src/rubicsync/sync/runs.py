"""
SyncRunRecorder: lifecycle of SyncRun rows.

    start()  -> running row, or None if a live run already holds the lease
    finish() -> success / failed depending on the failure count
    fail()   -> failed with the run-level cause

A running row older than stale_after is considered abandoned (the process
died or was cut off by an execution deadline). start() marks it failed and
proceeds, so a crashed run never blocks its (entity type, environment) pair
forever.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlmodel import Session, select

from rubicsync.models.sync import EntityType, RunStatus, SyncRun

logger = logging.getLogger(__name__)

DEFAULT_STALE_AFTER = timedelta(hours=1)


class SyncRunRecorder:
    def __init__(self, engine, stale_after: timedelta = DEFAULT_STALE_AFTER):
        self.engine = engine
        self.stale_after = stale_after

    def start(
        self,
        entity_type: EntityType,
        environment: str,
        now: Optional[datetime] = None,
    ) -> Optional[SyncRun]:
        """Create a running row, or return None if a live run exists."""
        now = now or datetime.utcnow()
        with Session(self.engine) as s:
            live = s.exec(
                select(SyncRun).where(
                    SyncRun.entity_type == entity_type,
                    SyncRun.environment == environment,
                    SyncRun.status == RunStatus.RUNNING,
                )
            ).all()
            for run in live:
                if now - run.started_at < self.stale_after:
                    return None
            for run in live:
                logger.warning(
                    "Reaping stale %s run %s for %s (started %s)",
                    entity_type.value, run.id, environment, run.started_at.isoformat(),
                )
                run.status = RunStatus.FAILED
                run.completed_at = now
                run.error_message = "Abandoned: still running after %d minutes" % (
                    self.stale_after.total_seconds() // 60
                )
                s.add(run)

            run = SyncRun(
                entity_type=entity_type,
                environment=environment,
                status=RunStatus.RUNNING,
                started_at=now,
            )
            s.add(run)
            s.commit()
            s.refresh(run)
            return run

    def finish(self, run: SyncRun, *, processed: int, failed: int) -> SyncRun:
        """Terminal transition after the record loop. Counters are always kept."""
        if failed > 0:
            return self._complete(
                run,
                status=RunStatus.FAILED,
                processed=processed,
                failed=failed,
                error_message=f"{failed} record(s) failed to sync",
            )
        return self._complete(
            run, status=RunStatus.SUCCESS, processed=processed, failed=failed
        )

    def fail(
        self,
        run: SyncRun,
        error_message: str,
        *,
        processed: int = 0,
        failed: int = 0,
    ) -> SyncRun:
        return self._complete(
            run,
            status=RunStatus.FAILED,
            processed=processed,
            failed=failed,
            error_message=error_message,
        )

    def last_success(self, entity_type: EntityType, environment: str) -> Optional[SyncRun]:
        """Most recent successful run for this pair (used as a fetch watermark)."""
        with Session(self.engine) as s:
            return s.exec(
                select(SyncRun).where(
                    SyncRun.entity_type == entity_type,
                    SyncRun.environment == environment,
                    SyncRun.status == RunStatus.SUCCESS,
                ).order_by(SyncRun.started_at.desc())
            ).first()

    def _complete(
        self,
        run: SyncRun,
        *,
        status: RunStatus,
        processed: int,
        failed: int,
        error_message: Optional[str] = None,
    ) -> SyncRun:
        with Session(self.engine) as s:
            db_run = s.get(SyncRun, run.id)
            if db_run.completed_at is not None:
                # Already terminal (e.g. reaped as stale by another trigger).
                return db_run
            db_run.status = status
            db_run.records_processed = processed
            db_run.records_failed = failed
            db_run.completed_at = datetime.utcnow()
            db_run.error_message = error_message
            s.add(db_run)
            s.commit()
            s.refresh(db_run)
            return db_run
