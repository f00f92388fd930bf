"""Tests for the SyncRun lifecycle and single-writer lease."""
from datetime import datetime, timedelta

import pytest
from sqlmodel import Session, select

from rubicsync.models.sync import EntityType, RunStatus, SyncRun
from rubicsync.sync.runs import SyncRunRecorder

T0 = datetime(2025, 3, 1, 2, 0)


@pytest.fixture
def recorder(engine):
    return SyncRunRecorder(engine, stale_after=timedelta(minutes=60))


def _all_runs(engine):
    with Session(engine) as s:
        return s.exec(select(SyncRun).order_by(SyncRun.id)).all()


class TestStart:
    def test_creates_running_row(self, recorder):
        run = recorder.start(EntityType.CUSTOMERS, "production", now=T0)
        assert run.id is not None
        assert run.status == RunStatus.RUNNING
        assert run.started_at == T0
        assert run.completed_at is None

    def test_live_run_blocks_same_pair(self, recorder, engine):
        recorder.start(EntityType.CUSTOMERS, "production", now=T0)
        assert recorder.start(EntityType.CUSTOMERS, "production", now=T0 + timedelta(minutes=5)) is None
        assert len(_all_runs(engine)) == 1

    def test_other_pairs_are_not_blocked(self, recorder):
        recorder.start(EntityType.CUSTOMERS, "production", now=T0)
        assert recorder.start(EntityType.CUSTOMERS, "sandbox", now=T0) is not None
        assert recorder.start(EntityType.PRODUCTS, "production", now=T0) is not None

    def test_stale_run_is_reaped(self, recorder, engine):
        old = recorder.start(EntityType.CUSTOMERS, "production", now=T0)
        new = recorder.start(EntityType.CUSTOMERS, "production", now=T0 + timedelta(minutes=61))

        assert new is not None and new.id != old.id
        runs = {r.id: r for r in _all_runs(engine)}
        assert runs[old.id].status == RunStatus.FAILED
        assert runs[old.id].error_message.startswith("Abandoned")
        assert runs[new.id].status == RunStatus.RUNNING


class TestFinish:
    def test_no_failures_is_success(self, recorder):
        run = recorder.start(EntityType.PRODUCTS, "production")
        done = recorder.finish(run, processed=4, failed=0)
        assert done.status == RunStatus.SUCCESS
        assert done.records_processed == 4
        assert done.error_message is None
        assert done.completed_at is not None

    def test_any_failure_is_failed_with_counters(self, recorder):
        run = recorder.start(EntityType.PRODUCTS, "production")
        done = recorder.finish(run, processed=3, failed=2)
        assert done.status == RunStatus.FAILED
        assert (done.records_processed, done.records_failed) == (3, 2)
        assert done.error_message == "2 record(s) failed to sync"

    def test_fail_records_cause(self, recorder):
        run = recorder.start(EntityType.INVOICES, "sandbox")
        done = recorder.fail(run, "Rubic API error: 503")
        assert done.status == RunStatus.FAILED
        assert done.error_message == "Rubic API error: 503"

    def test_terminal_run_is_not_rewritten(self, recorder):
        run = recorder.start(EntityType.PRODUCTS, "production")
        recorder.fail(run, "first")
        again = recorder.finish(run, processed=9, failed=0)
        assert again.status == RunStatus.FAILED
        assert again.error_message == "first"

    def test_finish_releases_lease(self, recorder):
        run = recorder.start(EntityType.PRODUCTS, "production")
        recorder.finish(run, processed=0, failed=0)
        assert recorder.start(EntityType.PRODUCTS, "production") is not None


class TestLastSuccess:
    def test_none_before_any_success(self, recorder):
        run = recorder.start(EntityType.INVOICES, "production")
        recorder.fail(run, "boom")
        assert recorder.last_success(EntityType.INVOICES, "production") is None

    def test_latest_success_wins(self, recorder):
        first = recorder.start(EntityType.INVOICES, "production", now=T0)
        recorder.finish(first, processed=1, failed=0)
        second = recorder.start(EntityType.INVOICES, "production", now=T0 + timedelta(days=1))
        recorder.finish(second, processed=1, failed=0)
        assert recorder.last_success(EntityType.INVOICES, "production").id == second.id
