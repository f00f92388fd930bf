"""Tests for MappingStore."""
from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from rubicsync.errors import PersistenceError
from rubicsync.models.mapping import CustomerMapping, InvoiceMapping
from rubicsync.sync.store import MappingStore

T0 = datetime(2025, 3, 1, 2, 0)


@pytest.fixture
def customers(engine):
    return MappingStore(engine, CustomerMapping, "production")


@pytest.fixture
def invoices(engine):
    return MappingStore(engine, InvoiceMapping, "production")


class TestUpsert:
    def test_insert_then_lookup(self, customers):
        customers.upsert("1001", 11, "h1", T0)
        record = customers.lookup("1001")
        assert record.target_id == 11
        assert record.hash == "h1"
        assert record.last_synced_at == T0

    def test_lookup_missing(self, customers):
        assert customers.lookup("nope") is None

    def test_upsert_is_idempotent(self, customers, test_session):
        customers.upsert("1001", 11, "h1", T0)
        customers.upsert("1001", 11, "h1", T0)
        assert len(test_session.exec(select(CustomerMapping)).all()) == 1

    def test_update_replaces_hash(self, customers):
        customers.upsert("1001", 11, "h1", T0)
        customers.upsert("1001", 11, "h2", T0 + timedelta(days=1))
        record = customers.lookup("1001")
        assert record.hash == "h2"
        assert record.last_synced_at == T0 + timedelta(days=1)

    def test_target_id_is_immutable(self, customers):
        customers.upsert("1001", 11, "h1", T0)
        with pytest.raises(PersistenceError, match="refusing to remap"):
            customers.upsert("1001", 99, "h2", T0)
        assert customers.lookup("1001").target_id == 11

    def test_last_synced_at_never_moves_back(self, customers):
        customers.upsert("1001", 11, "h1", T0)
        customers.upsert("1001", 11, "h2", T0 - timedelta(hours=3))
        assert customers.lookup("1001").last_synced_at == T0

    def test_environments_are_separate(self, engine, customers):
        sandbox = MappingStore(engine, CustomerMapping, "sandbox")
        customers.upsert("1001", 11, "h1", T0)
        sandbox.upsert("1001", 7011, "h1", T0)
        assert customers.lookup("1001").target_id == 11
        assert sandbox.lookup("1001").target_id == 7011

    def test_target_ids(self, engine, customers):
        customers.upsert("1001", 11, "h1", T0)
        customers.upsert("1002", 12, "h2", T0)
        MappingStore(engine, CustomerMapping, "sandbox").upsert("1003", 13, "h3", T0)
        assert customers.target_ids() == {"1001": 11, "1002": 12}


class TestPaymentState:
    def test_new_invoice_is_unpaid(self, invoices):
        invoices.upsert("9001", 801, "h", T0, invoice_number=20250001, payment_synced=False)
        unpaid = invoices.unpaid()
        assert [r.source_id for r in unpaid] == ["9001"]
        assert unpaid[0].invoice_number == 20250001

    def test_mark_payment_synced(self, invoices):
        invoices.upsert("9001", 801, "h", T0)
        invoices.upsert("9002", 802, "h", T0)
        invoices.mark_payment_synced("9001")
        assert [r.source_id for r in invoices.unpaid()] == ["9002"]
        assert invoices.lookup("9001").payment_synced is True

    def test_mark_does_not_touch_other_fields(self, invoices):
        invoices.upsert("9001", 801, "h", T0)
        invoices.mark_payment_synced("9001")
        record = invoices.lookup("9001")
        assert (record.target_id, record.hash, record.last_synced_at) == (801, "h", T0)

    def test_mark_missing_mapping_fails(self, invoices):
        with pytest.raises(PersistenceError):
            invoices.mark_payment_synced("9999")
        assert invoices.lookup("9999") is None

    def test_unpaid_is_environment_scoped(self, engine, invoices):
        MappingStore(engine, InvoiceMapping, "sandbox").upsert("9001", 801, "h", T0)
        assert invoices.unpaid() == []

    def test_payment_state_only_for_invoices(self, customers):
        with pytest.raises(TypeError):
            customers.unpaid()
        with pytest.raises(TypeError):
            customers.mark_payment_synced("1001")
