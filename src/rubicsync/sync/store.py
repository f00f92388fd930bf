"""
MappingStore: per-(entity type, environment) view over a mapping table.

All reads are local persistence reads; nothing here talks to the network.
Writes are single-row upserts keyed by the immutable source id, so retrying
any of them after a partial run is safe.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Type

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from rubicsync.errors import PersistenceError
from rubicsync.models.mapping import InvoiceMapping, MappingBase


@dataclass(frozen=True)
class MappingRecord:
    source_id: str
    target_id: int
    hash: Optional[str]
    last_synced_at: datetime
    payment_synced: bool = False
    invoice_number: Optional[int] = None
    invoice_date: Optional[date] = None


def _to_record(row: MappingBase) -> MappingRecord:
    return MappingRecord(
        source_id=row.source_id,
        target_id=row.target_id,
        hash=row.hash,
        last_synced_at=row.last_synced_at,
        payment_synced=getattr(row, "payment_synced", False),
        invoice_number=getattr(row, "invoice_number", None),
        invoice_date=getattr(row, "invoice_date", None),
    )


class MappingStore:
    """Mapping rows of one table, scoped to one target environment."""

    def __init__(self, engine, model: Type[MappingBase], environment: str):
        self.engine = engine
        self.model = model
        self.environment = environment

    def lookup(self, source_id: str) -> Optional[MappingRecord]:
        with Session(self.engine) as s:
            row = s.get(self.model, (source_id, self.environment))
            return _to_record(row) if row else None

    def upsert(
        self,
        source_id: str,
        target_id: int,
        hash: Optional[str],
        now: datetime,
        **extra,
    ) -> MappingRecord:
        """Insert or update the mapping for source_id.

        Raises:
            PersistenceError: if the row would change an existing target_id,
                or the database write fails.
        """
        try:
            with Session(self.engine) as s:
                row = s.get(self.model, (source_id, self.environment))
                if row is None:
                    row = self.model(
                        source_id=source_id,
                        environment=self.environment,
                        target_id=target_id,
                        hash=hash,
                        last_synced_at=now,
                        **extra,
                    )
                else:
                    if row.target_id != target_id:
                        raise PersistenceError(
                            f"{self.model.__name__} {source_id!r} is mapped to "
                            f"{row.target_id}, refusing to remap to {target_id}"
                        )
                    row.hash = hash
                    row.last_synced_at = max(row.last_synced_at, now)
                    for k, v in extra.items():
                        setattr(row, k, v)
                s.add(row)
                s.commit()
                s.refresh(row)
                return _to_record(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Mapping write failed for {source_id!r}: {exc}") from exc

    def target_ids(self) -> Dict[str, int]:
        """All source_id -> target_id pairs for this environment."""
        with Session(self.engine) as s:
            rows = s.exec(
                select(self.model).where(self.model.environment == self.environment)
            ).all()
            return {r.source_id: r.target_id for r in rows}

    # ─── Invoice payment state ────────────────────────────────────────────────

    def unpaid(self) -> List[MappingRecord]:
        """Invoice mappings whose payment has not been propagated yet."""
        self._require_invoices()
        with Session(self.engine) as s:
            rows = s.exec(
                select(InvoiceMapping).where(
                    InvoiceMapping.environment == self.environment,
                    InvoiceMapping.payment_synced == False,  # noqa: E712
                )
            ).all()
            return [_to_record(r) for r in rows]

    def mark_payment_synced(self, source_id: str) -> None:
        """Flag an existing invoice mapping as paid. Never creates a row.

        Raises:
            PersistenceError: if there is no mapping for source_id.
        """
        self._require_invoices()
        try:
            with Session(self.engine) as s:
                row = s.get(InvoiceMapping, (source_id, self.environment))
                if row is None:
                    raise PersistenceError(f"No invoice mapping for {source_id!r}")
                row.payment_synced = True
                s.add(row)
                s.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Payment flag write failed for {source_id!r}: {exc}") from exc

    def _require_invoices(self) -> None:
        if self.model is not InvoiceMapping:
            raise TypeError(f"{self.model.__name__} has no payment state")
