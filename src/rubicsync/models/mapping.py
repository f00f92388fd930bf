"""
Persisted source-id -> target-id correspondences, one table per entity type.

Rows are keyed by (source_id, environment): each Tripletex environment is a
separate tenant with its own ids. target_id never changes once written.
"""
from datetime import date, datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class MappingBase(SQLModel):
    source_id: str = Field(primary_key=True, max_length=100)
    environment: str = Field(primary_key=True, max_length=20)
    target_id: int
    hash: Optional[str] = Field(default=None, max_length=64)
    last_synced_at: datetime = Field(default_factory=datetime.utcnow)


class CustomerMapping(MappingBase, table=True):
    """Rubic customerNo -> Tripletex customer id."""


class ProductMapping(MappingBase, table=True):
    """Rubic productCode -> Tripletex product id."""


class InvoiceMapping(MappingBase, table=True):
    """Rubic invoiceID -> Tripletex invoice id, plus payment state."""

    invoice_number: Optional[int] = None
    invoice_date: Optional[date] = None
    payment_synced: bool = False
