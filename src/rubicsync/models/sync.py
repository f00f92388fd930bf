"""Sync run bookkeeping model."""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel


class EntityType(str, Enum):
    CUSTOMERS = "customers"
    PRODUCTS = "products"
    INVOICES = "invoices"
    PAYMENTS = "payments"


class RunStatus(str, Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class SyncRun(SQLModel, table=True):
    """One reconciliation attempt for one entity type against one environment."""

    id: Optional[int] = Field(default=None, primary_key=True)
    entity_type: EntityType = Field(index=True)
    environment: str = Field(index=True)
    status: RunStatus = Field(default=RunStatus.RUNNING, index=True)
    records_processed: int = 0
    records_failed: int = 0
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
