"""
Per-entity-type behaviour plugged into ReconciliationEngine.

A handler knows how to fetch its source set, identify and hash a source
entity, and create/update it in Tripletex. The engine owns everything else
(run bookkeeping, mapping lookups, counters, failure isolation).
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from rubicsync import mappers
from rubicsync.errors import RecordSyncError
from rubicsync.models.mapping import CustomerMapping, InvoiceMapping, ProductMapping
from rubicsync.models.sync import EntityType
from rubicsync.sync.store import MappingStore

logger = logging.getLogger(__name__)


class EntityHandler:
    entity_type: EntityType
    mapping_model = None
    # Fetch only what changed since the last successful run.
    incremental = False
    # False when target entities are immutable once created.
    updatable = True

    def prepare(self, db_engine, environment: str) -> None:
        """Load whatever lookups create/update need. Called once per run."""

    async def fetch(
        self, source, start: Optional[datetime], end: datetime
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def source_id(self, raw: Dict[str, Any]) -> Optional[str]:
        raise NotImplementedError

    def hash(self, raw: Dict[str, Any]) -> str:
        raise NotImplementedError

    def mapping_extra(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def create(self, target, raw: Dict[str, Any]) -> int:
        raise NotImplementedError

    async def update(self, target, target_id: int, raw: Dict[str, Any]) -> None:
        raise NotImplementedError


class CustomerHandler(EntityHandler):
    entity_type = EntityType.CUSTOMERS
    mapping_model = CustomerMapping

    async def fetch(self, source, start, end):
        return await source.fetch_customers()

    def source_id(self, raw):
        customer_no = (raw.get("customerNo") or "").strip()
        return customer_no or None

    def hash(self, raw):
        return mappers.customer_hash(raw)

    async def create(self, target, raw):
        # Adopt a customer that already exists in Tripletex under the same number.
        number = mappers.customer_number(raw)
        if number is not None:
            existing = await target.find_customer_by_number(number)
            if existing and existing.get("id"):
                logger.info(
                    "Found existing Tripletex customer %s for customerNo %s",
                    existing["id"], raw.get("customerNo"),
                )
                return int(existing["id"])
        return await target.create_customer(mappers.to_tripletex_customer(raw))

    async def update(self, target, target_id, raw):
        body = mappers.to_tripletex_customer(raw)
        body["id"] = target_id
        number = mappers.customer_number(raw)
        if number is not None:
            current = await target.find_customer_by_number(number)
            if current and current.get("id") == target_id and current.get("version") is not None:
                body["version"] = current["version"]
        await target.update_customer(target_id, body)


class ProductHandler(EntityHandler):
    entity_type = EntityType.PRODUCTS
    mapping_model = ProductMapping

    async def fetch(self, source, start, end):
        return await source.fetch_products()

    def source_id(self, raw):
        code = (raw.get("productCode") or "").strip()
        return code or None

    def hash(self, raw):
        return mappers.product_hash(raw)

    async def create(self, target, raw):
        body = mappers.to_tripletex_product(raw)
        existing = await target.find_product_by_number(self.source_id(raw))
        if existing and existing.get("id"):
            product_id = int(existing["id"])
            logger.info(
                "Found existing Tripletex product %s for code %s, overwriting",
                product_id, raw.get("productCode"),
            )
            body["id"] = product_id
            if existing.get("version") is not None:
                body["version"] = existing["version"]
            await target.update_product(product_id, body)
            return product_id
        return await target.create_product(body)

    async def update(self, target, target_id, raw):
        body = mappers.to_tripletex_product(raw)
        body["id"] = target_id
        await target.update_product(target_id, body)


class InvoiceHandler(EntityHandler):
    """Invoices are created as an Order, then invoiced from that order.

    Issued invoices cannot be edited in Tripletex, so a mapped invoice is
    never updated.
    """

    entity_type = EntityType.INVOICES
    mapping_model = InvoiceMapping
    incremental = True
    updatable = False

    def __init__(self):
        self.customer_ids: Dict[str, int] = {}
        self.product_ids: Dict[str, int] = {}

    def prepare(self, db_engine, environment):
        self.customer_ids = MappingStore(db_engine, CustomerMapping, environment).target_ids()
        self.product_ids = MappingStore(db_engine, ProductMapping, environment).target_ids()
        logger.info(
            "Loaded %d customer and %d product mappings for %s",
            len(self.customer_ids), len(self.product_ids), environment,
        )

    async def fetch(self, source, start, end):
        return await source.fetch_invoices(start, end)

    def source_id(self, raw):
        invoice_id = raw.get("invoiceID")
        return str(invoice_id) if invoice_id is not None else None

    def hash(self, raw):
        return mappers.invoice_hash(raw)

    def mapping_extra(self, raw):
        return {
            "invoice_number": raw.get("invoiceNumber"),
            "invoice_date": mappers.invoice_date(raw),
            "payment_synced": False,
        }

    async def create(self, target, raw):
        customer_no = ((raw.get("customer") or {}).get("customerNo") or "").strip()
        if not customer_no:
            raise RecordSyncError(f"Invoice {raw.get('invoiceID')} has no customer number")
        customer_id = self.customer_ids.get(customer_no)
        if not customer_id:
            raise RecordSyncError(
                f"Invoice {raw.get('invoiceID')}: customer {customer_no} is not mapped"
            )

        order = mappers.to_tripletex_order(raw, customer_id, self.product_ids)
        if not order["orderLines"]:
            raise RecordSyncError(
                f"Invoice {raw.get('invoiceID')} has no lines with mapped products"
            )

        order_id = await target.create_order(order)
        logger.info("Created order %s for invoice %s", order_id, raw.get("invoiceID"))
        return await target.create_invoice_from_order(order_id, raw.get("invoiceDate"))

    async def update(self, target, target_id, raw):
        raise RecordSyncError(f"Tripletex invoice {target_id} is issued and cannot be updated")


HANDLERS = {
    EntityType.CUSTOMERS: CustomerHandler,
    EntityType.PRODUCTS: ProductHandler,
    EntityType.INVOICES: InvoiceHandler,
}
