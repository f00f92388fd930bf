"""
Rubic → Tripletex field mapping and change-detection hashes.

Source entities are the raw Rubic JSON dicts. Each entity type has:
  - a payload builder producing the Tripletex request body
  - a hash over its *syncable* fields, i.e. exactly the fields that feed
    the payload. A change to any other Rubic field never triggers a write.

Hash normalisation: syncable fields are collected into a dict, strings are
stripped, missing keys become None, and the dict is serialised as canonical
JSON (sorted keys, no whitespace) before SHA-256.
"""
import hashlib
import json
from datetime import date
from typing import Any, Dict, List, Optional

CUSTOMER_FIELDS = (
    "customerNo",
    "customerName",
    "email",
    "mobile",
    "address",
    "address2",
    "zipCode",
    "city",
)

PRODUCT_FIELDS = (
    "productCode",
    "productName",
    "productDescription",
    "price",
)

INVOICE_FIELDS = (
    "invoiceID",
    "invoiceNumber",
    "invoiceDate",
)

INVOICE_LINE_FIELDS = (
    "productCode",
    "productName",
    "specification",
    "quantity",
    "price",
    "discount",
)


def _norm(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def _pick(raw: Dict[str, Any], fields) -> Dict[str, Any]:
    return {f: _norm(raw.get(f)) for f in fields}


def _digest(data: Any) -> str:
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ─── Customers ────────────────────────────────────────────────────────────────

def customer_hash(raw: Dict[str, Any]) -> str:
    return _digest(_pick(raw, CUSTOMER_FIELDS))


def customer_number(raw: Dict[str, Any]) -> Optional[int]:
    """Rubic customerNo as the integer Tripletex expects, if it is numeric."""
    try:
        return int(str(raw.get("customerNo") or "").strip())
    except ValueError:
        return None


def to_tripletex_customer(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map a Rubic CustomerDTO to a Tripletex Customer body."""
    body: Dict[str, Any] = {
        "name": raw.get("customerName") or "",
        "isCustomer": True,
    }
    number = customer_number(raw)
    if number is not None:
        body["customerNumber"] = number
    if raw.get("email"):
        body["email"] = raw["email"]
        body["invoiceEmail"] = raw["email"]
    if raw.get("mobile"):
        body["phoneNumberMobile"] = raw["mobile"]

    address = {
        key: raw[src]
        for key, src in (
            ("addressLine1", "address"),
            ("addressLine2", "address2"),
            ("postalCode", "zipCode"),
            ("city", "city"),
        )
        if raw.get(src)
    }
    if address:
        body["postalAddress"] = address
    return body


# ─── Products ─────────────────────────────────────────────────────────────────

def product_hash(raw: Dict[str, Any]) -> str:
    return _digest(_pick(raw, PRODUCT_FIELDS))


def to_tripletex_product(raw: Dict[str, Any]) -> Dict[str, Any]:
    body = {
        "number": _norm(raw.get("productCode")),
        "name": raw.get("productName"),
        "description": raw.get("productDescription"),
        "priceExcludingVatCurrency": raw.get("price"),
        "isInactive": False,
    }
    return {k: v for k, v in body.items() if v is not None}


# ─── Invoices ─────────────────────────────────────────────────────────────────

def invoice_hash(raw: Dict[str, Any]) -> str:
    data = _pick(raw, INVOICE_FIELDS)
    data["customerNo"] = _norm((raw.get("customer") or {}).get("customerNo"))
    data["lines"] = [_pick(line, INVOICE_LINE_FIELDS) for line in raw.get("invoiceLines") or []]
    return _digest(data)


def invoice_date(raw: Dict[str, Any]) -> Optional[date]:
    """Rubic invoiceDate as a date, or None when missing or malformed."""
    try:
        return date.fromisoformat(str(raw.get("invoiceDate") or "")[:10])
    except ValueError:
        return None


def to_tripletex_order(
    raw: Dict[str, Any],
    customer_id: int,
    product_ids: Dict[str, int],
) -> Dict[str, Any]:
    """Map a Rubic invoice to a Tripletex Order body.

    Tripletex invoices are created from orders, so the invoice lines become
    order lines. Lines whose product has no mapping are left out; callers
    check order["orderLines"] before submitting.
    """
    lines: List[Dict[str, Any]] = []
    for line in raw.get("invoiceLines") or []:
        product_id = product_ids.get((line.get("productCode") or "").strip())
        if not product_id:
            continue
        parts = [p for p in (line.get("productName"), line.get("specification")) if p]
        order_line: Dict[str, Any] = {
            "product": {"id": product_id},
            "count": line.get("quantity"),
            "unitPriceExcludingVatCurrency": line.get("price"),
        }
        if parts:
            order_line["description"] = " - ".join(parts)
        if (line.get("discount") or 0) > 0:
            order_line["discount"] = line["discount"]
        lines.append(order_line)

    return {
        "customer": {"id": customer_id},
        "orderDate": raw.get("invoiceDate"),
        "deliveryDate": raw.get("invoiceDate"),
        "orderLines": lines,
    }


def to_tripletex_payment(transaction: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "amount": transaction.get("paidAmount"),
        "paymentDate": transaction.get("paymentDate"),
    }
