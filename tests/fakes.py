"""Fake Rubic/Tripletex clients and sample source data for engine tests."""
import itertools
from unittest.mock import AsyncMock


CUSTOMERS = [
    {
        "customerNo": "1001",
        "customerName": "Fjellklubben AS",
        "email": "post@fjellklubben.no",
        "mobile": "+4791234567",
        "address": "Storgata 1",
        "address2": None,
        "zipCode": "0155",
        "city": "Oslo",
        "countryCode": "NO",
    },
    {
        "customerNo": "1002",
        "customerName": "Kari Nordmann",
        "email": "kari@example.no",
        "mobile": None,
        "address": None,
        "address2": None,
        "zipCode": None,
        "city": None,
        "countryCode": "NO",
    },
    {
        "customerNo": "1003",
        "customerName": "Ola Hansen",
        "email": "ola@example.no",
        "mobile": "+4798765432",
        "address": "Kirkeveien 12",
        "address2": "H0201",
        "zipCode": "5003",
        "city": "Bergen",
        "countryCode": "NO",
    },
]

PRODUCTS = [
    {"productID": 1, "productCode": "MEMB-2025", "productName": "Membership 2025",
     "productDescription": "Annual membership", "productGroupID": 3, "price": 750.0},
    {"productID": 2, "productCode": "CAMP-SUMMER", "productName": "Summer camp",
     "productDescription": None, "productGroupID": 4, "price": 2400.0},
]

INVOICES = [
    {
        "invoiceID": 9001,
        "invoiceNumber": 20250001,
        "invoiceDate": "2025-03-01",
        "customer": {"customerNo": "1001", "customerName": "Fjellklubben AS"},
        "grossTotal": 937.5,
        "invoiceLines": [
            {"invoiceLineID": 1, "productCode": "MEMB-2025", "productName": "Membership 2025",
             "specification": "Season 2025", "quantity": 1, "price": 750.0, "discount": 0},
        ],
    },
    {
        "invoiceID": 9002,
        "invoiceNumber": 20250002,
        "invoiceDate": "2025-03-02",
        "customer": {"customerNo": "1002", "customerName": "Kari Nordmann"},
        "grossTotal": 2700.0,
        "invoiceLines": [
            {"invoiceLineID": 2, "productCode": "CAMP-SUMMER", "productName": "Summer camp",
             "specification": None, "quantity": 1, "price": 2400.0, "discount": 100.0},
            {"invoiceLineID": 3, "productCode": "UNMAPPED", "productName": "Gift card",
             "specification": None, "quantity": 1, "price": 300.0, "discount": 0},
        ],
    },
]

TRANSACTIONS = [
    {"invoiceTransactionID": 1, "invoiceID": 9001, "invoiceNumber": 20250001,
     "paymentDate": "2025-03-10", "paidAmount": 937.5},
    {"invoiceTransactionID": 2, "invoiceID": 9002, "invoiceNumber": 20250002,
     "paymentDate": "2025-03-11", "paidAmount": 2700.0},
]


def make_source(customers=None, products=None, invoices=None, transactions=None):
    """AsyncMock Rubic client returning copies of the given entity lists."""
    source = AsyncMock()
    source.fetch_customers = AsyncMock(
        return_value=[dict(c) for c in (CUSTOMERS if customers is None else customers)]
    )
    source.fetch_products = AsyncMock(
        return_value=[dict(p) for p in (PRODUCTS if products is None else products)]
    )
    source.fetch_invoices = AsyncMock(return_value=list(invoices or []))
    source.fetch_invoice_transactions = AsyncMock(return_value=list(transactions or []))
    return source


def make_target(start_id: int = 500):
    """AsyncMock Tripletex client. create_* hand out increasing ids; searches find nothing."""
    ids = itertools.count(start_id)
    target = AsyncMock()
    target.find_customer_by_number = AsyncMock(return_value=None)
    target.find_product_by_number = AsyncMock(return_value=None)
    target.create_customer = AsyncMock(side_effect=lambda body: next(ids))
    target.create_product = AsyncMock(side_effect=lambda body: next(ids))
    target.create_order = AsyncMock(side_effect=lambda body: next(ids))
    target.create_invoice_from_order = AsyncMock(side_effect=lambda order_id, date: next(ids))
    target.update_customer = AsyncMock(return_value=None)
    target.update_product = AsyncMock(return_value=None)
    target.register_payment = AsyncMock(return_value=None)
    return target
