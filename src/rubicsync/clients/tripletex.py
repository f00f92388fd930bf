"""
Async client for the Tripletex v2 API (the target system).

Authentication: a session token is created from the consumer + employee
tokens via PUT /token/session/:create and cached until its expiration date.
Requests authenticate with HTTP basic auth, user "0", password = session
token.

Every failure is raised as TargetRequestError so the engine can tally it
against the one record being written.
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, Optional

import httpx

from rubicsync.config import TargetEnvironment
from rubicsync.errors import TargetRequestError

logger = logging.getLogger(__name__)

TIMEOUT_SECONDS = 30.0


class TripletexClient:
    def __init__(
        self,
        base_url: str,
        consumer_token: str,
        employee_token: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._consumer_token = consumer_token
        self._employee_token = employee_token
        self._transport = transport
        self._session_token: Optional[str] = None
        self._session_expires: Optional[date] = None

    @classmethod
    def for_environment(cls, env: TargetEnvironment, **kwargs) -> "TripletexClient":
        return cls(env.base_url, env.consumer_token, env.employee_token, **kwargs)

    # ─── Customers ────────────────────────────────────────────────────────────

    async def find_customer_by_number(self, number: int) -> Optional[Dict[str, Any]]:
        data = await self._request(
            "GET",
            "/customer",
            params={"customerNumberFrom": str(number), "customerNumberTo": str(number)},
        )
        values = data.get("values") or []
        return values[0] if values else None

    async def create_customer(self, body: Dict[str, Any]) -> int:
        return _value_id(await self._request("POST", "/customer", json=body), "customer")

    async def update_customer(self, customer_id: int, body: Dict[str, Any]) -> None:
        await self._request("PUT", f"/customer/{customer_id}", json=body)

    # ─── Products ─────────────────────────────────────────────────────────────

    async def find_product_by_number(self, number: str) -> Optional[Dict[str, Any]]:
        data = await self._request("GET", "/product", params={"number": number})
        values = data.get("values") or []
        return values[0] if values else None

    async def create_product(self, body: Dict[str, Any]) -> int:
        return _value_id(await self._request("POST", "/product", json=body), "product")

    async def update_product(self, product_id: int, body: Dict[str, Any]) -> None:
        await self._request("PUT", f"/product/{product_id}", json=body)

    # ─── Orders / invoices / payments ─────────────────────────────────────────

    async def create_order(self, body: Dict[str, Any]) -> int:
        return _value_id(await self._request("POST", "/order", json=body), "order")

    async def create_invoice_from_order(self, order_id: int, invoice_date: str) -> int:
        data = await self._request(
            "PUT",
            f"/order/{order_id}/:invoice",
            params={"invoiceDate": invoice_date, "sendToCustomer": "false"},
        )
        return _value_id(data, "invoice")

    async def register_payment(self, invoice_id: int, body: Dict[str, Any]) -> None:
        await self._request("PUT", f"/invoice/{invoice_id}/:payment", json=body)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _ensure_session(self, http: httpx.AsyncClient) -> str:
        today = date.today()
        if self._session_token and self._session_expires and self._session_expires > today:
            return self._session_token

        logger.info("Creating new Tripletex session for %s", self._base_url)
        expires = today + timedelta(days=1)
        try:
            resp = await http.put(
                "/token/session/:create",
                params={
                    "consumerToken": self._consumer_token,
                    "employeeToken": self._employee_token,
                    "expirationDate": expires.isoformat(),
                },
            )
            resp.raise_for_status()
            token = resp.json()["value"]["token"]
        except httpx.HTTPStatusError as exc:
            raise TargetRequestError(
                f"Tripletex session creation failed: {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            raise TargetRequestError(f"Tripletex session creation failed: {exc}") from exc

        self._session_token = token
        self._session_expires = expires
        return token

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Accept": "application/json"},
            timeout=TIMEOUT_SECONDS,
            transport=self._transport,
        ) as http:
            token = await self._ensure_session(http)
            try:
                resp = await http.request(method, path, auth=("0", token), **kwargs)
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "Tripletex API error %s on %s %s: %s",
                    exc.response.status_code, method, path, exc.response.text[:500],
                )
                raise TargetRequestError(
                    f"Tripletex API error: {exc.response.status_code} on {method} {path}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.HTTPError as exc:
                raise TargetRequestError(f"Tripletex request failed: {method} {path}: {exc}") from exc

            if not resp.content:
                return {}
            try:
                return resp.json()
            except ValueError as exc:
                raise TargetRequestError(f"Tripletex returned invalid JSON on {method} {path}") from exc


def _value_id(data: Dict[str, Any], what: str) -> int:
    """Extract value.id from a Tripletex single-object response."""
    value_id = (data.get("value") or {}).get("id")
    if not value_id:
        raise TargetRequestError(f"Failed to create {what}: no ID returned")
    return int(value_id)
