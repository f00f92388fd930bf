"""
Async client for the Rubic external API (the source system).

All endpoints are read-only GETs scoped to an organization id and paginated
with pageNo (1-based) / pageSize. fetch_* methods follow pages until a short
page comes back and return the complete list.

Any HTTP or transport failure is raised as SourceFetchError: the engine
cannot reconcile against a partial source set.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from rubicsync.config import SourceEndpoint
from rubicsync.errors import SourceFetchError

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000
TIMEOUT_SECONDS = 30.0


class RubicClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        organization_id: int,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        page_size: int = PAGE_SIZE,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._organization_id = organization_id
        self._transport = transport
        self._page_size = page_size

    @classmethod
    def from_endpoint(cls, endpoint: SourceEndpoint, **kwargs) -> "RubicClient":
        return cls(endpoint.base_url, endpoint.api_key, endpoint.organization_id, **kwargs)

    async def fetch_customers(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(f"/accounting/{self._organization_id}/customers")

    async def fetch_products(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(f"/accounting/{self._organization_id}/products")

    async def fetch_invoices(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            f"/accounting/{self._organization_id}/invoices",
            _period_params(start, end),
        )

    async def fetch_invoice_transactions(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        return await self._fetch_all(
            f"/accounting/{self._organization_id}/invoices/transactions",
            _period_params(start, end),
        )

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _fetch_all(
        self, path: str, params: Optional[Dict[str, str]] = None
    ) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page_no = 1
        async with httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Accept": "application/json",
            },
            timeout=TIMEOUT_SECONDS,
            transport=self._transport,
        ) as http:
            while True:
                query = dict(params or {})
                query["pageNo"] = str(page_no)
                query["pageSize"] = str(self._page_size)
                try:
                    resp = await http.get(path, params=query)
                    resp.raise_for_status()
                    page = resp.json()
                except httpx.HTTPStatusError as exc:
                    logger.error(
                        "Rubic API error %s on %s: %s",
                        exc.response.status_code, path, exc.response.text[:500],
                    )
                    raise SourceFetchError(
                        f"Rubic API error: {exc.response.status_code} on {path}"
                    ) from exc
                except (httpx.HTTPError, ValueError) as exc:
                    raise SourceFetchError(f"Rubic request failed on {path}: {exc}") from exc

                items.extend(page)
                if len(page) < self._page_size:
                    break
                page_no += 1

        logger.info("Fetched %d items from %s (%d pages)", len(items), path, page_no)
        return items


def _period_params(start: Optional[datetime], end: Optional[datetime]) -> Dict[str, str]:
    params = {}
    if start is not None:
        params["startPeriod"] = start.isoformat()
    if end is not None:
        params["endPeriod"] = end.isoformat()
    return params
