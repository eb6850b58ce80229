"""
Revenue Service — Charges and refunds for the reporting window from the
Stripe REST API. Optional context for the analysis prompt.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Optional

import httpx

from adsuggest.schemas import RevenueMetrics

logger = logging.getLogger(__name__)

STRIPE_API = "https://api.stripe.com/v1"


def _timestamp_range(start: str, end: str) -> tuple[int, int]:
    gte = datetime.combine(date.fromisoformat(start), time.min, tzinfo=timezone.utc)
    lte = datetime.combine(date.fromisoformat(end), time.max, tzinfo=timezone.utc)
    return int(gte.timestamp()), int(lte.timestamp())


class RevenueService:
    def __init__(self, secret_key: str, http_client: Optional[httpx.AsyncClient] = None):
        self.secret_key = secret_key
        self._http = http_client

    async def _list(self, resource: str, gte: int, lte: int) -> list[dict]:
        params = {"created[gte]": gte, "created[lte]": lte, "limit": 100}
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        if self._http is not None:
            response = await self._http.get(f"{STRIPE_API}/{resource}", params=params, headers=headers, timeout=30)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{STRIPE_API}/{resource}", params=params, headers=headers, timeout=30)
        response.raise_for_status()
        return response.json().get("data", [])

    async def fetch_revenue(self, start: str, end: str) -> RevenueMetrics:
        gte, lte = _timestamp_range(start, end)
        charges = await self._list("charges", gte, lte)
        refunds = await self._list("refunds", gte, lte)

        succeeded = [c for c in charges if c.get("status") == "succeeded"]
        return RevenueMetrics(
            revenue=sum(c.get("amount", 0) for c in succeeded) / 100,
            transactions=len(succeeded),
            refunds=len(refunds),
            refund_amount=sum(r.get("amount", 0) for r in refunds) / 100,
        )
