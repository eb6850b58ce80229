"""
Case Metrics Service — Counts cases started and paid in the reporting window
from the Supabase REST (PostgREST) endpoint. Test accounts are excluded.
"""

import json
import logging
from typing import Optional

import httpx

from adsuggest.schemas import CaseMetrics

logger = logging.getLogger(__name__)

CASES_TABLE = "dmhoa_cases"


def _case_email(row: dict) -> str:
    payload = row.get("payload")
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError:
            payload = {}
    if not isinstance(payload, dict):
        payload = {}
    return (payload.get("email") or row.get("email") or "").lower()


class CaseMetricsService:
    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        excluded_emails: Optional[list[str]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = supabase_url.rstrip("/")
        self.service_key = service_key
        self.excluded_emails = {e.lower() for e in (excluded_emails or [])}
        self._http = http_client

    async def fetch_case_metrics(self, start: str, end: str) -> CaseMetrics:
        url = f"{self.base_url}/rest/v1/{CASES_TABLE}"
        params = [
            ("select", "id,email,unlocked,payload,created_at"),
            ("created_at", f"gte.{start}T00:00:00"),
            ("created_at", f"lte.{end}T23:59:59"),
        ]
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
        }
        if self._http is not None:
            response = await self._http.get(url, params=params, headers=headers, timeout=30)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, params=params, headers=headers, timeout=30)
        response.raise_for_status()

        rows = [r for r in response.json() if _case_email(r) not in self.excluded_emails]
        return CaseMetrics(
            total_cases=len(rows),
            unlocked_cases=sum(1 for r in rows if r.get("unlocked")),
        )
