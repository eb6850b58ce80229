"""
Google Ads Service — Pulls campaign metrics, keywords, search terms,
negative keywords and ad copy for one campaign via the Google Ads REST API.

Access tokens come from the OAuth refresh-token flow on every fetch; the
service holds no token cache because each analysis job runs once.
"""

import asyncio
import logging
from typing import Optional

import httpx

from adsuggest.config import ConfigurationError, Settings
from adsuggest.schemas import (
    AdCopyRecord,
    AdMetrics,
    CampaignMetrics,
    KeywordRecord,
    NegativeKeywordRecord,
    SearchTermRecord,
)

logger = logging.getLogger(__name__)

API_VERSION = "v21"
API_BASE = f"https://googleads.googleapis.com/{API_VERSION}"
TOKEN_URL = "https://oauth2.googleapis.com/token"


class GoogleAdsError(Exception):
    """Non-2xx response from the Google Ads API or the OAuth endpoint."""


def _micros(value) -> float:
    return int(value or 0) / 1_000_000


def _ctr(clicks: int, impressions: int) -> float:
    return clicks / impressions * 100 if impressions else 0.0


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


class GoogleAdsService:
    def __init__(
        self,
        developer_token: str,
        customer_id: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        login_customer_id: Optional[str] = None,
        target_campaign: str = "",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.developer_token = developer_token
        self.customer_id = customer_id.replace("-", "")
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.login_customer_id = (login_customer_id or "").replace("-", "") or None
        self.target_campaign = target_campaign
        self._http = http_client

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        if self._http is not None:
            return await self._http.post(url, timeout=30, **kwargs)
        async with httpx.AsyncClient() as client:
            return await client.post(url, timeout=30, **kwargs)

    async def get_access_token(self) -> str:
        response = await self._post(
            TOKEN_URL,
            data={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.refresh_token,
                "grant_type": "refresh_token",
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if response.status_code >= 400:
            logger.error(f"Google OAuth token refresh failed: {response.status_code} - {response.text[:500]}")
            raise GoogleAdsError(f"Failed to get access token ({response.status_code})")
        return response.json()["access_token"]

    async def search(self, access_token: str, query: str) -> list[dict]:
        """Run one GAQL query against googleAds:search and return its rows."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "developer-token": self.developer_token,
            "Content-Type": "application/json",
        }
        if self.login_customer_id:
            headers["login-customer-id"] = self.login_customer_id

        response = await self._post(
            f"{API_BASE}/customers/{self.customer_id}/googleAds:search",
            headers=headers,
            json={"query": query},
        )
        if response.status_code >= 400:
            logger.error(f"Google Ads API error: {response.status_code} - {response.text[:500]}")
            raise GoogleAdsError(f"Google Ads API error ({response.status_code})")
        return response.json().get("results", [])

    # ── Queries ───────────────────────────────────────────────────────

    def _campaign_filter(self) -> str:
        return f"campaign.name = '{_quote(self.target_campaign)}'"

    async def fetch_campaign_metrics(self, token: str, start: str, end: str) -> CampaignMetrics:
        rows = await self.search(token, f"""
            SELECT campaign.name, metrics.impressions, metrics.clicks,
                   metrics.cost_micros, metrics.conversions
            FROM campaign
            WHERE segments.date BETWEEN '{start}' AND '{end}'
              AND {self._campaign_filter()}
        """)
        spend = sum(_micros(r.get("metrics", {}).get("costMicros")) for r in rows)
        clicks = sum(int(r.get("metrics", {}).get("clicks") or 0) for r in rows)
        impressions = sum(int(r.get("metrics", {}).get("impressions") or 0) for r in rows)
        conversions = sum(float(r.get("metrics", {}).get("conversions") or 0) for r in rows)
        return CampaignMetrics(
            name=self.target_campaign,
            spend=spend,
            clicks=clicks,
            impressions=impressions,
            ctr=_ctr(clicks, impressions),
            cpc=spend / clicks if clicks else 0.0,
            conversions=conversions,
            cost_per_conversion=spend / conversions if conversions else None,
        )

    async def fetch_keywords(self, token: str, start: str, end: str) -> list[KeywordRecord]:
        rows = await self.search(token, f"""
            SELECT ad_group_criterion.keyword.text, ad_group_criterion.keyword.match_type,
                   ad_group_criterion.status, ad_group_criterion.quality_info.quality_score,
                   metrics.impressions, metrics.clicks, metrics.cost_micros, metrics.conversions,
                   metrics.cost_per_conversion, metrics.search_impression_share
            FROM keyword_view
            WHERE segments.date BETWEEN '{start}' AND '{end}'
              AND {self._campaign_filter()}
              AND campaign.status != 'REMOVED'
            ORDER BY metrics.cost_micros DESC
            LIMIT 50
        """)
        keywords = []
        for row in rows:
            criterion = row.get("adGroupCriterion", {})
            keyword = criterion.get("keyword", {})
            if not keyword.get("text"):
                continue
            metrics = row.get("metrics", {})
            clicks = int(metrics.get("clicks") or 0)
            impressions = int(metrics.get("impressions") or 0)
            spend = _micros(metrics.get("costMicros"))
            keywords.append(KeywordRecord(
                text=keyword["text"],
                match_type=keyword.get("matchType") or "BROAD",
                status=criterion.get("status") or "UNKNOWN",
                quality_score=criterion.get("qualityInfo", {}).get("qualityScore"),
                clicks=clicks,
                impressions=impressions,
                spend=spend,
                conversions=float(metrics.get("conversions") or 0),
                ctr=_ctr(clicks, impressions),
                cpc=spend / clicks if clicks else 0.0,
                cost_per_conversion=_micros(metrics.get("costPerConversion")),
                search_impression_share=metrics.get("searchImpressionShare"),
            ))
        return keywords

    async def fetch_search_terms(self, token: str, start: str, end: str) -> list[SearchTermRecord]:
        rows = await self.search(token, f"""
            SELECT campaign.name, ad_group.name, search_term_view.search_term,
                   search_term_view.status, metrics.impressions, metrics.clicks,
                   metrics.cost_micros, metrics.conversions
            FROM search_term_view
            WHERE segments.date BETWEEN '{start}' AND '{end}'
              AND {self._campaign_filter()}
            ORDER BY metrics.clicks DESC
            LIMIT 100
        """)
        terms = []
        for row in rows:
            view = row.get("searchTermView", {})
            if not view.get("searchTerm"):
                continue
            metrics = row.get("metrics", {})
            clicks = int(metrics.get("clicks") or 0)
            impressions = int(metrics.get("impressions") or 0)
            terms.append(SearchTermRecord(
                term=view["searchTerm"],
                status=view.get("status"),
                clicks=clicks,
                impressions=impressions,
                spend=_micros(metrics.get("costMicros")),
                conversions=float(metrics.get("conversions") or 0),
                ctr=_ctr(clicks, impressions),
                campaign_name=row.get("campaign", {}).get("name"),
                ad_group_name=row.get("adGroup", {}).get("name"),
            ))
        return terms

    async def fetch_campaign_negatives(self, token: str) -> list[NegativeKeywordRecord]:
        rows = await self.search(token, f"""
            SELECT campaign.name, campaign_criterion.keyword.text,
                   campaign_criterion.keyword.match_type
            FROM campaign_criterion
            WHERE campaign_criterion.type = 'KEYWORD'
              AND campaign_criterion.negative = TRUE
              AND {self._campaign_filter()}
        """)
        return [
            NegativeKeywordRecord(
                keyword=row.get("campaignCriterion", {}).get("keyword", {}).get("text"),
                match_type=row.get("campaignCriterion", {}).get("keyword", {}).get("matchType") or "BROAD",
                scope="campaign",
                campaign_name=row.get("campaign", {}).get("name"),
            )
            for row in rows
        ]

    async def fetch_account_negatives(self, token: str) -> list[NegativeKeywordRecord]:
        rows = await self.search(token, """
            SELECT shared_set.name, shared_criterion.keyword.text,
                   shared_criterion.keyword.match_type
            FROM shared_criterion
            WHERE shared_criterion.type = 'KEYWORD'
              AND shared_set.type = 'NEGATIVE_KEYWORDS'
        """)
        return [
            NegativeKeywordRecord(
                keyword=row.get("sharedCriterion", {}).get("keyword", {}).get("text"),
                match_type=row.get("sharedCriterion", {}).get("keyword", {}).get("matchType") or "BROAD",
                scope="account",
            )
            for row in rows
        ]

    async def fetch_ads(self, token: str, start: str, end: str) -> list[AdCopyRecord]:
        rows = await self.search(token, f"""
            SELECT ad_group_ad.ad.responsive_search_ad.headlines,
                   ad_group_ad.ad.responsive_search_ad.descriptions,
                   ad_group_ad.status, metrics.impressions, metrics.clicks, metrics.cost_micros
            FROM ad_group_ad
            WHERE segments.date BETWEEN '{start}' AND '{end}'
              AND {self._campaign_filter()}
              AND campaign.status != 'REMOVED'
              AND ad_group_ad.ad.type = 'RESPONSIVE_SEARCH_AD'
            ORDER BY metrics.impressions DESC
            LIMIT 20
        """)
        ads = []
        for row in rows:
            ad_group_ad = row.get("adGroupAd", {})
            rsa = ad_group_ad.get("ad", {}).get("responsiveSearchAd", {})
            metrics = row.get("metrics", {})
            clicks = int(metrics.get("clicks") or 0)
            impressions = int(metrics.get("impressions") or 0)
            ads.append(AdCopyRecord(
                headlines=[h["text"] for h in rsa.get("headlines", []) if h.get("text")],
                descriptions=[d["text"] for d in rsa.get("descriptions", []) if d.get("text")],
                status=ad_group_ad.get("status") or "UNKNOWN",
                clicks=clicks,
                impressions=impressions,
                ctr=_ctr(clicks, impressions),
                spend=_micros(metrics.get("costMicros")),
            ))
        return ads

    async def fetch_ad_metrics(self, start: str, end: str) -> AdMetrics:
        """
        Fetch everything the analysis needs for one date range.
        Campaign metrics and search terms are required; keywords, negatives
        and ads degrade to empty lists when their query fails.
        """
        token = await self.get_access_token()

        results = await asyncio.gather(
            self.fetch_campaign_metrics(token, start, end),
            self.fetch_search_terms(token, start, end),
            self.fetch_keywords(token, start, end),
            self.fetch_campaign_negatives(token),
            self.fetch_account_negatives(token),
            self.fetch_ads(token, start, end),
            return_exceptions=True,
        )
        campaign, search_terms = results[0], results[1]
        for required in (campaign, search_terms):
            if isinstance(required, BaseException):
                raise required

        optional = {}
        for name, value in zip(("keywords", "campaign_negatives", "account_negatives", "ads"), results[2:]):
            if isinstance(value, BaseException):
                logger.warning(f"Google Ads {name} query failed, continuing without it: {value}")
                value = []
            optional[name] = value

        logger.info(
            f"Google Ads: {len(search_terms)} search terms, {len(optional['keywords'])} keywords, "
            f"{len(optional['campaign_negatives'])}+{len(optional['account_negatives'])} negatives "
            f"for {self.target_campaign} ({start} → {end})"
        )
        return AdMetrics(campaign=campaign, search_terms=search_terms, **optional)


def create_google_ads_service(settings: Settings, campaign_name: Optional[str] = None) -> GoogleAdsService:
    if not settings.google_ads_configured:
        raise ConfigurationError("Google Ads not configured. Add the GOOGLE_ADS_* credentials.")
    return GoogleAdsService(
        developer_token=settings.google_ads_developer_token,
        customer_id=settings.google_ads_customer_id,
        client_id=settings.google_ads_client_id,
        client_secret=settings.google_ads_client_secret,
        refresh_token=settings.google_ads_refresh_token,
        login_customer_id=settings.google_ads_login_customer_id,
        target_campaign=campaign_name or settings.google_ads_target_campaign,
    )
