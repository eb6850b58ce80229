import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)

DEFAULT_WRONG_INTENT_TERMS = (
    "attorney,lawyer,law firm,legal advice,legal consultation,"
    "free consultation,pro bono,lawsuit,near me,free template"
)
DEFAULT_HIGH_INTENT_TERMS = (
    "how to,respond,response,letter,dispute,fight,appeal,"
    "violation,fine,notice,diy,write,template"
)


class ConfigurationError(ValueError):
    """A required credential or collaborator is not configured."""


def _split_csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment: "development" or "production"
    environment: str = "development"

    database_url: str = "postgresql+asyncpg://localhost/ad_suggestions"

    @model_validator(mode="before")
    @classmethod
    def _fix_database_url_for_asyncpg(cls, values: dict) -> dict:
        """Hosted Postgres gives postgresql://; asyncpg needs postgresql+asyncpg://."""
        if not isinstance(values, dict):
            return values
        url = values.get("database_url") or ""
        if url.startswith("postgresql://") and "+asyncpg" not in url:
            values["database_url"] = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return values

    cors_origins: str = "http://localhost:4200,http://localhost:5173"

    # LLM: "anthropic:<model>" or "openai:<model>"
    default_llm_id: str = "anthropic:claude-sonnet-4-20250514"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    llm_max_tokens: int = 4096

    # Google Ads (REST API, OAuth refresh token flow)
    google_ads_developer_token: str = ""
    google_ads_customer_id: str = ""
    google_ads_login_customer_id: str = ""  # MCC, optional
    google_ads_client_id: str = ""
    google_ads_client_secret: str = ""
    google_ads_refresh_token: str = ""
    google_ads_target_campaign: str = "DMHOA Initial Test"
    min_report_date: str = "2026-01-01"

    # Revenue (Stripe) and case metrics (Supabase), both optional
    stripe_secret_key: str = ""
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    test_emails: str = ""  # comma-separated, excluded from case counts

    # Search term classification
    wrong_intent_terms: str = DEFAULT_WRONG_INTENT_TERMS
    high_intent_terms: str = DEFAULT_HIGH_INTENT_TERMS
    waste_spend_threshold: float = 2.00
    max_opportunities: int = 20
    max_waste_terms: int = 15

    # Jobs
    durable_job_store: bool = True
    poll_interval_seconds: float = 2.0
    poll_max_attempts: int = 90

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Enforce that critical secrets are set when running in production."""
        if self.is_production:
            if not self.anthropic_api_key and not self.openai_api_key:
                raise ValueError(
                    "ANTHROPIC_API_KEY or OPENAI_API_KEY must be set in production."
                )
            if not self.database_url or "localhost" in self.database_url:
                logger.warning("DATABASE_URL appears to point at localhost in production.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def cors_origin_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def wrong_intent_list(self) -> list[str]:
        return _split_csv(self.wrong_intent_terms)

    @property
    def high_intent_list(self) -> list[str]:
        return _split_csv(self.high_intent_terms)

    @property
    def test_email_list(self) -> list[str]:
        return [e.lower() for e in _split_csv(self.test_emails)]

    @property
    def google_ads_configured(self) -> bool:
        return all([
            self.google_ads_developer_token,
            self.google_ads_customer_id,
            self.google_ads_client_id,
            self.google_ads_client_secret,
            self.google_ads_refresh_token,
        ])


@lru_cache
def get_settings() -> Settings:
    return Settings()
