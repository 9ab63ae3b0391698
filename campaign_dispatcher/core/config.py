from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

REQUIRED_MAILCHIMP_SETTINGS = (
    "mailchimp_api_key",
    "mailchimp_server_prefix",
    "mailchimp_audience_id",
)


class Settings(BaseSettings):
    app_name: str = "campaign-dispatcher"
    environment: str = "dev"
    webhook_secret: str | None = None
    host: str = "0.0.0.0"
    port: int = 8000

    mailchimp_api_key: str | None = None
    mailchimp_server_prefix: str | None = None
    mailchimp_audience_id: str | None = None
    mailchimp_from_name: str = "MiningDiscovery"
    mailchimp_reply_to: str = "news@miningdiscovery.com"
    mailchimp_enable_send: bool = False
    mailchimp_force_resend: bool = False
    mailchimp_eligible_category_slugs: str = "corporate-news"
    mailchimp_mock_mode: bool = False
    mailchimp_lookup_count: int = 50
    mailchimp_timeout_seconds: float = 10.0
    mailchimp_retry_attempts: int = 3
    mailchimp_retry_base_seconds: float = 0.5
    mailchimp_retry_max_seconds: float = 8.0
    public_site_url: str = "https://www.miningdiscovery.com"

    strapi_url: str = "http://localhost:1337"
    strapi_api_token: str | None = None
    strapi_media_url: str | None = None
    strapi_model: str = "news-section"
    strapi_content_type: str = "news-sections"
    strapi_category_relation: str = "news_categories"
    strapi_notified_field: str = "mailSent"
    strapi_timeout_seconds: float = 10.0

    otel_enabled: bool = True
    otel_service_name: str = "campaign-dispatcher"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def site_url(self) -> str:
        return self.public_site_url.rstrip("/")

    @property
    def media_base_url(self) -> str:
        return (self.strapi_media_url or self.site_url).rstrip("/")

    @property
    def eligible_category_slugs(self) -> frozenset[str]:
        return parse_category_slugs(self.mailchimp_eligible_category_slugs)

    def missing_mailchimp_settings(self) -> list[str]:
        """Names of required Mailchimp settings that are unset; empty in mock mode."""
        if self.mailchimp_mock_mode:
            return []
        return [name.upper() for name in REQUIRED_MAILCHIMP_SETTINGS if not getattr(self, name)]


def parse_category_slugs(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(chunk.strip().lower() for chunk in raw.split(",") if chunk.strip())


@lru_cache
def get_settings() -> Settings:
    return Settings()
