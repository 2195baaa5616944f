"""Configuration management using pydantic-settings."""
from functools import lru_cache
import logging
import sys
from typing import Any, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog


DEFAULT_DOCUMENT_PROXIES = [
    "https://corsproxy.io/?{url}",
    "https://api.codetabs.com/v1/proxy?quest={url}",
    "https://api.allorigins.win/raw?url={url}",
    "https://thingproxy.freeboard.io/fetch/{raw_url}",
]

DEFAULT_IMAGE_PROXIES = [
    "https://images.weserv.nl/?url={stripped_url}&output=jpg&q=100&we=1",
    "https://images1-focus-opensocial.googleusercontent.com/gadgets/proxy?container=focus&refresh=86400&url={url}",
    "https://api.allorigins.win/raw?url={url}",
    "https://corsproxy.io/?{url}",
    "https://i0.wp.com/{stripped_raw_url}",
]


class SheetmindSettings(BaseSettings):
    """Ingestion settings loaded from environment variables.

    All settings prefixed with SHEETMIND_ (e.g., SHEETMIND_GOOGLE_API_KEY=...).
    Instances are read-only after construction and are passed explicitly into
    the fetchers, so tests can build their own with fake values.

    Proxy templates accept the placeholders {url} (percent-encoded target),
    {raw_url} (target as-is), {stripped_url} (encoded, without scheme) and
    {stripped_raw_url} (without scheme, not encoded).
    """

    # Google credentials
    google_api_key: str = Field(
        default="",
        description="Public read-only Sheets API key (empty disables the API-key strategy)"
    )
    service_account_email: str = Field(
        default="sheetmind-reader@sheetmind-ingest.iam.gserviceaccount.com",
        description="Service account users can share private sheets with"
    )

    # Endpoints
    sheets_api_base_url: str = Field(
        default="https://sheets.googleapis.com/v4/spreadsheets",
        description="Sheets API v4 spreadsheets endpoint"
    )
    docs_base_url: str = Field(
        default="https://docs.google.com/spreadsheets/d",
        description="Base URL for the public export endpoint"
    )

    # Batched reads
    batch_size: int = Field(
        default=10000,
        ge=1,
        le=100000,
        description="Rows per values-range request"
    )
    max_columns: int = Field(
        default=702,
        ge=1,
        le=18278,
        description="Column cap per range request (702 = column ZZ)"
    )
    default_row_count: int = Field(
        default=1000,
        ge=1,
        description="Row count assumed when metadata omits gridProperties"
    )
    rate_limit_delay_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=120.0,
        description="Fixed back-off after an HTTP 429"
    )
    rate_limit_max_retries: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Retries of the same batch after HTTP 429"
    )

    # Timeouts (seconds)
    request_timeout_seconds: float = Field(default=30.0, ge=1.0, le=600.0)
    strategy_timeout_seconds: float = Field(
        default=300.0,
        ge=1.0,
        le=3600.0,
        description="Upper bound for a whole API-key or OAuth attempt"
    )
    xlsx_export_timeout_seconds: float = Field(default=60.0, ge=1.0, le=600.0)
    csv_export_timeout_seconds: float = Field(default=120.0, ge=1.0, le=600.0)
    image_timeout_seconds: float = Field(default=15.0, ge=1.0, le=300.0)

    # Proxy relays
    document_proxies: List[str] = Field(default_factory=lambda: list(DEFAULT_DOCUMENT_PROXIES))
    image_proxies: List[str] = Field(default_factory=lambda: list(DEFAULT_IMAGE_PROXIES))
    min_image_bytes: int = Field(
        default=100,
        ge=0,
        description="Image payloads smaller than this are treated as error responses"
    )

    # Table building
    large_sheet_row_threshold: int = Field(
        default=100000,
        ge=1,
        description="Sheets with more rows than this, header row included, skip formula/date preprocessing"
    )
    chunk_size: int = Field(
        default=1000,
        ge=1,
        description="Rows converted per cooperative chunk"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    environment: Literal["development", "staging", "production"] = "development"

    model_config = SettingsConfigDict(
        env_prefix="SHEETMIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def has_api_key(self) -> bool:
        """Check if the API-key strategy is available."""
        return bool(self.google_api_key.strip())

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> SheetmindSettings:
    """Get cached settings, loaded once per process."""
    return SheetmindSettings()


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog.

    JSON rendering for production, colored console output otherwise.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    shared_processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer(colors=False)]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
