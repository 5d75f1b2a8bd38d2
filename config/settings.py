"""Global configuration management using pydantic-settings.

This module loads every runtime knob from environment variables (or a local
``.env`` file) with strict type validation. ``PORT`` and ``REFRESH_MS`` keep
the names operators already use for the dashboard process.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalConfig(BaseSettings):
    """Centralized configuration with environment variable binding.

    Attributes:
        app_name: Application identifier for logging.
        environment: Deployment environment.
        debug: Enable verbose tracebacks in logs.
        host: Interface the HTTP/WebSocket surface binds to.
        port: Listening port for the HTTP/WebSocket surface.
        static_dir: Directory with the dashboard assets (mounted if present).
        refresh_ms: Interval between sampling cycles in milliseconds.
        headless: Run the browser engine headless.
        log_level: Minimum log level for output filtering.
        log_dir: Directory path for structured JSON log files.
        log_rotation: Log file rotation interval.
        log_retention: Log file retention period.
        fintech_url: Page listing exchange houses with buy/sell quotes.
        fintech_item_selector: Structural marker for one exchange-house entry.
        fintech_price_selector: Price element inside an entry (buy, then sell).
        fintech_timeout_ms: Navigation and wait timeout for the fintech page.
        spot_url: Page exposing the USD/PEN spot reference.
        spot_selector: Element holding the spot price.
        spot_timeout_ms: Navigation and wait timeout for the spot page.
        retry_max_attempts: Attempts per navigation/wait step.
        retry_base_delay_sec: Base delay for exponential backoff.
        retry_max_delay_sec: Maximum delay cap for backoff.
        history_max_length: Maximum number of samples kept for the day.
        subscriber_queue_size: Pending events per subscriber before it is dropped.
        layout_drift_threshold: Dropped-entry ratio that triggers a drift warning.
        user_agents: User-agent pool, one is picked per session.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Metadata
    app_name: str = Field(default="DolarPulse", description="Application identifier")
    environment: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="Listening port")
    static_dir: Path = Field(default=Path("public"), description="Dashboard assets")

    # Scheduling
    refresh_ms: int = Field(
        default=5 * 60 * 1000, ge=1000, description="Sampling interval in milliseconds"
    )

    # Browser Configuration
    headless: bool = Field(default=True, description="Run browser in headless mode")

    # Logging Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Minimum log level"
    )
    log_dir: Path = Field(default=Path("logs"), description="Log output directory")
    log_rotation: str = Field(default="1 day", description="Log rotation interval")
    log_retention: str = Field(default="1 week", description="Log retention period")

    # Fintech averages source
    fintech_url: str = Field(
        default="https://cuantoestaeldolar.pe", description="Exchange-house listing"
    )
    fintech_item_selector: str = Field(
        default='div[class*="ExchangeHouseItem_item__"]',
        description="Exchange-house entry selector",
    )
    fintech_price_selector: str = Field(
        default='p[class*="ValueCurrency_item_cost__"]',
        description="Price selector inside an entry",
    )
    fintech_timeout_ms: int = Field(
        default=60000, ge=1000, le=180000, description="Fintech page timeout"
    )

    # Spot reference source
    spot_url: str = Field(
        default="https://www.bloomberglinea.com/quote/USDPEN:CUR/",
        description="Spot quote page",
    )
    spot_selector: str = Field(default="h2.px-last", description="Spot price selector")
    spot_timeout_ms: int = Field(
        default=120000, ge=1000, le=180000, description="Spot page timeout"
    )

    # Resilience Parameters
    retry_max_attempts: int = Field(
        default=3, ge=1, le=10, description="Maximum attempts per step"
    )
    retry_base_delay_sec: float = Field(
        default=2.0, ge=0.0, le=30.0, description="Base delay for exponential backoff"
    )
    retry_max_delay_sec: float = Field(
        default=30.0, ge=0.0, le=300.0, description="Maximum backoff delay"
    )

    # In-memory series
    history_max_length: int = Field(
        default=2000, ge=1, description="Samples kept for the current day"
    )
    subscriber_queue_size: int = Field(
        default=100, ge=1, description="Pending events per subscriber"
    )
    layout_drift_threshold: float = Field(
        default=0.30, ge=0.0, le=1.0, description="Dropped-entry ratio warning level"
    )

    user_agents: list[str] = Field(
        default=[
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        ],
        min_length=1,
        description="User-agent pool",
    )

    @field_validator("log_dir", "static_dir", mode="before")
    @classmethod
    def ensure_path(cls, value: str | Path) -> Path:
        """Convert string paths to Path objects."""
        return Path(value) if isinstance(value, str) else value

    @property
    def refresh_seconds(self) -> float:
        """Sampling interval in seconds, as asyncio expects it."""
        return self.refresh_ms / 1000


@lru_cache(maxsize=1)
def get_config() -> GlobalConfig:
    """Retrieve the singleton GlobalConfig instance.

    Returns:
        GlobalConfig: The validated configuration instance.
    """
    return GlobalConfig()
