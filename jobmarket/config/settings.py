"""
Application settings using Pydantic for type-safe configuration.

Loads configuration from environment variables (and a local ``.env`` file)
with defaults suitable for local development.
"""

from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from jobmarket.job_connectors.auth import DEFAULT_SCOPE, DEFAULT_TOKEN_URL
from jobmarket.job_connectors.config import ConnectorConfig
from jobmarket.job_connectors.http import DEFAULT_API_URL
from jobmarket.job_connectors.models import MAX_PAGE_SIZE, SearchFilters

# Load .env file if it exists
load_dotenv()


class FranceTravailSettings(BaseSettings):
    """France Travail partner API configuration."""

    model_config = SettingsConfigDict(env_prefix="FRANCE_TRAVAIL_", extra="ignore")

    client_id: str = Field(default="")
    client_secret: Optional[str] = Field(default=None)
    token_url: str = Field(default=DEFAULT_TOKEN_URL)
    api_url: str = Field(default=DEFAULT_API_URL)
    scope: str = Field(default=DEFAULT_SCOPE)
    keywords: str = Field(default="développeur")
    departement: Optional[str] = Field(default=None)

    @property
    def has_credentials(self) -> bool:
        return bool(self.client_id.strip()) and bool((self.client_secret or "").strip())

    def default_filters(self) -> SearchFilters:
        return SearchFilters(keywords=self.keywords, departement=self.departement)


class ConnectorSettings(BaseSettings):
    """Resilience knobs shared by API connectors."""

    model_config = SettingsConfigDict(env_prefix="JOB_CONNECTORS_", extra="ignore")

    enabled: str = Field(default="france_travail")
    max_retry_attempts: int = Field(default=3, ge=1)
    retry_delay_s: float = Field(default=1.0, ge=0)
    rate_limit_delay_s: float = Field(default=5.0, ge=0)
    max_delay_s: float = Field(default=60.0, ge=0)
    jitter_s: float = Field(default=0.0, ge=0)
    circuit_breaker_threshold: int = Field(default=5, ge=1)
    circuit_breaker_reset_s: float = Field(default=60.0, ge=0)
    enable_circuit_breaker: bool = Field(default=True)
    default_max_results: int = Field(default=150, ge=0)
    page_size: int = Field(default=MAX_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    request_delay_s: float = Field(default=0.15, ge=0)
    timeout_s: float = Field(default=15.0, gt=0)
    # Wall-clock budget of one run; unset means no limit.
    run_timeout_s: Optional[float] = Field(default=None, gt=0)

    @property
    def enabled_names(self) -> List[str]:
        return [item.strip().lower() for item in self.enabled.split(",") if item.strip()]

    def to_connector_config(self) -> ConnectorConfig:
        return ConnectorConfig(
            max_retry_attempts=self.max_retry_attempts,
            retry_delay_s=self.retry_delay_s,
            rate_limit_delay_s=self.rate_limit_delay_s,
            max_delay_s=self.max_delay_s,
            jitter_s=self.jitter_s,
            circuit_breaker_threshold=self.circuit_breaker_threshold,
            circuit_breaker_reset_s=self.circuit_breaker_reset_s,
            enable_circuit_breaker=self.enable_circuit_breaker,
            default_max_results=self.default_max_results,
            page_size=self.page_size,
            request_delay_s=self.request_delay_s,
            timeout_s=self.timeout_s,
            run_timeout_s=self.run_timeout_s,
        )


class LocalSettings(BaseSettings):
    """Local development settings."""

    model_config = SettingsConfigDict(extra="ignore")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


class Settings(BaseSettings):
    """Main settings container aggregating all configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    france_travail: FranceTravailSettings = Field(default_factory=FranceTravailSettings)
    connectors: ConnectorSettings = Field(default_factory=ConnectorSettings)
    local: LocalSettings = Field(default_factory=LocalSettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for the lifetime of the process.

    Returns:
        Settings instance with all configuration loaded
    """
    return Settings()
