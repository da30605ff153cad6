"""LexCRM Configuration Management."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EngineConfig(BaseSettings):
    """Operator-tunable knobs for the relationship intelligence engine.

    Scoring weights and thresholds live as named constants next to the
    calculators; only values an operator may reasonably change are here.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEXCRM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment",
    )

    # Recommendations
    max_recommendations: int = Field(
        default=5, ge=1, description="Maximum number of suggested actions returned"
    )

    # Health scoring
    missing_contact_days: int = Field(
        default=999,
        ge=61,
        description="Day gap assumed for clients that were never contacted",
    )

    # Portfolio
    at_risk_case_health_threshold: int = Field(
        default=50,
        ge=0,
        le=100,
        description="Cases with health below this value count as at risk",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == Environment.DEVELOPMENT


@lru_cache
def get_config() -> EngineConfig:
    """Get cached configuration instance."""
    return EngineConfig()


def clear_config_cache() -> None:
    """Clear the config cache. Use when config needs to be reloaded."""
    get_config.cache_clear()
