"""
Configuration management for the NAMASTE terminology bridge.

Uses Pydantic Settings for environment variable management with validation.
"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database configuration
    database_url: str = Field(
        default="sqlite:///./namaste_bridge.db",
        description="Database connection URL (sqlite or postgresql)"
    )
    store_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Per-query timeout for concept store lookups"
    )

    # WHO ICD-11 API configuration
    icd11_client_id: Optional[str] = Field(
        default=None,
        description="WHO ICD-11 API client ID"
    )
    icd11_client_secret: Optional[str] = Field(
        default=None,
        description="WHO ICD-11 API client secret"
    )
    icd11_token_url: str = Field(
        default="https://icdaccessmanagement.who.int/connect/token",
        description="WHO ICD-11 OAuth2 token endpoint"
    )
    icd11_base_url: str = Field(
        default="https://id.who.int/icd/release/11/2025-01/mms",
        description="WHO ICD-11 MMS linearization base URL"
    )
    external_api_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Per-call timeout for third-party vocabulary APIs"
    )

    # Application settings
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    # Mapping settings
    heuristic_prefilter_limit: int = Field(
        default=25,
        ge=1,
        description="Rows fetched by the keyword prefilter before scoring"
    )
    tm2_mapping_csv: Optional[str] = Field(
        default=None,
        description="CSV with ICD-11 TM2 to biomedical code mappings"
    )

    # API settings
    max_search_results: int = Field(
        default=100,
        description="Maximum number of search results to return"
    )
    default_search_limit: int = Field(
        default=20,
        description="Default limit for search queries"
    )

    # Security settings
    allowed_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
