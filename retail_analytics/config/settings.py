"""
Retail Sales Analytics
Centralized Configuration Management

Pydantic settings with environment variable support for the ingestion
pipeline, the relational store and the API surface.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Relational store configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="retail_analytics", alias="POSTGRES_DB", description="Database name")
    user: str = Field(default="retail", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full async database URL (overrides host/port), e.g. sqlite+aiosqlite:///./retail.db",
    )

    @property
    def async_url(self) -> str:
        """Async database URL, asyncpg unless DATABASE_URL says otherwise"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class IngestionSettings(BaseSettings):
    """Spreadsheet ingestion configuration"""

    model_config = SettingsConfigDict(env_prefix="INGEST_")

    store_sheet_name: str = Field(default="StoreSalesReport", description="Sheet holding per-store totals")
    preferred_sheets: List[str] = Field(
        default=["Last Closed Week", "Period to Date", "Quarter to Date", "Year to Date"],
        description="Allocator workbook sheets, most specific period first",
    )
    insert_chunk_size: int = Field(default=100, description="Fact rows per INSERT statement")
    data_dir: str = Field(default="./data", description="Directory scanned by the batch loader")
    file_glob: str = Field(default="**/Store-Sales_*.xlsx", description="Store-totals glob for the batch loader")


class SecuritySettings(BaseSettings):
    """API security configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    test_api_secret: Optional[SecretStr] = Field(
        default=None,
        alias="TEST_API_SECRET",
        description="Secret for the test-only cleanup endpoint",
    )
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )


class MonitoringSettings(BaseSettings):
    """Logging configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or console")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="retail-sales-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")
    debug: bool = Field(default=False, alias="DEBUG", description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.app_env == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
