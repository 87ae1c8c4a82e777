"""
Configuration Management

Centralized configuration using Pydantic Settings.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Connection and builder settings, read from SSQL_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SSQL_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = "localhost"
    port: int = 1433
    database: str = "master"
    user: Optional[str] = None
    password: Optional[str] = None

    # Driver
    use_pyodbc: bool = False
    odbc_driver: str = "ODBC Driver 18 for SQL Server"
    login_timeout: int = Field(default=30, ge=0)
    application_name: str = "ssql"

    # Builder
    validate_raw_sql: bool = Field(
        default=False,
        description="Parse raw SQL as T-SQL before sending it to the server",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
