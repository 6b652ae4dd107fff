from functools import lru_cache
from typing import List, Union

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Database configuration settings"""
    DATABASE_URL: str = Field(default="sqlite:///./hospital.db")

    # Connection pool settings (ignored for SQLite)
    DB_POOL_SIZE: int = Field(default=10, ge=1, le=100)
    DB_MAX_OVERFLOW: int = Field(default=20, ge=0, le=100)
    DB_POOL_TIMEOUT: int = Field(default=30, ge=1, le=300)
    DB_POOL_RECYCLE: int = Field(default=3600, ge=300, le=86400)
    DB_ECHO: bool = Field(default=False)

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def is_in_memory(self) -> bool:
        url = self.DATABASE_URL
        return self.is_sqlite and (":memory:" in url or url.rstrip("/") == "sqlite:")


class Settings(BaseSettings):
    """Main application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=True,
        validate_assignment=True,
        extra="ignore",
    )

    # Basic application settings
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)
    API_VERSION: str = Field(default="v1")
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    LOG_JSON: bool = Field(default=True)

    # Server settings
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000, ge=1000, le=65535)
    WORKERS: int = Field(default=1, ge=1, le=32)

    # CORS settings
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:3000"])
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    ALLOWED_HOSTS: List[str] = Field(default=["*"])

    # Monitoring settings
    PROMETHEUS_ENABLED: bool = Field(default=True)

    # Nested configuration objects
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Validate critical settings for production environment"""
        if self.ENVIRONMENT == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")

            # Ensure CORS is properly configured
            if "*" in self.CORS_ORIGINS or "http://localhost:3000" in self.CORS_ORIGINS:
                raise ValueError("CORS_ORIGINS must not include localhost or wildcard in production")

        return self


# Global settings instance cache
@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


class AppConstants:
    """Application-wide constants"""

    # API Response Messages
    API_ERROR_MESSAGE = "An error occurred while processing your request"

    # Report Constants
    HIGH_VALUE_PATIENT_LIMIT = 15
    # Identifier parameters must fit a signed 64-bit primary key
    MIN_ROW_ID = 1
    MAX_ROW_ID = 2**63 - 1
    DECIMAL_PLACES = 2
    PERCENT_SCALE = 100
    EXPORT_FORMATS = ["json", "csv"]

    # Health Check Constants
    CRITICAL_SERVICES = ["database"]

    # Operations slower than this are logged as warnings
    SLOW_OPERATION_MS = 5000


__all__ = [
    "Settings",
    "DatabaseSettings",
    "get_settings",
    "AppConstants"
]
