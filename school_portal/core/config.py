# school_portal/core/config.py - Centralized settings management using Pydantic
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
import logging
import re

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings, read once from the environment and .env"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Environment
    ENV: str = Field(default="dev", description="Environment: dev, test, staging, prod")
    DEBUG: bool = Field(default=False, description="Debug mode")
    API_TITLE: str = Field(default="School Portal API", description="API title")
    API_VERSION: str = Field(default="1.0.0", description="API version")

    # Database Configuration
    DATABASE_URL: str = Field(..., description="Database connection URL")
    DATABASE_ECHO: bool = Field(default=False, description="Echo SQL queries")
    DATABASE_POOL_SIZE: int = Field(default=5, ge=1, le=100, description="Connection pool size")
    DATABASE_MAX_OVERFLOW: int = Field(default=10, ge=0, le=100, description="Max overflow connections")
    DATABASE_POOL_TIMEOUT: int = Field(default=30, ge=1, le=300, description="Pool timeout in seconds")
    DATABASE_POOL_RECYCLE: int = Field(default=3600, ge=300, description="Pool recycle time in seconds")

    # JWT Configuration
    JWT_SECRET: str = Field(..., min_length=32, description="JWT signing secret")
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=60, ge=1, le=10080, description="Access token expiry")
    JWT_REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=30, ge=1, le=365, description="Refresh token expiry")
    JWT_ISSUER: str = Field(default="school-portal", description="JWT issuer")
    JWT_AUDIENCE: str = Field(default="school-portal-users", description="JWT audience")

    # Password hashing
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=15, description="BCrypt rounds")

    # CORS Configuration (comma separated, "*" allows any origin)
    CORS_ORIGINS: str = Field(default="*", description="Allowed CORS origins")

    # Tenancy
    ROLE_LOOKUP_FUNCTION: Optional[str] = Field(
        default=None,
        description="PostgreSQL function returning a user's role, e.g. get_user_role_for_auth",
    )
    TENANT_BASE_DOMAIN: Optional[str] = Field(
        default=None,
        description="Domain whose direct subdomains are school slugs, e.g. schoolportal.app",
    )
    TENANT_RESERVED_SUBDOMAINS: str = Field(
        default="api",
        description="Comma separated labels that never name a school (www is always reserved)",
    )

    # AI gateway (OpenAI-compatible chat completions endpoint)
    AI_GATEWAY_URL: str = Field(default="https://ai.gateway.lovable.dev/v1", description="AI gateway base URL")
    AI_GATEWAY_API_KEY: Optional[str] = Field(default=None, description="AI gateway bearer key")
    AI_MODEL: str = Field(default="google/gemini-2.5-flash", description="Chat completion model")
    AI_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0, le=600, description="AI request timeout")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="logging format string",
    )

    @field_validator("ENV")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed_envs = ["dev", "development", "test", "staging", "prod", "production"]
        if v.lower() not in allowed_envs:
            raise ValueError(f"ENV must be one of: {allowed_envs}")
        return v.lower()

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if v == "change_me_now" or len(v) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters long")
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        allowed_prefixes = (
            "postgresql://",
            "postgresql+psycopg2://",
            "postgresql+psycopg://",
            "sqlite:///",
        )
        if not v.startswith(allowed_prefixes):
            raise ValueError("DATABASE_URL must be a postgresql or sqlite connection string")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed_levels}")
        return v.upper()

    @field_validator("ROLE_LOOKUP_FUNCTION")
    @classmethod
    def validate_role_lookup_function(cls, v: Optional[str]) -> Optional[str]:
        # interpolated into SQL, so only a plain (optionally schema-qualified) identifier
        if v and not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?", v):
            raise ValueError("ROLE_LOOKUP_FUNCTION must be a SQL identifier")
        return v or None

    @field_validator("TENANT_BASE_DOMAIN")
    @classmethod
    def normalize_base_domain(cls, v: Optional[str]) -> Optional[str]:
        if not v or not v.strip(". "):
            return None
        return v.strip(". ").lower()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.ENV in ["dev", "development"]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.ENV in ["prod", "production"]

    @property
    def is_postgres(self) -> bool:
        return self.DATABASE_URL.startswith("postgresql")

    @property
    def reserved_subdomains(self) -> List[str]:
        return [label.strip().lower() for label in self.TENANT_RESERVED_SUBDOMAINS.split(",") if label.strip()]

    @property
    def cors_origins(self) -> List[str]:
        origins = [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]
        return origins or ["*"]

    def get_cors_config(self) -> dict:
        """Get CORS configuration for FastAPI"""
        origins = self.cors_origins
        return {
            "allow_origins": origins,
            # browsers reject credentialed requests against a wildcard origin
            "allow_credentials": "*" not in origins,
            "allow_methods": ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            "allow_headers": ["authorization", "x-client-info", "apikey", "content-type", "x-school-id"],
        }


settings = Settings()


def validate_critical_settings():
    """Warn about settings that leave features unusable"""
    if not settings.AI_GATEWAY_API_KEY:
        logger.warning("AI_GATEWAY_API_KEY is not set; AI endpoints will answer 503")
    if settings.ROLE_LOOKUP_FUNCTION and not settings.is_postgres:
        logger.warning("ROLE_LOOKUP_FUNCTION is ignored on non-PostgreSQL databases")


validate_critical_settings()

__all__ = ["settings", "Settings"]
