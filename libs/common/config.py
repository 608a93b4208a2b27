from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "America/Sao_Paulo"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Supabase
    # Default placeholder values keep local/test runs from failing when Supabase
    # credentials are not required. Real deployments should override via env.
    SUPABASE_URL: str = "http://localhost"
    SUPABASE_ANON_KEY: str = "test-anon-key"
    SUPABASE_SERVICE_ROLE_KEY: str = "test-service-role-key"
    SUPABASE_JWT_SECRET: str = "test-jwt-secret"

    # Pagar.me (payment processor / recipient KYC)
    PAGARME_BASE_URL: str = "https://api.pagar.me/core/v5"
    PAGARME_API_KEY: str = ""
    PAGARME_WEBHOOK_SECRET: str = ""
    PAGARME_TIMEOUT_SECONDS: float = 60.0
    PIX_EXPIRES_IN_SECONDS: int = 600
    # Shown on the buyer's card statement; Pagar.me allows up to 13 chars
    PAGARME_STATEMENT_DESCRIPTOR: str = "MERCAFLY"

    # Melhor Envio (shipping aggregator)
    MELHOR_ENVIO_BASE_URL: str = "https://sandbox.melhorenvio.com.br/api/v2"
    MELHOR_ENVIO_TOKEN: str = ""
    MELHOR_ENVIO_USER_AGENT: str = "Mercafly (contato@mercafly.com.br)"
    MELHOR_ENVIO_SERVICES: str = "1,2,3,4,7,11"
    SHIPPING_TIMEOUT_SECONDS: float = 20.0

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
