"""Application configuration management"""

import json
from functools import lru_cache
from typing import Annotated, Any, List
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Mango Identity & Rewards"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database (PostgreSQL)
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "mango_db"
    POSTGRES_USER: str = "mango"
    POSTGRES_PASSWORD: str = "mango"
    DATABASE_POOL_SIZE: int = 30
    DATABASE_MAX_OVERFLOW: int = 20

    # JWT
    JWT_SECRET_KEY: str = "dev-secret-key-change-in-production-use-openssl-rand-hex-32"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "mango-auth"
    JWT_AUDIENCE: str = "mango-clients"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Password hashing (PBKDF2-HMAC-SHA256)
    PASSWORD_HASH_ITERATIONS: int = 100_000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:3000"]

    # Seeded administrator
    ADMIN_EMAIL: str = "admin@mango.local"
    ADMIN_PASSWORD: str = "admin123"
    ADMIN_NAME: str = "Administrator"

    # Database initialization
    DB_INIT_MODE: str = "create_all"  # create_all | off

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:3000","http://example.com"]
            CORS_ORIGINS=http://localhost:3000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from POSTGRES_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.POSTGRES_USER)
        password = quote_plus(self.POSTGRES_PASSWORD)
        return (
            f"postgresql://{user}:{password}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def validate_security_settings(self) -> None:
        """
        Refuse to run production with development secrets.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        if self.ENVIRONMENT.lower() != "production":
            return

        insecure_secret_markers = {
            "",
            "dev-secret-key-change-in-production-use-openssl-rand-hex-32",
            "change-me",
        }
        insecure_admin_passwords = {"", "admin123"}

        if self.JWT_SECRET_KEY in insecure_secret_markers or len(self.JWT_SECRET_KEY) < 32:
            raise ValueError(
                "Insecure JWT_SECRET_KEY for production. Use a strong key (e.g. `openssl rand -hex 32`)."
            )

        if self.ADMIN_PASSWORD in insecure_admin_passwords or len(self.ADMIN_PASSWORD) < 10:
            raise ValueError(
                "Insecure ADMIN_PASSWORD for production. Set a strong admin password before startup."
            )

        if self.PASSWORD_HASH_ITERATIONS < 100_000:
            raise ValueError("PASSWORD_HASH_ITERATIONS must be at least 100000 in production.")


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
