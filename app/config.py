"""
Application configuration using Pydantic Settings.
"""

import os
from decimal import Decimal
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


def get_env_file() -> str:
    """Determine which env file to use based on environment."""
    env = os.getenv("APP_ENV", "development")
    if env == "production":
        return ".env.production"
    return ".env.development"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App settings
    app_name: str = "Loan Tracker"
    debug: bool = False
    log_level: str = "INFO"
    app_env: str = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # JWT Configuration
    jwt_secret_key: str = "CHANGE-ME-IN-PRODUCTION-USE-LONG-RANDOM-STRING"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24

    # Loan terms
    monthly_interest_rate: Decimal = Decimal("0.0142")
    supported_terms: List[int] = [3, 6]
    loan_id_prefix: str = "1100"

    # Storage
    local_cache_url: str = "sqlite:///./local_cache.db"
    remote_database_url: str = ""

    # Messaging links
    phone_country_prefix: str = "88"
    notification_base_url: str = "https://wa.me"

    # Initial Admin (for first-time setup)
    initial_admin_name: str = ""
    initial_admin_pin: str = ""

    class Config:
        env_file = get_env_file()
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
