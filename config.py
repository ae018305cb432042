"""
Configuration for the portfolio API.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    environment: str = Field(default="development")
    api_prefix: str = Field(default="/api")
    port: int = Field(default=5000)
    log_level: str = Field(default="INFO")

    # MongoDB
    database_url: str = Field(default="mongodb://localhost:27017")
    database_name: str = Field(default="portfolio")
    use_in_memory_store: bool = Field(default=False)

    # Tokens
    jwt_secret: str = Field(default="dev-secret-key-change-in-production-000000")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expire_days: int = Field(default=30)

    # CORS
    client_url: str = Field(default="http://localhost:3000")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
