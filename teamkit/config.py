"""Library configuration via pydantic-settings.

Reads from environment variables and .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Infrastructure
    database_url: str = "sqlite:///./data/teams.db"
    redis_url: str = "redis://localhost:6379"

    # Invites
    invite_ttl_hours: int = 24

    # Slugs
    slug_max_attempts: int = 5
    slug_suffix_length: int = 6

    # Audit
    audit_list_key: str = "teams:audit"
    audit_max_entries: int = 10000


settings = Settings()
