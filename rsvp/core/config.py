"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "RSVP Lifecycle"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all
    public_base_url: str = ""  # Prefix for links embedded in notifications

    # Database
    database_url: str = "sqlite:///./rsvp.db"
    database_busy_timeout_seconds: float = 30.0

    # Day-of confirmation sweep
    confirmation_sweep_interval_minutes: int = 15
    confirmation_batch_size: int = 100

    # Waitlist consistency sweep
    reconcile_interval_minutes: int = 60


settings = Settings()
