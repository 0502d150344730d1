"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment (LONELYCARE_*)."""

    model_config = SettingsConfigDict(
        env_prefix="LONELYCARE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "lonelycare"
    debug: bool = False
    database_url: str = "sqlite:///./lonelycare.db"

    # Diagnostic mode shortens the notification cooldown (10 min instead of 2 h)
    diagnostic_mode: bool = False

    # Local JSON cache for thresholds, cooldowns and audit history
    cache_path: str = "./.lonelycare-cache.json"

    # Periodic evaluation
    check_interval_minutes: float = 5.0

    # Push dispatch endpoint (empty disables the push channel)
    push_endpoint_url: str = ""
    push_timeout_seconds: float = 10.0

    # Emergency-services reporting integration
    emergency_api_url: str = ""
    emergency_api_key: str = ""
    emergency_enabled: bool = False
    emergency_auto_report: bool = False
    emergency_timeout_seconds: float = 30.0
    emergency_retry_count: int = 3


settings = Settings()
