"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROPERTYSNAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "PropertySnap"
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./propertysnap.db"
    state_key: str = "@propertysnap_state"
    notification_preferences_key: str = "@notification_preferences"
    scheduled_notifications_key: str = "@scheduled_notifications"
    persist_debounce_ms: int = 500

    # Photo verification
    gps_threshold_m: float = 100.0
    gps_timeout_s: float = 2.0
    exif_timeout_s: float = 0.5

    # Reports
    report_output_dir: str = "./reports"
    report_timezone: str = "UTC"

    # Geocoder
    geocoder_base_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "PropertySnap/0.1"
    geocoder_timeout_s: float = 10.0

    # Notifications
    due_alert_hour: int = 9
    notification_timezone: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
