# backend/enrollment/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # repository root


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/enrollment.db"
    redis_url: str = "redis://localhost:6379/0"
    api_base_url: str = "http://localhost:8000"

    # Pickup times are always interpreted in the handout locations' zone,
    # never in the viewer's.
    timezone: str = "Europe/Stockholm"
    default_slot_duration_minutes: int = 15
    time_grid_minutes: int = 15
    fallback_pickup_time: str = "12:00"
    capacity_notification_seconds: int = 5
    max_parcels_per_slot: int = 4

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        if url.startswith("sqlite:///./"):
            relative_path = url.replace("sqlite:///./", "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite:///{absolute_path}"
        return url


settings = Settings()
