from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    tipsoi_base_url: str = ""
    tipsoi_api_token: str = ""
    per_page: int = 500
    request_timeout: float = 30.0
    sync_interval: str = "*/5 * * * *"  # crontab, every 5 minutes
    sync_timezone: str = "UTC"
    initial_lookback_hours: int = 24
    auto_start_schedule: bool = True
    store_backend: str = "sheets"  # "sheets" or "sql"
    google_sheets_id: str = ""
    google_private_key_path: str = ""
    database_url: str = "sqlite:///./attendance.db"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
