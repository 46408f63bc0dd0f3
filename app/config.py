from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Tourism Booking API"
    database_url: str = "sqlite:///./tourism.db"
    session_secret: str = "dev_secret_change_me"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    # Manual payment proof uploads
    upload_dir: str = "./uploads"
    upload_url_prefix: str = "/uploads"
    max_upload_bytes: int = 10 * 1024 * 1024

    booking_number_prefix: str = "MTT"


@lru_cache
def get_settings() -> Settings:
    return Settings()
