from functools import lru_cache
import json
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_csv_list(value: str) -> list[str]:
    if not value:
        return []

    parsed: list[str]
    raw = value.strip()
    if raw.startswith("["):
        try:
            items = json.loads(raw)
            parsed = [str(item).strip() for item in items if str(item).strip()]
        except (TypeError, ValueError):
            parsed = []
    else:
        parsed = [item.strip() for item in raw.split(",") if item.strip()]

    # Preserve order and remove duplicates.
    return list(dict.fromkeys(parsed))


class Settings(BaseSettings):
    app_name: str = "DirtTrails Payments"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: int = 15
    db_pool_recycle: int = 1200
    db_pool_pre_ping: bool = True

    # MarzPay
    marzpay_webhook_secret: Optional[str] = None
    payment_method: str = "mobile_money"
    default_currency: str = "UGX"

    # Notifications
    notification_provider: str = "console"  # console|telegram
    telegram_bot_token: Optional[str] = None
    telegram_chat_ids: str = ""
    telegram_api_base_url: str = "https://api.telegram.org"
    notification_timeout_seconds: float = 10.0

    # Ops: shared secret for the withdrawal review endpoint.
    admin_api_key: Optional[str] = None

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"
    auto_create_tables: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
