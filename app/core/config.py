from functools import lru_cache
from typing import Dict

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # ─────────── APP ───────────
    app_name: str = "Property Token Exchange"
    environment: str = "dev"
    log_level: str = "INFO"

    # ─────────── API ───────────
    api_prefix: str = "/api/v1"
    request_id_header: str = "X-Request-Id"
    default_page_limit: int = 10
    max_page_limit: int = 100

    # ─────────── DATABASE ───────────
    database_url: str

    # ─────────── JWT / AUTH ───────────
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_minutes: int = 1440  # 24 hours

    # ─────────── CURRENCY ───────────
    # lower-cased country name or ISO-2 code -> currency
    currency_by_country: Dict[str, str] = Field(
        default_factory=lambda: {
            "thailand": "THB",
            "th": "THB",
            "spain": "EUR",
            "es": "EUR",
            "portugal": "EUR",
            "pt": "EUR",
            "germany": "EUR",
            "de": "EUR",
            "france": "EUR",
            "fr": "EUR",
            "italy": "EUR",
            "it": "EUR",
            "netherlands": "EUR",
            "nl": "EUR",
            "greece": "EUR",
            "gr": "EUR",
        }
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
