# config.py
from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    telegram_bot_token: str
    telegram_chat_id: str
    telegram_api_url: str = "https://api.telegram.org"

    host: str = "0.0.0.0"
    port: int = 3000
    ack_before_processing: bool = True

    dedup_backend: Literal["none", "memory", "redis"] = "memory"
    dedup_max_size: int = 1000
    dedup_ttl: int = 900
    upstash_redis_rest_url: Optional[str] = None
    upstash_redis_rest_token: Optional[str] = None

    http_pool_size: int = 10
    http_timeout: int = 10

    log_level: str = "INFO"
    log_file: Optional[str] = "relay.log"

    @property
    def send_message_url(self) -> str:
        return f"{self.telegram_api_url.rstrip('/')}/bot{self.telegram_bot_token}/sendMessage"

    @model_validator(mode="after")
    def _check_dedup_backend(self):
        if self.dedup_backend == "redis" and not (self.upstash_redis_rest_url and self.upstash_redis_rest_token):
            raise ValueError("redis dedup backend needs UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN")
        if self.dedup_max_size < 1:
            raise ValueError("DEDUP_MAX_SIZE must be at least 1")
        if self.dedup_ttl < 1:
            raise ValueError("DEDUP_TTL must be at least 1 second")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
