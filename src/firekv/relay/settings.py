from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """
    Settings for talking to a relay instead of Firestore directly.

    Env: RELAY_BASE_URL, RELAY_BEACON_TIMEOUT, RELAY_FAILURE_LOG_PATH
    """

    base_url: str = Field(default="http://127.0.0.1:8000")
    beacon_timeout: float = Field(default=2.0)  # seconds
    failure_log_path: Path = Field(default=Path(".firekv/beacon_failure.json"))

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_relay_settings(**kwargs) -> RelaySettings:
    filtered = {k: v for k, v in kwargs.items() if v is not None}
    return RelaySettings(**filtered)
