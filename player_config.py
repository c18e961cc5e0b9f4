from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """StreamPlayer settings, overridable via STREAMPLAYER_* environment variables."""

    # Device ports
    BLUOS_PORT: int = 11000
    SONOS_PORT: int = 1400

    # Timeouts (seconds)
    SCAN_TIMEOUT: float = 3.0  # per probe during discovery
    REQUEST_TIMEOUT: float = 10.0  # per control request

    # Sonos favorites browsing
    BROWSE_PAGE_SIZE: int = 100
    RADIO_ROOTS: List[str] = ["R:0/0", "R:0/1", "FV:2", "A:RADIO", "SQ:"]

    # HTTP API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="STREAMPLAYER_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
