"""Process configuration from environment variables and an optional .env file.

Only ``app.build_service`` reads settings; every component below it takes
explicit keyword arguments.
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CACHE_KEY = "leaderboard_data"
DEFAULT_CACHE_TTL_SECONDS = 1800


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Target / schedule
    target_url: str = "https://yaps.kaito.ai/yapper-leaderboards"
    scrape_interval_minutes: int = Field(default=30, ge=1)

    # Cache (empty URL → in-process cache)
    redis_url: str = "redis://localhost:6379/0"
    cache_key: str = DEFAULT_CACHE_KEY
    cache_ttl_seconds: int = Field(default=DEFAULT_CACHE_TTL_SECONDS, ge=1)

    # Store
    database_url: str = "sqlite+aiosqlite:///./leaderboard.db"

    # Browser
    headless: bool = True
    chrome_user_data_dir: str = ""
    chrome_profile: str = "Default"
    use_chrome_profile: bool = True
    chrome_version: str = "120.0.0.0"
    user_agent_template: str = ""
    locale: str = "en-US"
    viewport_width: int = 1920
    viewport_height: int = 1080
    viewport_jitter: int = Field(default=100, ge=0)
    launch_timeout_seconds: float = 60.0
    cookies_path: str = "./cookies.json"
    stealth_js_path: str = ""

    # Timing
    navigation_timeout_seconds: float = 45.0
    settle_delay_min_seconds: float = 3.0
    settle_delay_max_seconds: float = 6.0
    content_wait_timeout_seconds: float = 15.0
    challenge_max_rounds: int = Field(default=3, ge=0)
    challenge_settle_seconds: float = 2.0
    challenge_auto_clear_seconds: float = Field(default=30.0, ge=0)

    # Diagnostics
    snapshot_dir: str = "data/snapshots"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Cached settings; call ``get_settings.cache_clear()`` after patching the environment."""
    return Settings()
