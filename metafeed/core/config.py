# metafeed/core/config.py
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Identity of the combined feed (never taken from a source)
    SITE_TITLE: str = "Pius Metafeed"
    SITE_DESCRIPTION: str = "All the hoots fit to toot"
    SITE_LINK: str = "https://piusbird.space"

    # Cache artifact
    CACHE_FILE: str = "cache.xml"
    CACHE_TTL_SECONDS: int = 7200

    # Output
    MAX_OUTPUT_ITEMS: int = 750
    # Empty string disables the xml-stylesheet processing instruction
    STYLESHEET_HREF: Optional[str] = "/style.xsl"

    # Sources
    FEED_SOURCES_FILE: Optional[str] = None
    FETCH_TIMEOUT_S: float = 10.0
    USER_AGENT: str = "metafeed/0.1"

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
