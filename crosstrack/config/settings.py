"""Configuration management using Pydantic Settings.

Settings load from environment variables and an optional ``.env`` file. The
configuration is organized into logical groups:
- LoggingConfig: Logging levels, files, and debugging options
- CredentialsConfig: Static tokens and MusicBrainz contact details
- APIConfig: Per-platform rate limiting and retry behavior
- ResolverConfig: Tier thresholds and scoring weights
- VerificationConfig: Cascade order, enrichment, and pacing
- ReplacementConfig: Automatic replacement retry bounds
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel):
    """Logging configuration for console and file output."""

    console_level: str = "INFO"
    file_level: str = "DEBUG"
    log_file: Path = Path("logs/crosstrack.log")
    real_time_debug: bool = True


class CredentialsConfig(BaseModel):
    """Access tokens and client identification.

    Tokens are handed in by whoever owns the OAuth flow; an empty value means
    the platform is unavailable for the run.
    """

    spotify_access_token: str = ""
    youtube_access_token: str = ""
    youtube_api_key: str = ""

    # MusicBrainz rejects anonymous clients
    musicbrainz_app_name: str = "crosstrack"
    musicbrainz_app_version: str = "0.1.0"
    musicbrainz_contact: str = "crosstrack@example.com"


class APIConfig(BaseModel):
    """External API rate limiting and retry configuration (seconds)."""

    request_timeout: float = 15.0

    # MusicBrainz allows one request per second per client
    musicbrainz_min_interval: float = 1.0
    musicbrainz_retry_count: int = 3
    musicbrainz_retry_base_delay: float = 1.0
    musicbrainz_retry_max_delay: float = 10.0
    musicbrainz_retry_multiplier: float = 2.0

    spotify_min_interval: float = 0.1
    spotify_retry_count: int = 3
    spotify_retry_base_delay: float = 0.5
    spotify_retry_max_delay: float = 30.0
    spotify_retry_multiplier: float = 2.0

    apple_min_interval: float = 0.05
    apple_retry_count: int = 3
    apple_retry_base_delay: float = 1.0
    apple_retry_max_delay: float = 10.0
    apple_retry_multiplier: float = 2.0
    apple_country: str = "us"

    youtube_min_interval: float = 0.1
    youtube_retry_count: int = 2
    youtube_retry_base_delay: float = 1.0
    youtube_retry_max_delay: float = 10.0
    youtube_retry_multiplier: float = 2.0


class ResolverConfig(BaseModel):
    """Tier thresholds and similarity weights for the tiered resolver."""

    soft_threshold: float = 0.5  # accepted when strictly above
    hard_threshold: float = 0.5  # accepted when equal or above
    hard_search_limit: int = 5
    title_weight: float = 0.7
    artist_weight: float = 0.3
    # Spotify user-search variant leans on the artist
    spotify_title_weight: float = 0.45
    spotify_artist_weight: float = 0.55
    trusted_sources: list[str] = ["musicbrainz"]


class VerificationConfig(BaseModel):
    """Cascade order and pacing for batch verification."""

    cascade: list[str] = ["musicbrainz", "apple"]
    enrichment: list[str] = ["spotify", "apple"]
    inter_track_delay: float = 0.1
    fetch_cover_art: bool = True
    timeout: float | None = None


class ReplacementConfig(BaseModel):
    """Automatic replacement loop bounds."""

    max_retries: int = 3


class Settings(BaseSettings):
    """Main application settings with environment variable support.

    Environment variables can use nested naming (``API__SPOTIFY_MIN_INTERVAL``)
    or the flat legacy names handled by ``transform_flat_env_vars``
    (``SPOTIFY_ACCESS_TOKEN``, ``CONSOLE_LOG_LEVEL``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    logging: LoggingConfig = LoggingConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    api: APIConfig = APIConfig()
    resolver: ResolverConfig = ResolverConfig()
    verification: VerificationConfig = VerificationConfig()
    replacement: ReplacementConfig = ReplacementConfig()

    @model_validator(mode="before")
    @classmethod
    def transform_flat_env_vars(cls, data: Any) -> Any:
        """Map flat environment variables onto the nested groups."""
        if not isinstance(data, dict):
            return data

        mappings = {
            "logging": {
                "console_log_level": "console_level",
                "file_log_level": "file_level",
                "log_file": "log_file",
                "log_real_time_debug": "real_time_debug",
            },
            "credentials": {
                "spotify_access_token": "spotify_access_token",
                "youtube_access_token": "youtube_access_token",
                "youtube_api_key": "youtube_api_key",
                "musicbrainz_contact": "musicbrainz_contact",
            },
            "replacement": {
                "replacement_max_retries": "max_retries",
            },
        }
        for group, mapping in mappings.items():
            for env_key, field_key in mapping.items():
                if env_key in data:
                    data.setdefault(group, {})
                    if isinstance(data[group], dict):
                        data[group][field_key] = data.pop(env_key)

        return data


# Singleton instance for application use
settings = Settings()
