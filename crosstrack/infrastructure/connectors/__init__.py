"""Platform connectors and the adapter factory.

Each adapter wraps one platform's search API behind ``PlatformSearchAdapter``
and owns its own ``RateLimitedClient``.
"""

import httpx

from crosstrack.config import Settings, settings
from crosstrack.domain.entities import Platform
from crosstrack.domain.exceptions import ConfigurationError
from crosstrack.domain.matching import ScoringWeights

from . import apple, musicbrainz, spotify, youtube
from .apple import AppleMusicAdapter
from .base_connector import BasePlatformAdapter, RateLimitedClient, RetryPolicy
from .musicbrainz import MusicBrainzAdapter, RecordingDetail
from .protocols import IsrcLookupAdapter, PlatformSearchAdapter, TokenProvider
from .spotify import SpotifyAdapter
from .tokens import CallableTokenProvider, StaticTokenProvider
from .youtube import YouTubeAdapter

__all__ = [
    "AppleMusicAdapter",
    "BasePlatformAdapter",
    "CallableTokenProvider",
    "IsrcLookupAdapter",
    "MusicBrainzAdapter",
    "PlatformSearchAdapter",
    "RateLimitedClient",
    "RecordingDetail",
    "RetryPolicy",
    "SpotifyAdapter",
    "StaticTokenProvider",
    "TokenProvider",
    "YouTubeAdapter",
    "create_adapter",
    "get_available_platforms",
]

SEARCHABLE_PLATFORMS = (
    Platform.MUSICBRAINZ,
    Platform.SPOTIFY,
    Platform.APPLE,
    Platform.YOUTUBE,
)


def _retry_policy(config: Settings, prefix: str) -> RetryPolicy:
    api = config.api
    return RetryPolicy(
        max_retries=getattr(api, f"{prefix}_retry_count"),
        initial_delay=getattr(api, f"{prefix}_retry_base_delay"),
        max_delay=getattr(api, f"{prefix}_retry_max_delay"),
        multiplier=getattr(api, f"{prefix}_retry_multiplier"),
    )


def _client(
    config: Settings,
    platform: Platform,
    base_url: str,
    transport: httpx.AsyncBaseTransport | None,
    headers: dict[str, str] | None = None,
) -> RateLimitedClient:
    return RateLimitedClient(
        platform.value,
        base_url,
        min_interval=getattr(config.api, f"{platform.value}_min_interval"),
        retry=_retry_policy(config, platform.value),
        headers=headers,
        timeout=config.api.request_timeout,
        transport=transport,
    )


def create_adapter(
    platform: str | Platform,
    token_provider: TokenProvider | None = None,
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BasePlatformAdapter:
    """Create a configured adapter for ``platform``.

    Args:
        platform: Platform name ("musicbrainz", "spotify", "apple", "youtube")
        token_provider: Token source for platforms that need auth. Spotify and
            YouTube fall back to the static tokens in settings when omitted.
        config: Settings to read rate limits and weights from
        transport: Optional httpx transport shared by the adapter's clients

    Raises:
        ConfigurationError: Unsupported platform
    """
    config = config or settings
    try:
        target = Platform(platform)
    except ValueError:
        target = None
    if target not in SEARCHABLE_PLATFORMS:
        available = ", ".join(get_available_platforms())
        raise ConfigurationError(f"Unsupported platform: {platform}. Available: {available}")

    credentials = config.credentials
    resolver = config.resolver
    default_weights = ScoringWeights(title=resolver.title_weight, artist=resolver.artist_weight)

    match target:
        case Platform.MUSICBRAINZ:
            user_agent = (
                f"{credentials.musicbrainz_app_name}/{credentials.musicbrainz_app_version}"
                f" ( {credentials.musicbrainz_contact} )"
            )
            client = _client(
                config, target, musicbrainz.API_URL, transport,
                headers={"User-Agent": user_agent, "Accept": "application/json"},
            )
            cover_art_client = RateLimitedClient(
                "coverartarchive",
                musicbrainz.COVER_ART_URL,
                retry=RetryPolicy(max_retries=1, initial_delay=0.5, max_delay=1.0),
                headers={"User-Agent": user_agent},
                timeout=config.api.request_timeout,
                transport=transport,
            )
            return MusicBrainzAdapter(
                client,
                cover_art_client=cover_art_client if config.verification.fetch_cover_art else None,
                weights=default_weights,
            )
        case Platform.SPOTIFY:
            return SpotifyAdapter(
                _client(config, target, spotify.API_URL, transport),
                token_provider=token_provider
                or StaticTokenProvider(credentials.spotify_access_token),
                weights=ScoringWeights(
                    title=resolver.spotify_title_weight,
                    artist=resolver.spotify_artist_weight,
                ),
            )
        case Platform.APPLE:
            return AppleMusicAdapter(
                _client(config, target, apple.API_URL, transport),
                country=config.api.apple_country,
                weights=default_weights,
            )
        case _:
            return YouTubeAdapter(
                _client(config, target, youtube.API_URL, transport),
                token_provider=token_provider
                or StaticTokenProvider(credentials.youtube_access_token),
                api_key=credentials.youtube_api_key,
                weights=default_weights,
            )


def get_available_platforms() -> list[str]:
    """Names of platforms that have a search adapter."""
    return [p.value for p in SEARCHABLE_PLATFORMS]
