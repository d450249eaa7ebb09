"""Track value objects shared by the resolver, adapters and orchestrators.

All entities are immutable. Platform references validate their id shape at
construction, so a ``PlatformIds`` value only ever holds well-formed ids.
Loose strings of unknown validity live on ``TrackQuery.service_*`` instead.
"""

from enum import StrEnum
from typing import Any

from attrs import define, evolve, field, fields_dict, validators

from crosstrack.config import get_logger
from crosstrack.domain.exceptions import InvalidIdentifierError
from crosstrack.domain.identifiers import (
    is_musicbrainz_id,
    is_numeric_id,
    is_spotify_id,
    is_youtube_id,
    normalize_isrc,
)

logger = get_logger(__name__)


class Platform(StrEnum):
    """Platforms a track can be resolved on."""

    MUSICBRAINZ = "musicbrainz"
    SPOTIFY = "spotify"
    APPLE = "apple"
    YOUTUBE = "youtube"
    TIDAL = "tidal"
    QOBUZ = "qobuz"


def _shape(platform: Platform, check):
    def _validate(instance, attribute, value):
        if not check(value):
            raise InvalidIdentifierError(platform.value, value)

    return _validate


@define(frozen=True, slots=True)
class SpotifyRef:
    id: str = field(validator=_shape(Platform.SPOTIFY, is_spotify_id))

    @property
    def uri(self) -> str:
        return f"spotify:track:{self.id}"

    @property
    def url(self) -> str:
        return f"https://open.spotify.com/track/{self.id}"


@define(frozen=True, slots=True)
class YouTubeRef:
    id: str = field(validator=_shape(Platform.YOUTUBE, is_youtube_id))

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.id}"


@define(frozen=True, slots=True)
class AppleRef:
    id: str = field(converter=str, validator=_shape(Platform.APPLE, is_numeric_id))
    url: str | None = None


@define(frozen=True, slots=True)
class TidalRef:
    id: str = field(converter=str, validator=_shape(Platform.TIDAL, is_numeric_id))

    @property
    def url(self) -> str:
        return f"https://tidal.com/browse/track/{self.id}"


@define(frozen=True, slots=True)
class QobuzRef:
    id: str = field(converter=str, validator=_shape(Platform.QOBUZ, is_numeric_id))
    url: str | None = None


_REF_TYPES = {
    Platform.SPOTIFY: SpotifyRef,
    Platform.APPLE: AppleRef,
    Platform.YOUTUBE: YouTubeRef,
    Platform.TIDAL: TidalRef,
    Platform.QOBUZ: QobuzRef,
}


@define(frozen=True, slots=True)
class PlatformIds:
    """Known identifiers, one optional slot per platform."""

    spotify: SpotifyRef | None = None
    apple: AppleRef | None = None
    youtube: YouTubeRef | None = None
    tidal: TidalRef | None = None
    qobuz: QobuzRef | None = None

    def get(self, platform: Platform) -> Any:
        """Reference for ``platform``, ``None`` when unknown or unsupported."""
        if platform not in _REF_TYPES:
            return None
        return getattr(self, platform.value)

    def has(self, platform: Platform) -> bool:
        return self.get(platform) is not None

    def merge(self, other: "PlatformIds") -> "PlatformIds":
        """Fill empty slots from ``other``; existing references win."""
        return PlatformIds(
            spotify=self.spotify or other.spotify,
            apple=self.apple or other.apple,
            youtube=self.youtube or other.youtube,
            tidal=self.tidal or other.tidal,
            qobuz=self.qobuz or other.qobuz,
        )

    def with_id(self, platform: Platform, platform_id: str, **extra: Any) -> "PlatformIds":
        ref_type = _REF_TYPES.get(platform)
        if ref_type is None:
            return self
        return evolve(self, **{platform.value: ref_type(platform_id, **extra)})

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> "PlatformIds":
        """Build from loosely typed input such as ``{"spotify": {"id": ...}}``.

        Malformed ids are logged and left out, so one bad reference never
        rejects the whole record.
        """
        if not data:
            return cls()
        refs: dict[str, Any] = {}
        for platform, ref_type in _REF_TYPES.items():
            raw = data.get(platform.value)
            if raw is None:
                continue
            try:
                if isinstance(raw, dict):
                    ref_id = raw.get("id")
                    if ref_id is None:
                        continue
                    extra = {"url": raw.get("url")} if "url" in fields_dict(ref_type) else {}
                    refs[platform.value] = ref_type(ref_id, **extra)
                else:
                    refs[platform.value] = ref_type(raw)
            except InvalidIdentifierError as e:
                logger.warning("Ignoring malformed platform id", error=e.message)
        return cls(**refs)


def _optional_isrc(value: str | None) -> str | None:
    return normalize_isrc(value) if value else None


@define(frozen=True, slots=True)
class TrackQuery:
    """A loosely specified track to resolve.

    ``artist`` and ``title`` may be empty; such queries are skipped during
    verification rather than rejected here, since they usually come straight
    from an upstream recommendation source.
    """

    artist: str = field(validator=validators.instance_of(str))
    title: str = field(validator=validators.instance_of(str))
    album: str | None = None
    year: int | None = None
    verification_source: Platform | None = field(
        default=None, converter=lambda v: Platform(v) if v else None
    )
    musicbrainz_id: str | None = None
    isrc: str | None = field(default=None, converter=_optional_isrc)
    track_id: str | None = None
    platform_ids: PlatformIds = field(factory=PlatformIds)

    # Legacy single-service fields, unvalidated
    service_id: str | None = None
    service_uri: str | None = None
    service_url: str | None = None

    @property
    def label(self) -> str:
        return f"{self.artist} - {self.title}"

    @property
    def is_complete(self) -> bool:
        return bool(self.artist.strip()) and bool(self.title.strip())

    @property
    def has_valid_musicbrainz_id(self) -> bool:
        return is_musicbrainz_id(self.musicbrainz_id)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "TrackQuery":
        """Build a query from a JSON-style dict (camelCase keys accepted)."""
        year = data.get("year")
        return cls(
            artist=str(data.get("artist") or ""),
            title=str(data.get("title") or ""),
            album=data.get("album"),
            year=int(year) if year not in (None, "") else None,
            verification_source=data.get("verification_source") or data.get("verificationSource"),
            musicbrainz_id=data.get("musicbrainz_id") or data.get("mbid"),
            isrc=data.get("isrc"),
            track_id=str(data["id"]) if data.get("id") is not None else data.get("track_id"),
            platform_ids=PlatformIds.from_mapping(
                data.get("platform_ids") or data.get("platformIds")
            ),
            service_id=data.get("service_id") or data.get("serviceId"),
            service_uri=data.get("service_uri") or data.get("serviceUri"),
            service_url=data.get("service_url") or data.get("serviceUrl"),
        )


@define(frozen=True, slots=True)
class Candidate:
    """One search hit returned by a platform."""

    platform: Platform
    id: str
    artist: str
    title: str
    album: str | None = None
    uri: str | None = None
    url: str | None = None
    preview_url: str | None = None
    artwork_url: str | None = None
    isrc: str | None = None
    score: float | None = None  # platform-native relevance
    release_id: str | None = None
    year: int | None = None
