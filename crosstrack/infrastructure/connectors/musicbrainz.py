"""MusicBrainz connector for recording search and metadata lookup.

MusicBrainz is the primary verification source: a recording found here is
taken as proof the track exists. The API allows one request per second and
rejects requests without an identifying User-Agent.

Key components:
- MusicBrainzAdapter: Lucene-style recording search plus recording lookup
- RecordingDetail: ISRC, release and linked platform ids of one recording
- Cover Art Archive probing for release artwork
"""

from typing import Any

from attrs import define, field

from crosstrack.config import resilient_operation
from crosstrack.domain.entities import Candidate, Platform, PlatformIds, TrackQuery
from crosstrack.domain.exceptions import InvalidIdentifierError, PlatformRequestError
from crosstrack.domain.identifiers import (
    is_musicbrainz_id,
    normalize_isrc,
    parse_apple_track_id,
    parse_qobuz_track_id,
    parse_spotify_track_id,
    parse_tidal_track_id,
    parse_youtube_video_id,
)

from .base_connector import BasePlatformAdapter, RateLimitedClient

API_URL = "https://musicbrainz.org/ws/2"
COVER_ART_URL = "https://coverartarchive.org"
COVER_ART_SIZES = ("front-500", "front-250")
RECORDING_INCLUDES = "url-rels+artist-credits+releases+isrcs"


def lucene_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_recording_query(artist: str, title: str) -> str:
    return f'artist:"{lucene_escape(artist)}" AND recording:"{lucene_escape(title)}"'


def join_artist_credit(credits: list[dict[str, Any]] | None) -> str:
    """Render an artist-credit list the way MusicBrainz displays it."""
    if not credits:
        return ""
    parts = []
    for credit in credits:
        name = credit.get("name") or credit.get("artist", {}).get("name", "")
        parts.append(f"{name}{credit.get('joinphrase', '')}")
    return "".join(parts).strip()


def _year(date: str | None) -> int | None:
    if date and len(date) >= 4 and date[:4].isdigit():
        return int(date[:4])
    return None


def platform_ids_from_relations(relations: list[dict[str, Any]] | None) -> PlatformIds:
    """Collect streaming ids from a recording's URL relationships."""
    ids = PlatformIds()
    for relation in relations or []:
        resource = (relation.get("url") or {}).get("resource")
        if not resource:
            continue
        parsers = (
            (Platform.SPOTIFY, parse_spotify_track_id),
            (Platform.APPLE, parse_apple_track_id),
            (Platform.YOUTUBE, parse_youtube_video_id),
            (Platform.TIDAL, parse_tidal_track_id),
            (Platform.QOBUZ, parse_qobuz_track_id),
        )
        for platform, parse in parsers:
            platform_id = parse(resource)
            if platform_id is None or ids.has(platform):
                continue
            extra = {"url": resource} if platform in (Platform.APPLE, Platform.QOBUZ) else {}
            try:
                ids = ids.with_id(platform, platform_id, **extra)
            except InvalidIdentifierError:
                continue
    return ids


@define(frozen=True, slots=True)
class RecordingDetail:
    """Full metadata of one MusicBrainz recording."""

    mbid: str
    title: str
    artist: str
    album: str | None = None
    release_id: str | None = None
    year: int | None = None
    isrc: str | None = None
    platform_ids: PlatformIds = field(factory=PlatformIds)


def recording_to_candidate(recording: dict[str, Any]) -> Candidate:
    releases = recording.get("releases") or []
    release = releases[0] if releases else {}
    isrcs = recording.get("isrcs") or []
    score = recording.get("score")
    return Candidate(
        platform=Platform.MUSICBRAINZ,
        id=recording["id"],
        artist=join_artist_credit(recording.get("artist-credit")),
        title=recording.get("title", ""),
        album=release.get("title"),
        url=f"https://musicbrainz.org/recording/{recording['id']}",
        isrc=normalize_isrc(isrcs[0]) if isrcs else None,
        score=float(score) / 100 if score is not None else None,
        release_id=release.get("id"),
        year=_year(recording.get("first-release-date") or release.get("date")),
    )


class MusicBrainzAdapter(BasePlatformAdapter):
    """Recording search against the MusicBrainz web service.

    Args:
        client: Rate-limited client pointed at ``API_URL``
        cover_art_client: Client for the Cover Art Archive; artwork lookups are
            skipped when omitted
    """

    platform = Platform.MUSICBRAINZ

    def __init__(
        self,
        client: RateLimitedClient,
        cover_art_client: RateLimitedClient | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, **kwargs)
        self.cover_art_client = cover_art_client

    def extract_direct_id(self, query: TrackQuery) -> str | None:
        return query.musicbrainz_id if is_musicbrainz_id(query.musicbrainz_id) else None

    @resilient_operation("musicbrainz_search")
    async def search_top_n(self, artist: str, title: str, n: int = 5) -> list[Candidate]:
        query = build_recording_query(artist, title)
        self.logger.debug("Searching recordings", query=query, limit=n)
        data = await self.client.get_json(
            "/recording/", params={"query": query, "fmt": "json", "limit": n}
        )
        recordings = data.get("recordings") or []
        return [recording_to_candidate(r) for r in recordings[:n] if r.get("id")]

    @resilient_operation("musicbrainz_lookup")
    async def lookup_recording(self, mbid: str) -> RecordingDetail | None:
        """Fetch ISRCs, releases and URL relationships for one recording.

        Returns:
            The recording detail, or None if MusicBrainz does not know the id
        """
        if not is_musicbrainz_id(mbid):
            return None
        try:
            data = await self.client.get_json(
                f"/recording/{mbid}", params={"inc": RECORDING_INCLUDES, "fmt": "json"}
            )
        except PlatformRequestError as e:
            if e.status_code == 404:
                return None
            raise

        candidate = recording_to_candidate(data)
        return RecordingDetail(
            mbid=mbid,
            title=candidate.title,
            artist=candidate.artist,
            album=candidate.album,
            release_id=candidate.release_id,
            year=candidate.year,
            isrc=candidate.isrc,
            platform_ids=platform_ids_from_relations(data.get("relations")),
        )

    async def cover_art_url(self, release_id: str | None) -> str | None:
        """First available front cover for a release, largest size first."""
        if not release_id or self.cover_art_client is None:
            return None
        for size in COVER_ART_SIZES:
            path = f"/release/{release_id}/{size}"
            try:
                response = await self.cover_art_client.request("HEAD", path)
            except PlatformRequestError:
                continue
            if response.status_code in (200, 307):
                return f"{COVER_ART_URL}{path}"
        return None

    async def aclose(self) -> None:
        await super().aclose()
        if self.cover_art_client is not None:
            await self.cover_art_client.aclose()
