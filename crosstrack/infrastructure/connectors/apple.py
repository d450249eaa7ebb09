"""Apple Music connector using the public iTunes Search API.

No credentials are required. Search results mix songs with music videos and
podcasts, so anything whose ``kind`` is not ``song`` is dropped.
"""

from typing import Any

from attrs import evolve

from crosstrack.config import resilient_operation
from crosstrack.domain.entities import Candidate, Platform, TrackQuery
from crosstrack.domain.identifiers import (
    apple_track_url,
    normalize_isrc,
    parse_apple_track_id,
)

from .base_connector import BasePlatformAdapter, RateLimitedClient

API_URL = "https://itunes.apple.com"


def upgrade_artwork(url: str | None) -> str | None:
    """Swap the 100px thumbnail for the 600px rendition of the same artwork."""
    return url.replace("100x100bb", "600x600bb") if url else None


def song_to_candidate(item: dict[str, Any], country: str = "us") -> Candidate:
    track_id = str(item["trackId"])
    url = item.get("trackViewUrl")
    if not url and item.get("collectionId"):
        url = apple_track_url(item["collectionId"], track_id, country)
    release_date = item.get("releaseDate") or ""
    return Candidate(
        platform=Platform.APPLE,
        id=track_id,
        artist=item.get("artistName", ""),
        title=item.get("trackName", ""),
        album=item.get("collectionName"),
        url=url,
        preview_url=item.get("previewUrl"),
        artwork_url=upgrade_artwork(item.get("artworkUrl100")),
        year=int(release_date[:4]) if release_date[:4].isdigit() else None,
    )


class AppleMusicAdapter(BasePlatformAdapter):
    """Song search on the iTunes catalogue."""

    platform = Platform.APPLE

    def __init__(self, client: RateLimitedClient, country: str = "us", **kwargs: Any) -> None:
        super().__init__(client, **kwargs)
        self.country = country

    def extract_direct_id(self, query: TrackQuery) -> str | None:
        if query.platform_ids.apple is not None:
            return query.platform_ids.apple.id
        for text in (query.service_url, query.service_uri):
            track_id = parse_apple_track_id(text)
            if track_id:
                return track_id
        return None

    @resilient_operation("itunes_search")
    async def search_top_n(self, artist: str, title: str, n: int = 5) -> list[Candidate]:
        self.logger.debug("Searching songs", artist=artist, title=title, limit=n)
        data = await self.client.get_json(
            "/search",
            params={
                "term": f"{artist} {title}",
                "entity": "song",
                "limit": n,
                "country": self.country,
            },
        )
        songs = [
            item
            for item in data.get("results") or []
            if item.get("kind") == "song" and item.get("trackId")
        ]
        return [song_to_candidate(item, self.country) for item in songs[:n]]

    @resilient_operation("itunes_isrc_search")
    async def search_by_isrc(self, isrc: str) -> Candidate | None:
        """First song the catalogue returns for an ISRC search term.

        iTunes results carry no ISRC, so the code searched for is recorded on
        the candidate.
        """
        code = normalize_isrc(isrc)
        if code is None:
            return None
        data = await self.client.get_json(
            "/search",
            params={"term": code, "entity": "song", "limit": 5, "country": self.country},
        )
        for item in data.get("results") or []:
            if item.get("kind") == "song" and item.get("trackId"):
                return evolve(song_to_candidate(item, self.country), isrc=code)
        self.logger.debug("No song for ISRC", isrc=code)
        return None
