"""Spotify connector built on the Web API search endpoint.

Requests carry a bearer token from the injected ``TokenProvider``. A missing
token makes the adapter unavailable; a rejected token surfaces as
``PlatformAuthError`` so the orchestrator can drop Spotify for the run.
"""

from typing import Any

from crosstrack.config import resilient_operation
from crosstrack.domain.entities import Candidate, Platform, TrackQuery
from crosstrack.domain.identifiers import (
    is_spotify_id,
    normalize_isrc,
    parse_spotify_track_id,
)
from crosstrack.domain.matching import ARTIST_WEIGHTED, ScoringWeights

from .base_connector import BasePlatformAdapter, RateLimitedClient
from .protocols import TokenProvider

API_URL = "https://api.spotify.com/v1"


def track_to_candidate(item: dict[str, Any]) -> Candidate:
    album = item.get("album") or {}
    images = album.get("images") or []
    popularity = item.get("popularity")
    release_date = album.get("release_date") or ""
    return Candidate(
        platform=Platform.SPOTIFY,
        id=item["id"],
        artist=", ".join(a.get("name", "") for a in item.get("artists") or []),
        title=item.get("name", ""),
        album=album.get("name"),
        uri=item.get("uri") or f"spotify:track:{item['id']}",
        url=(item.get("external_urls") or {}).get("spotify"),
        preview_url=item.get("preview_url"),
        artwork_url=images[0].get("url") if images else None,
        isrc=normalize_isrc((item.get("external_ids") or {}).get("isrc")),
        score=popularity / 100 if popularity is not None else None,
        year=int(release_date[:4]) if release_date[:4].isdigit() else None,
    )


class SpotifyAdapter(BasePlatformAdapter):
    """Track search on Spotify."""

    platform = Platform.SPOTIFY

    def __init__(
        self,
        client: RateLimitedClient,
        token_provider: TokenProvider,
        weights: ScoringWeights = ARTIST_WEIGHTED,
    ) -> None:
        super().__init__(client, weights=weights, token_provider=token_provider)

    def extract_direct_id(self, query: TrackQuery) -> str | None:
        if query.platform_ids.spotify is not None:
            return query.platform_ids.spotify.id
        for text in (query.service_uri, query.service_url):
            track_id = parse_spotify_track_id(text)
            if track_id:
                return track_id
        return query.service_id if is_spotify_id(query.service_id) else None

    async def _search(self, q: str, limit: int) -> list[Candidate]:
        headers = await self._bearer_headers()
        data = await self.client.get_json(
            "/search",
            params={"q": q, "type": "track", "limit": limit},
            headers=headers,
        )
        items = (data.get("tracks") or {}).get("items") or []
        return [track_to_candidate(item) for item in items if item and item.get("id")]

    @resilient_operation("spotify_search")
    async def search_top1(self, artist: str, title: str) -> Candidate | None:
        candidates = await self._search(f'track:"{title}" artist:"{artist}"', limit=1)
        return candidates[0] if candidates else None

    @resilient_operation("spotify_search")
    async def search_top_n(self, artist: str, title: str, n: int = 5) -> list[Candidate]:
        self.logger.debug("Searching tracks", artist=artist, title=title, limit=n)
        return await self._search(f"{title} {artist}", limit=n)

    @resilient_operation("spotify_isrc_search")
    async def search_by_isrc(self, isrc: str) -> Candidate | None:
        """Exact lookup by ISRC; None when the code is malformed or unknown."""
        code = normalize_isrc(isrc)
        if code is None:
            return None
        candidates = await self._search(f"isrc:{code}", limit=1)
        return candidates[0] if candidates else None
