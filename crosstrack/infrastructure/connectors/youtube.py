"""YouTube connector using the Data API v3 search endpoint.

Video titles rarely separate artist and title cleanly, so each hit goes through
``parse_video_title`` before scoring. The channel name stands in for the artist
when the title cannot be split.
"""

import re
from typing import Any

from crosstrack.config import resilient_operation
from crosstrack.domain.entities import Candidate, Platform, TrackQuery
from crosstrack.domain.exceptions import PlatformAuthError
from crosstrack.domain.identifiers import is_youtube_id, parse_youtube_video_id
from crosstrack.domain.matching import ScoringWeights, TITLE_WEIGHTED

from .base_connector import BasePlatformAdapter, RateLimitedClient
from .protocols import TokenProvider

API_URL = "https://www.googleapis.com/youtube/v3"
MUSIC_CATEGORY_ID = "10"

TITLE_SEPARATORS = (" - ", " – ", " — ", " | ", " : ", ": ")
_DECORATION = re.compile(
    r"\s*[\(\[][^\)\]]*\b(?:official|video|audio|lyrics?|hd|4k|visualizer|music video)\b[^\)\]]*[\)\]]",
    re.IGNORECASE,
)
_BY = re.compile(r"\s+by\s+", re.IGNORECASE)
_TOPIC_SUFFIX = " - Topic"


def clean_title(text: str) -> str:
    """Drop bracketed decorations such as "(Official Video)" or "[HD]"."""
    return " ".join(_DECORATION.sub("", text).split())


def parse_video_title(video_title: str) -> tuple[str | None, str]:
    """Split a video title into ``(artist, title)``.

    Handles "Artist - Title" style separators and "Title by Artist". The
    artist is None when neither form matches.
    """
    text = clean_title(video_title)
    for separator in TITLE_SEPARATORS:
        if separator in text:
            artist, _, title = text.partition(separator)
            if artist.strip() and title.strip():
                return artist.strip(), title.strip()
    parts = _BY.split(text, maxsplit=1)
    if len(parts) == 2 and all(p.strip() for p in parts):
        return parts[1].strip(), parts[0].strip()
    return None, text


def video_to_candidate(item: dict[str, Any]) -> Candidate:
    video_id = item["id"]["videoId"]
    snippet = item.get("snippet") or {}
    channel = (snippet.get("channelTitle") or "").removesuffix(_TOPIC_SUFFIX)
    artist, title = parse_video_title(snippet.get("title", ""))
    thumbnails = snippet.get("thumbnails") or {}
    thumbnail = thumbnails.get("high") or thumbnails.get("medium") or thumbnails.get("default") or {}
    return Candidate(
        platform=Platform.YOUTUBE,
        id=video_id,
        artist=artist or channel,
        title=title,
        url=f"https://www.youtube.com/watch?v={video_id}",
        artwork_url=thumbnail.get("url"),
    )


class YouTubeAdapter(BasePlatformAdapter):
    """Music video search on YouTube.

    Authenticates with an OAuth token when one is available, otherwise with an
    API key. With neither the adapter reports itself unavailable.
    """

    platform = Platform.YOUTUBE

    def __init__(
        self,
        client: RateLimitedClient,
        token_provider: TokenProvider | None = None,
        api_key: str | None = None,
        weights: ScoringWeights = TITLE_WEIGHTED,
    ) -> None:
        super().__init__(client, weights=weights, token_provider=token_provider)
        self.api_key = api_key or None

    async def is_available(self) -> bool:
        if self.api_key:
            return True
        return self.token_provider is not None and await super().is_available()

    def extract_direct_id(self, query: TrackQuery) -> str | None:
        if query.platform_ids.youtube is not None:
            return query.platform_ids.youtube.id
        for text in (query.service_uri, query.service_url):
            video_id = parse_youtube_video_id(text)
            if video_id:
                return video_id
        if (
            query.verification_source is Platform.YOUTUBE
            and is_youtube_id(query.service_id)
        ):
            return query.service_id
        return None

    async def _auth(self) -> tuple[dict[str, str], dict[str, str]]:
        """Request headers and query params carrying the credentials."""
        token = await self.token_provider.get_access_token() if self.token_provider else None
        if token:
            return {"Authorization": f"Bearer {token}"}, {}
        if self.api_key:
            return {}, {"key": self.api_key}
        raise PlatformAuthError(
            "No YouTube access token or API key available", platform=self.platform.value
        )

    @resilient_operation("youtube_search")
    async def search_top_n(self, artist: str, title: str, n: int = 5) -> list[Candidate]:
        headers, auth_params = await self._auth()
        self.logger.debug("Searching videos", artist=artist, title=title, limit=n)
        data = await self.client.get_json(
            "/search",
            params={
                "part": "snippet",
                "type": "video",
                "videoCategoryId": MUSIC_CATEGORY_ID,
                "maxResults": n,
                "q": f"{artist} {title}",
                **auth_params,
            },
            headers=headers,
        )
        items = [
            item for item in data.get("items") or [] if (item.get("id") or {}).get("videoId")
        ]
        return [video_to_candidate(item) for item in items[:n]]
