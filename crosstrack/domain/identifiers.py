"""Platform identifier shapes and link parsing.

Pure functions that recognize platform ids inside URIs and URLs. None of them
touch the network; anything that does not look like a well-formed id yields
``None``.
"""

import re
from uuid import UUID

SPOTIFY_ID = re.compile(r"^[A-Za-z0-9]{22}$")
YOUTUBE_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
NUMERIC_ID = re.compile(r"^\d+$")
ISRC = re.compile(r"^[A-Z]{2}[A-Z0-9]{3}\d{7}$")

_SPOTIFY_LINK = re.compile(r"(?:spotify:track:|open\.spotify\.com/(?:[a-z-]+/)?track/)([A-Za-z0-9]+)")
_YOUTUBE_LINK = re.compile(
    r"(?:youtube:video:|youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|music\.youtube\.com/watch\?(?:.*&)?v=)"
    r"([A-Za-z0-9_-]+)"
)
_APPLE_TRACK_PARAM = re.compile(r"[?&]i=(\d+)")
_APPLE_SONG_PATH = re.compile(r"music\.apple\.com/[a-z]{2}/song/(?:[^/?]+/)?(\d+)")
_TIDAL_LINK = re.compile(r"tidal\.com/(?:browse/)?track/(\d+)")
_QOBUZ_LINK = re.compile(r"qobuz\.com/(?:[a-z-]+/)?track/(\d+)")


def is_spotify_id(value: str | None) -> bool:
    return bool(value) and SPOTIFY_ID.match(value) is not None


def is_youtube_id(value: str | None) -> bool:
    return bool(value) and YOUTUBE_ID.match(value) is not None


def is_numeric_id(value: str | None) -> bool:
    return bool(value) and NUMERIC_ID.match(value) is not None


def is_musicbrainz_id(value: str | None) -> bool:
    """MusicBrainz ids are hyphenated UUIDs."""
    if not value or len(value) != 36:
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True


def normalize_isrc(value: str | None) -> str | None:
    """Upper-case an ISRC and drop separators; ``None`` if it is malformed."""
    if not value:
        return None
    cleaned = value.replace("-", "").replace(" ", "").upper()
    return cleaned if ISRC.match(cleaned) else None


def _first_group(pattern: re.Pattern[str], text: str | None) -> str | None:
    if not text:
        return None
    match = pattern.search(text)
    return match.group(1) if match else None


def parse_spotify_track_id(text: str | None) -> str | None:
    """Spotify track id from a ``spotify:track:`` URI or an open.spotify.com URL."""
    candidate = _first_group(_SPOTIFY_LINK, text)
    return candidate if is_spotify_id(candidate) else None


def parse_youtube_video_id(text: str | None) -> str | None:
    """Video id from watch/short URLs or a ``youtube:video:`` URI."""
    candidate = _first_group(_YOUTUBE_LINK, text)
    return candidate if is_youtube_id(candidate) else None


def parse_apple_track_id(text: str | None) -> str | None:
    """Apple Music track id from an album URL's ``?i=`` param or a song URL."""
    if not text or "apple.com" not in text:
        return None
    return _first_group(_APPLE_TRACK_PARAM, text) or _first_group(_APPLE_SONG_PATH, text)


def parse_tidal_track_id(text: str | None) -> str | None:
    return _first_group(_TIDAL_LINK, text)


def parse_qobuz_track_id(text: str | None) -> str | None:
    return _first_group(_QOBUZ_LINK, text)


def spotify_uri(track_id: str) -> str:
    return f"spotify:track:{track_id}"


def spotify_url(track_id: str) -> str:
    return f"https://open.spotify.com/track/{track_id}"


def youtube_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def apple_track_url(collection_id: str | int, track_id: str | int, country: str = "us") -> str:
    return f"https://music.apple.com/{country}/album/{collection_id}?i={track_id}"
