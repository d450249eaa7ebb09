"""Tests for platform adapters against canned HTTP responses."""

import httpx
import pytest

from crosstrack.domain.entities import Platform, PlatformIds, SpotifyRef, TrackQuery
from crosstrack.domain.exceptions import ConfigurationError, PlatformAuthError
from crosstrack.infrastructure.connectors import (
    AppleMusicAdapter,
    CallableTokenProvider,
    IsrcLookupAdapter,
    MusicBrainzAdapter,
    SpotifyAdapter,
    StaticTokenProvider,
    YouTubeAdapter,
    create_adapter,
    get_available_platforms,
)
from crosstrack.infrastructure.connectors.base_connector import (
    RateLimitedClient,
    RetryPolicy,
)
from crosstrack.infrastructure.connectors.musicbrainz import build_recording_query
from crosstrack.infrastructure.connectors.youtube import parse_video_title

MBID = "0f2a3f3b-7b0f-4c8e-9d7e-3a5c2b1d4e6f"
SPOTIFY_ID = "0VjIjW4GlUZAMYd2vXMi3b"


def client_for(handler, base_url="https://api.example.test") -> RateLimitedClient:
    return RateLimitedClient(
        "test",
        base_url,
        retry=RetryPolicy(max_retries=1, initial_delay=0.0),
        transport=httpx.MockTransport(handler),
    )


class Recorder:
    """Transport handler that records requests and replies from a callable."""

    def __init__(self, reply):
        self.reply = reply
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.reply(request)


class TestMusicBrainzAdapter:
    """Test cases for recording search, lookup and cover art."""

    @pytest.mark.asyncio
    async def test_search_builds_field_query_and_parses_recordings(self):
        recorder = Recorder(
            lambda request: httpx.Response(
                200,
                json={
                    "recordings": [
                        {
                            "id": MBID,
                            "title": "Blinding Lights",
                            "score": 100,
                            "first-release-date": "2019-11-29",
                            "isrcs": ["USUG11904206"],
                            "artist-credit": [{"name": "The Weeknd", "joinphrase": ""}],
                            "releases": [{"id": "rel-1", "title": "After Hours"}],
                        }
                    ]
                },
            )
        )
        adapter = MusicBrainzAdapter(client_for(recorder))

        candidates = await adapter.search_top_n("The Weeknd", "Blinding Lights", n=3)

        params = recorder.requests[0].url.params
        assert params["query"] == 'artist:"The Weeknd" AND recording:"Blinding Lights"'
        assert params["limit"] == "3"
        assert params["fmt"] == "json"
        [candidate] = candidates
        assert candidate.id == MBID
        assert candidate.artist == "The Weeknd"
        assert candidate.album == "After Hours"
        assert candidate.release_id == "rel-1"
        assert candidate.isrc == "USUG11904206"
        assert candidate.year == 2019
        assert candidate.score == 1.0

    def test_query_escapes_quotes(self):
        assert build_recording_query('A "B"', "C") == 'artist:"A \\"B\\"" AND recording:"C"'

    def test_direct_id_requires_valid_mbid(self):
        adapter = MusicBrainzAdapter(client_for(lambda r: httpx.Response(500)))
        assert adapter.extract_direct_id(TrackQuery(artist="a", title="b", musicbrainz_id=MBID)) == MBID
        assert adapter.extract_direct_id(TrackQuery(artist="a", title="b", musicbrainz_id="nope")) is None

    @pytest.mark.asyncio
    async def test_lookup_collects_platform_ids_from_relations(self):
        recorder = Recorder(
            lambda request: httpx.Response(
                200,
                json={
                    "id": MBID,
                    "title": "Blinding Lights",
                    "artist-credit": [{"name": "The Weeknd"}],
                    "isrcs": ["USUG11904206"],
                    "releases": [{"id": "rel-1", "title": "After Hours", "date": "2020-03-20"}],
                    "relations": [
                        {"url": {"resource": f"https://open.spotify.com/track/{SPOTIFY_ID}"}},
                        {"url": {"resource": "https://music.apple.com/us/album/after-hours/1499378108?i=1499378615"}},
                        {"url": {"resource": "https://www.youtube.com/watch?v=4NRXx6U8ABQ"}},
                        {"url": {"resource": "https://example.com/not-a-platform"}},
                    ],
                },
            )
        )
        adapter = MusicBrainzAdapter(client_for(recorder))

        detail = await adapter.lookup_recording(MBID)

        assert recorder.requests[0].url.path.endswith(f"/recording/{MBID}")
        assert "url-rels" in recorder.requests[0].url.params["inc"]
        assert detail.isrc == "USUG11904206"
        assert detail.release_id == "rel-1"
        assert detail.year == 2020
        assert detail.platform_ids.spotify.id == SPOTIFY_ID
        assert detail.platform_ids.apple.id == "1499378615"
        assert detail.platform_ids.apple.url.startswith("https://music.apple.com/")
        assert detail.platform_ids.youtube.id == "4NRXx6U8ABQ"

    @pytest.mark.asyncio
    async def test_lookup_unknown_recording_returns_none(self):
        adapter = MusicBrainzAdapter(client_for(lambda request: httpx.Response(404)))
        assert await adapter.lookup_recording(MBID) is None

    @pytest.mark.asyncio
    async def test_cover_art_falls_back_to_smaller_size(self):
        def reply(request):
            if request.url.path.endswith("front-500"):
                return httpx.Response(404)
            return httpx.Response(307, headers={"Location": "https://archive.example/x.jpg"})

        cover_art = Recorder(reply)
        adapter = MusicBrainzAdapter(
            client_for(lambda r: httpx.Response(500)),
            cover_art_client=client_for(cover_art, "https://coverartarchive.org"),
        )

        url = await adapter.cover_art_url("rel-1")

        assert url == "https://coverartarchive.org/release/rel-1/front-250"
        assert [r.method for r in cover_art.requests] == ["HEAD", "HEAD"]

    @pytest.mark.asyncio
    async def test_cover_art_skipped_without_client(self):
        adapter = MusicBrainzAdapter(client_for(lambda r: httpx.Response(500)))
        assert await adapter.cover_art_url("rel-1") is None


def spotify_item(track_id=SPOTIFY_ID, name="Blinding Lights", artist="The Weeknd"):
    return {
        "id": track_id,
        "name": name,
        "artists": [{"name": artist}],
        "album": {
            "name": "After Hours",
            "release_date": "2020-03-20",
            "images": [{"url": "https://i.scdn.co/image/large"}],
        },
        "uri": f"spotify:track:{track_id}",
        "external_urls": {"spotify": f"https://open.spotify.com/track/{track_id}"},
        "external_ids": {"isrc": "USUG11904206"},
        "preview_url": "https://p.scdn.co/mp3-preview/x",
        "popularity": 90,
    }


class TestSpotifyAdapter:
    """Test cases for Spotify search and id extraction."""

    @pytest.mark.asyncio
    async def test_search_sends_bearer_token(self):
        recorder = Recorder(
            lambda request: httpx.Response(200, json={"tracks": {"items": [spotify_item()]}})
        )
        adapter = SpotifyAdapter(client_for(recorder), StaticTokenProvider("secret"))

        candidate = await adapter.search_top1("The Weeknd", "Blinding Lights")

        request = recorder.requests[0]
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.url.params["q"] == 'track:"Blinding Lights" artist:"The Weeknd"'
        assert request.url.params["limit"] == "1"
        assert candidate.id == SPOTIFY_ID
        assert candidate.uri == f"spotify:track:{SPOTIFY_ID}"
        assert candidate.artwork_url == "https://i.scdn.co/image/large"
        assert candidate.year == 2020

    @pytest.mark.asyncio
    async def test_token_fetched_from_callable_on_each_request(self):
        tokens = iter(["first", "refreshed"])

        async def fetch():
            return next(tokens)

        recorder = Recorder(
            lambda request: httpx.Response(200, json={"tracks": {"items": [spotify_item()]}})
        )
        adapter = SpotifyAdapter(client_for(recorder), CallableTokenProvider(fetch))

        await adapter.search_top_n("The Weeknd", "Blinding Lights")
        await adapter.search_top_n("The Weeknd", "Blinding Lights")

        assert [r.headers["Authorization"] for r in recorder.requests] == [
            "Bearer first",
            "Bearer refreshed",
        ]

    @pytest.mark.asyncio
    async def test_callable_without_token_makes_adapter_unavailable(self):
        async def fetch():
            return ""

        adapter = SpotifyAdapter(
            client_for(lambda r: httpx.Response(500)), CallableTokenProvider(fetch)
        )
        assert not await adapter.is_available()

    @pytest.mark.asyncio
    async def test_search_by_isrc(self):
        recorder = Recorder(
            lambda request: httpx.Response(200, json={"tracks": {"items": [spotify_item()]}})
        )
        adapter = SpotifyAdapter(client_for(recorder), StaticTokenProvider("secret"))

        candidate = await adapter.search_by_isrc("usug1-19-04206")

        assert recorder.requests[0].url.params["q"] == "isrc:USUG11904206"
        assert candidate.isrc == "USUG11904206"

    @pytest.mark.asyncio
    async def test_malformed_isrc_makes_no_request(self):
        recorder = Recorder(lambda request: httpx.Response(500))
        adapter = SpotifyAdapter(client_for(recorder), StaticTokenProvider("secret"))

        assert await adapter.search_by_isrc("bogus") is None
        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_rejected_token_raises_auth_error(self):
        adapter = SpotifyAdapter(
            client_for(lambda request: httpx.Response(401)), StaticTokenProvider("expired")
        )
        with pytest.raises(PlatformAuthError):
            await adapter.search_top_n("a", "b")

    @pytest.mark.asyncio
    async def test_unavailable_without_token(self):
        adapter = SpotifyAdapter(client_for(lambda r: httpx.Response(500)), StaticTokenProvider(""))
        assert not await adapter.is_available()
        with pytest.raises(PlatformAuthError):
            await adapter.search_top_n("a", "b")

    def test_direct_id_sources(self):
        adapter = SpotifyAdapter(client_for(lambda r: httpx.Response(500)), StaticTokenProvider("t"))

        from_ids = TrackQuery(artist="a", title="b", platform_ids=PlatformIds(spotify=SpotifyRef(SPOTIFY_ID)))
        from_uri = TrackQuery(artist="a", title="b", service_uri=f"spotify:track:{SPOTIFY_ID}")
        from_url = TrackQuery(artist="a", title="b", service_url=f"https://open.spotify.com/track/{SPOTIFY_ID}?si=x")
        from_service_id = TrackQuery(artist="a", title="b", service_id=SPOTIFY_ID)
        too_short = TrackQuery(artist="a", title="b", service_id=SPOTIFY_ID[:21])

        for query in (from_ids, from_uri, from_url, from_service_id):
            assert adapter.extract_direct_id(query) == SPOTIFY_ID
        assert adapter.extract_direct_id(too_short) is None


class TestAppleMusicAdapter:
    @pytest.mark.asyncio
    async def test_keeps_only_songs_and_upgrades_artwork(self):
        recorder = Recorder(
            lambda request: httpx.Response(
                200,
                json={
                    "results": [
                        {"kind": "music-video", "trackId": 1, "trackName": "Blinding Lights"},
                        {
                            "kind": "song",
                            "trackId": 1499378615,
                            "collectionId": 1499378108,
                            "trackName": "Blinding Lights",
                            "artistName": "The Weeknd",
                            "collectionName": "After Hours",
                            "artworkUrl100": "https://is1.mzstatic.com/a/100x100bb.jpg",
                            "releaseDate": "2019-11-29T08:00:00Z",
                        },
                    ]
                },
            )
        )
        adapter = AppleMusicAdapter(client_for(recorder), country="gb")

        [candidate] = await adapter.search_top_n("The Weeknd", "Blinding Lights")

        params = recorder.requests[0].url.params
        assert params["entity"] == "song"
        assert params["country"] == "gb"
        assert candidate.id == "1499378615"
        assert candidate.artwork_url == "https://is1.mzstatic.com/a/600x600bb.jpg"
        assert candidate.url == "https://music.apple.com/gb/album/1499378108?i=1499378615"
        assert candidate.year == 2019

    @pytest.mark.asyncio
    async def test_search_by_isrc_takes_first_song(self):
        recorder = Recorder(
            lambda request: httpx.Response(
                200,
                json={
                    "results": [
                        {"kind": "music-video", "trackId": 1},
                        {
                            "kind": "song",
                            "trackId": 1499378615,
                            "trackName": "Blinding Lights",
                            "artistName": "The Weeknd",
                            "trackViewUrl": "https://music.apple.com/us/album/after-hours/1499378108?i=1499378615",
                        },
                    ]
                },
            )
        )
        adapter = AppleMusicAdapter(client_for(recorder))

        candidate = await adapter.search_by_isrc("usug11904206")

        params = recorder.requests[0].url.params
        assert params["term"] == "USUG11904206"
        assert params["entity"] == "song"
        assert candidate.id == "1499378615"
        assert candidate.isrc == "USUG11904206"
        assert candidate.url.endswith("?i=1499378615")

    @pytest.mark.asyncio
    async def test_search_by_isrc_without_songs(self):
        recorder = Recorder(lambda request: httpx.Response(200, json={"results": []}))
        adapter = AppleMusicAdapter(client_for(recorder))

        assert await adapter.search_by_isrc("USUG11904206") is None
        assert await adapter.search_by_isrc("bogus") is None
        assert len(recorder.requests) == 1

    def test_implements_isrc_lookup(self):
        adapter = AppleMusicAdapter(client_for(lambda r: httpx.Response(500)))
        assert isinstance(adapter, IsrcLookupAdapter)

    def test_direct_id_from_url(self):
        adapter = AppleMusicAdapter(client_for(lambda r: httpx.Response(500)))
        query = TrackQuery(
            artist="a", title="b", service_url="https://music.apple.com/us/album/x/1?i=1499378615"
        )
        assert adapter.extract_direct_id(query) == "1499378615"


class TestYouTubeAdapter:
    """Test cases for video title parsing and API key auth."""

    @pytest.mark.parametrize(
        ("video_title", "expected"),
        [
            ("The Weeknd - Blinding Lights (Official Video)", ("The Weeknd", "Blinding Lights")),
            ("Blinding Lights by The Weeknd", ("The Weeknd", "Blinding Lights")),
            ("Blinding Lights [HD]", (None, "Blinding Lights")),
        ],
    )
    def test_parse_video_title(self, video_title, expected):
        assert parse_video_title(video_title) == expected

    @pytest.mark.asyncio
    async def test_api_key_sent_as_param_and_channel_fallback(self):
        recorder = Recorder(
            lambda request: httpx.Response(
                200,
                json={
                    "items": [
                        {"id": {"kind": "youtube#channel"}},
                        {
                            "id": {"videoId": "4NRXx6U8ABQ"},
                            "snippet": {
                                "title": "Blinding Lights (Official Audio)",
                                "channelTitle": "The Weeknd - Topic",
                            },
                        },
                    ]
                },
            )
        )
        adapter = YouTubeAdapter(client_for(recorder), api_key="k")

        [candidate] = await adapter.search_top_n("The Weeknd", "Blinding Lights")

        request = recorder.requests[0]
        assert request.url.params["key"] == "k"
        assert request.url.params["videoCategoryId"] == "10"
        assert "Authorization" not in request.headers
        assert candidate.artist == "The Weeknd"
        assert candidate.title == "Blinding Lights"

    @pytest.mark.asyncio
    async def test_unavailable_without_credentials(self):
        adapter = YouTubeAdapter(client_for(lambda r: httpx.Response(500)))
        assert not await adapter.is_available()

    def test_service_id_only_trusted_for_youtube_sources(self):
        adapter = YouTubeAdapter(client_for(lambda r: httpx.Response(500)), api_key="k")
        base = {"artist": "a", "title": "b", "service_id": "4NRXx6U8ABQ"}
        assert adapter.extract_direct_id(TrackQuery(**base)) is None
        assert (
            adapter.extract_direct_id(TrackQuery(**base, verification_source="youtube"))
            == "4NRXx6U8ABQ"
        )


class TestCreateAdapter:
    def test_unknown_platform_rejected(self):
        with pytest.raises(ConfigurationError, match="Unsupported platform"):
            create_adapter("tidal")

    @pytest.mark.asyncio
    async def test_builds_musicbrainz_with_user_agent(self):
        recorder = Recorder(lambda request: httpx.Response(200, json={"recordings": []}))
        adapter = create_adapter(Platform.MUSICBRAINZ, transport=httpx.MockTransport(recorder))

        assert isinstance(adapter, MusicBrainzAdapter)
        assert await adapter.search_top_n("a", "b") == []
        assert "crosstrack" in recorder.requests[0].headers["User-Agent"].lower()
        await adapter.aclose()

    def test_available_platforms(self):
        assert get_available_platforms() == ["musicbrainz", "spotify", "apple", "youtube"]
