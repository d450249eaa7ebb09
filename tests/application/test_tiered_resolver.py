"""Tests for the tiered resolver: direct, soft, hard and failed tiers."""

import pytest

from crosstrack.application.services import TieredResolver
from crosstrack.config.settings import ResolverConfig
from crosstrack.domain.entities import Platform, TrackQuery
from crosstrack.domain.exceptions import PlatformAuthError
from crosstrack.domain.matching import FailureKind, ResolutionTier, ScoringWeights

MBID = "0f2a3f3b-7b0f-4c8e-9d7e-3a5c2b1d4e6f"
EVEN = ScoringWeights(title=0.5, artist=0.5)


@pytest.fixture
def resolver():
    return TieredResolver(ResolverConfig())


class TestDirectTier:
    @pytest.mark.asyncio
    async def test_known_id_needs_no_network(self, resolver, query, fake_adapter):
        adapter = fake_adapter(Platform.SPOTIFY, direct="0VjIjW4GlUZAMYd2vXMi3b")

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.DIRECT
        assert result.identifier == "0VjIjW4GlUZAMYd2vXMi3b"
        assert result.confidence == 1.0
        assert adapter.network_calls == 0

    @pytest.mark.asyncio
    async def test_incomplete_query_fails_without_searching(self, resolver, fake_adapter):
        adapter = fake_adapter(Platform.SPOTIFY)

        result = await resolver.resolve(TrackQuery(artist="", title="Song"), adapter)

        assert result.tier is ResolutionTier.FAILED
        assert result.reason == "Missing artist or title"
        assert adapter.network_calls == 0


class TestSoftTier:
    """Test cases for queries confirmed by a trusted source."""

    @pytest.mark.asyncio
    async def test_trusted_query_accepts_top_hit(self, resolver, make_candidate, fake_adapter):
        query = TrackQuery(
            artist="The Weeknd", title="Blinding Lights", verification_source="musicbrainz"
        )
        adapter = fake_adapter(
            Platform.SPOTIFY, top1=make_candidate("The Weeknd", "Blinding Lights")
        )

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.SOFT
        assert result.confidence == pytest.approx(1.0)
        assert adapter.top_n_calls == []

    @pytest.mark.asyncio
    async def test_valid_mbid_counts_as_trusted(self, resolver, make_candidate, fake_adapter):
        query = TrackQuery(artist="The Weeknd", title="Blinding Lights", musicbrainz_id=MBID)
        adapter = fake_adapter(
            Platform.APPLE, top1=make_candidate("The Weeknd", "Blinding Lights", id="1")
        )

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.SOFT

    @pytest.mark.asyncio
    async def test_untrusted_query_skips_soft(self, resolver, query, make_candidate, fake_adapter):
        adapter = fake_adapter(
            Platform.SPOTIFY, top_n=[make_candidate("The Weeknd", "Blinding Lights")]
        )

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.HARD
        assert adapter.top1_calls == []

    @pytest.mark.asyncio
    async def test_soft_threshold_is_strict(self, resolver, make_candidate, fake_adapter):
        query = TrackQuery(artist="Someone", title="Song", verification_source="musicbrainz")
        half = make_candidate("Nobody", "Song")
        adapter = fake_adapter(Platform.SPOTIFY, top1=half, top_n=[half], weights=EVEN)

        result = await resolver.resolve(query, adapter)

        # exactly 0.5 is rejected by soft but accepted by hard
        assert result.tier is ResolutionTier.HARD
        assert result.confidence == 0.5
        assert result.attempted == (
            ResolutionTier.DIRECT,
            ResolutionTier.SOFT,
            ResolutionTier.HARD,
        )

    @pytest.mark.asyncio
    async def test_soft_error_falls_through_to_hard(self, resolver, make_candidate, fake_adapter):
        query = TrackQuery(artist="A", title="B", verification_source="musicbrainz")

        class FlakyTop1(fake_adapter):
            async def search_top1(self, artist, title):
                raise RuntimeError("timeout")

        adapter = FlakyTop1(Platform.SPOTIFY, top_n=[make_candidate("A", "B")])

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.HARD


class TestHardTier:
    """Test cases for top-N search and candidate ranking."""

    @pytest.mark.asyncio
    async def test_picks_best_of_top_n(self, resolver, query, make_candidate, fake_adapter):
        candidates = [
            make_candidate("The Weeknd", "Blinding Lights (Remix)", id="remix"),
            make_candidate("The Weeknd", "Blinding Lights", id="original"),
            make_candidate("Cover Band", "Blinding Lights", id="cover"),
        ]
        adapter = fake_adapter(Platform.SPOTIFY, top_n=candidates)

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.HARD
        assert result.identifier == "original"
        assert result.confidence >= 0.9
        assert adapter.top_n_calls == [("The Weeknd", "Blinding Lights", 5)]

    @pytest.mark.asyncio
    async def test_ties_keep_platform_order(self, resolver, query, make_candidate, fake_adapter):
        adapter = fake_adapter(
            Platform.SPOTIFY,
            top_n=[
                make_candidate("The Weeknd", "Blinding Lights", id="first"),
                make_candidate("The Weeknd", "Blinding Lights", id="second"),
            ],
        )

        result = await resolver.resolve(query, adapter)

        assert result.identifier == "first"

    @pytest.mark.asyncio
    async def test_below_threshold_fails(self, resolver, query, make_candidate, fake_adapter):
        adapter = fake_adapter(Platform.SPOTIFY, top_n=[make_candidate("Queen", "Bohemian Rhapsody")])

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.FAILED
        assert result.identifier is None
        assert result.reason == "No match found on platform"
        assert result.failure is FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_no_candidates_fails(self, resolver, query, fake_adapter):
        result = await resolver.resolve(query, fake_adapter(Platform.APPLE))

        assert not result.succeeded
        assert result.confidence == 0.0

    @pytest.mark.asyncio
    async def test_search_error_is_a_failed_result(self, resolver, query, fake_adapter):
        adapter = fake_adapter(Platform.APPLE, error=RuntimeError("HTTP 500"))

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.FAILED
        assert result.failure is FailureKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_auth_error_is_marked(self, resolver, query, fake_adapter):
        adapter = fake_adapter(
            Platform.SPOTIFY, error=PlatformAuthError("token expired", platform="spotify")
        )

        result = await resolver.resolve(query, adapter)

        assert result.tier is ResolutionTier.FAILED
        assert result.failure is FailureKind.AUTH
        assert "token expired" in result.reason

    @pytest.mark.asyncio
    async def test_resolution_is_repeatable(self, resolver, query, make_candidate, fake_adapter):
        adapter = fake_adapter(
            Platform.SPOTIFY, top_n=[make_candidate("The Weeknd", "Blinding Lights")]
        )

        assert await resolver.resolve(query, adapter) == await resolver.resolve(query, adapter)

    @pytest.mark.asyncio
    async def test_custom_search_limit(self, query, fake_adapter):
        adapter = fake_adapter(Platform.SPOTIFY)

        await TieredResolver(ResolverConfig(hard_search_limit=10)).resolve(query, adapter)

        assert adapter.top_n_calls[0][2] == 10


class TestResolveBatch:
    @pytest.mark.asyncio
    async def test_report_breakdown(self, resolver, make_candidate, fake_adapter):
        adapter = fake_adapter(
            Platform.SPOTIFY,
            direct=lambda q: "0VjIjW4GlUZAMYd2vXMi3b" if q.title == "Known" else None,
            top_n=lambda artist, title: (
                [make_candidate(artist, title)] if title == "Findable" else []
            ),
        )
        queries = [
            TrackQuery(artist="A", title="Known"),
            TrackQuery(artist="B", title="Findable"),
            TrackQuery(artist="C", title="Lost"),
        ]

        report = await resolver.resolve_batch(queries, adapter)

        assert report.total == 3
        assert report.breakdown() == {"direct": 1, "soft": 0, "hard": 1, "failed": 1}
        assert [r.tier for r in report.results] == [
            ResolutionTier.DIRECT,
            ResolutionTier.HARD,
            ResolutionTier.FAILED,
        ]
