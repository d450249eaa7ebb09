"""Shared fixtures: deterministic in-memory adapters and candidates."""

from collections.abc import Callable
from typing import Any

import pytest

from crosstrack.domain.entities import Candidate, Platform, TrackQuery
from crosstrack.domain.matching import TITLE_WEIGHTED, ScoringWeights


class FakeAdapter:
    """In-memory PlatformSearchAdapter with call recording.

    ``top1`` and ``top_n`` are either fixed answers or callables taking
    ``(artist, title)``. ``error`` is raised from every search.
    """

    def __init__(
        self,
        platform: Platform,
        top1: Any = None,
        top_n: Any = None,
        direct: Any = None,
        available: bool = True,
        error: Exception | None = None,
        weights: ScoringWeights = TITLE_WEIGHTED,
    ) -> None:
        self.platform = platform
        self.weights = weights
        self.top1 = top1
        self.top_n = top_n if top_n is not None else []
        self.direct = direct
        self.available = available
        self.error = error
        self.top1_calls: list[tuple[str, str]] = []
        self.top_n_calls: list[tuple[str, str, int]] = []
        self.closed = False

    @property
    def network_calls(self) -> int:
        return len(self.top1_calls) + len(self.top_n_calls)

    async def is_available(self) -> bool:
        return self.available

    def extract_direct_id(self, query: TrackQuery) -> str | None:
        return self.direct(query) if callable(self.direct) else self.direct

    async def search_top1(self, artist: str, title: str) -> Candidate | None:
        self.top1_calls.append((artist, title))
        if self.error is not None:
            raise self.error
        return self.top1(artist, title) if callable(self.top1) else self.top1

    async def search_top_n(self, artist: str, title: str, n: int = 5) -> list[Candidate]:
        self.top_n_calls.append((artist, title, n))
        if self.error is not None:
            raise self.error
        found = self.top_n(artist, title) if callable(self.top_n) else self.top_n
        return list(found)[:n]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def make_candidate() -> Callable[..., Candidate]:
    def _make(
        artist: str,
        title: str,
        platform: Platform = Platform.SPOTIFY,
        id: str = "4uLU6hMCjMI75M1A2tKUQC",
        **kwargs: Any,
    ) -> Candidate:
        return Candidate(platform=platform, id=id, artist=artist, title=title, **kwargs)

    return _make


@pytest.fixture
def fake_adapter() -> type[FakeAdapter]:
    return FakeAdapter


@pytest.fixture
def query() -> TrackQuery:
    return TrackQuery(artist="The Weeknd", title="Blinding Lights")
