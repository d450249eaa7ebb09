"""Platform adapter protocol definitions.

These protocols let the tiered resolver and the verification orchestrator stay
platform-agnostic: any object with the search contract below can be plugged
into a cascade.

Key components:
- TokenProvider: External collaborator handing out access tokens
- PlatformSearchAdapter: Uniform search contract every platform implements
- IsrcLookupAdapter: Optional exact lookup by ISRC
"""

from typing import Protocol, runtime_checkable

from crosstrack.domain.entities import Candidate, Platform, TrackQuery
from crosstrack.domain.matching import ScoringWeights


@runtime_checkable
class TokenProvider(Protocol):
    """Supplies an access token, or ``None`` when the user is not connected."""

    async def get_access_token(self) -> str | None: ...


@runtime_checkable
class PlatformSearchAdapter(Protocol):
    """Search contract for one streaming or metadata platform."""

    platform: Platform
    weights: ScoringWeights

    async def is_available(self) -> bool:
        """False when the platform cannot be used this run (e.g. no token)."""
        ...

    def extract_direct_id(self, query: TrackQuery) -> str | None:
        """Platform id already present on the query; never touches the network.

        Malformed ids are treated as absent.
        """
        ...

    async def search_top1(self, artist: str, title: str) -> Candidate | None:
        """The platform's single best-ranked hit for a narrow query."""
        ...

    async def search_top_n(self, artist: str, title: str, n: int = 5) -> list[Candidate]:
        """Up to ``n`` ranked hits for a broader query."""
        ...


@runtime_checkable
class IsrcLookupAdapter(Protocol):
    async def search_by_isrc(self, isrc: str) -> Candidate | None: ...
