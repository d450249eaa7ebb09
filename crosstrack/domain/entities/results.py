"""Resolution and verification result entities.

``ResolveResult`` enforces its tier invariants at construction, so a failed
result with an identifier or a direct result with less than full confidence
cannot exist. Batch-level results are immutable snapshots handed to the caller.
"""

from enum import StrEnum

from attrs import define, field

from crosstrack.domain.matching.types import (
    ConfidenceEvidence,
    FailureKind,
    ResolutionTier,
)

from .track import Candidate, Platform, PlatformIds, TrackQuery

NO_MATCH_REASON = "No match found on platform"


@define(frozen=True, slots=True)
class ResolveResult:
    """Outcome of resolving one track on one platform."""

    platform: Platform
    tier: ResolutionTier
    identifier: str | None = None
    confidence: float = 0.0
    candidate: Candidate | None = None
    evidence: ConfidenceEvidence | None = None
    reason: str | None = None
    failure: FailureKind | None = None
    attempted: tuple[ResolutionTier, ...] = ()

    def __attrs_post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        if (self.tier is ResolutionTier.FAILED) != (self.identifier is None):
            raise ValueError("identifier must be present exactly when the tier is not failed")
        if self.tier is ResolutionTier.DIRECT and self.confidence != 1.0:
            raise ValueError("direct results carry confidence 1.0")

    @property
    def succeeded(self) -> bool:
        return self.tier is not ResolutionTier.FAILED

    @classmethod
    def direct(cls, platform: Platform, identifier: str) -> "ResolveResult":
        return cls(
            platform=platform,
            tier=ResolutionTier.DIRECT,
            identifier=identifier,
            confidence=1.0,
            attempted=(ResolutionTier.DIRECT,),
        )

    @classmethod
    def failed(
        cls,
        platform: Platform,
        reason: str = NO_MATCH_REASON,
        failure: FailureKind = FailureKind.NOT_FOUND,
        attempted: tuple[ResolutionTier, ...] = (),
    ) -> "ResolveResult":
        return cls(
            platform=platform,
            tier=ResolutionTier.FAILED,
            confidence=0.0,
            reason=reason,
            failure=failure,
            attempted=attempted,
        )


class VerificationStatus(StrEnum):
    VERIFIED = "verified"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(StrEnum):
    """How a verification or replacement run ended."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@define(frozen=True, slots=True)
class ResolvedTrack:
    """Per-track outcome of batch verification."""

    query: TrackQuery
    status: VerificationStatus
    source: Platform | None = None
    artist: str | None = None
    title: str | None = None
    album: str | None = None
    year: int | None = None
    isrc: str | None = None
    musicbrainz_id: str | None = None
    release_id: str | None = None
    album_art_url: str | None = None
    preview_url: str | None = None
    platform_ids: PlatformIds = field(factory=PlatformIds)
    confidence: float = 0.0
    error: str | None = None
    resolutions: tuple[ResolveResult, ...] = ()

    @property
    def verified(self) -> bool:
        return self.status is VerificationStatus.VERIFIED


@define(frozen=True, slots=True)
class FailedTrack:
    title: str
    artist: str
    error: str


@define(frozen=True, slots=True)
class VerificationSummary:
    """Aggregate counts for one batch; ``verified + failed + skipped == total``."""

    total: int = 0
    verified: int = 0
    failed: int = 0
    skipped: int = 0
    failed_songs: tuple[FailedTrack, ...] = ()
    status: RunStatus = RunStatus.COMPLETED
    unprocessed: int = 0

    def __attrs_post_init__(self) -> None:
        if self.verified + self.failed + self.skipped != self.total:
            raise ValueError("verified + failed + skipped must equal total")

    @property
    def success_rate(self) -> float:
        attempted = self.total - self.skipped
        return self.verified / attempted if attempted else 0.0


class SummaryBuilder:
    """Accumulates per-track outcomes; counters only ever grow."""

    def __init__(self) -> None:
        self._verified = 0
        self._failed = 0
        self._skipped = 0
        self._failed_songs: list[FailedTrack] = []

    @property
    def processed(self) -> int:
        return self._verified + self._failed + self._skipped

    def add(self, outcome: ResolvedTrack) -> None:
        match outcome.status:
            case VerificationStatus.VERIFIED:
                self._verified += 1
            case VerificationStatus.SKIPPED:
                self._skipped += 1
            case VerificationStatus.FAILED:
                self._failed += 1
                self._failed_songs.append(
                    FailedTrack(
                        title=outcome.query.title,
                        artist=outcome.query.artist,
                        error=outcome.error or "Unknown error",
                    )
                )

    def build(
        self, status: RunStatus = RunStatus.COMPLETED, unprocessed: int = 0
    ) -> VerificationSummary:
        return VerificationSummary(
            total=self.processed,
            verified=self._verified,
            failed=self._failed,
            skipped=self._skipped,
            failed_songs=tuple(self._failed_songs),
            status=status,
            unprocessed=unprocessed,
        )


@define(frozen=True, slots=True)
class BatchVerification:
    resolved: tuple[ResolvedTrack, ...]
    summary: VerificationSummary

    @property
    def failed_tracks(self) -> list[ResolvedTrack]:
        return [t for t in self.resolved if t.status is VerificationStatus.FAILED]


@define(frozen=True, slots=True)
class ResolutionReport:
    """Tier breakdown for resolving a list of tracks on one platform."""

    platform: Platform
    results: tuple[ResolveResult, ...]

    def count(self, tier: ResolutionTier) -> int:
        return sum(1 for r in self.results if r.tier is tier)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def resolved(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def success_rate(self) -> float:
        return self.resolved / self.total if self.total else 0.0

    @property
    def average_confidence(self) -> float:
        scores = [r.confidence for r in self.results if r.succeeded]
        return sum(scores) / len(scores) if scores else 0.0

    @property
    def failures(self) -> list[ResolveResult]:
        return [r for r in self.results if not r.succeeded]

    def breakdown(self) -> dict[str, int]:
        return {tier.value: self.count(tier) for tier in ResolutionTier}
