"""Core domain entities for track resolution."""

from .track import (
    AppleRef,
    Candidate,
    Platform,
    PlatformIds,
    QobuzRef,
    SpotifyRef,
    TidalRef,
    TrackQuery,
    YouTubeRef,
)
from .replacement import (
    DeletionPlan,
    ReplacementAttemptState,
    ReplacementProgress,
    ReplacementRequest,
    ReplacementResult,
    ReplacementStage,
)
from .results import (
    NO_MATCH_REASON,
    BatchVerification,
    FailedTrack,
    ResolutionReport,
    ResolvedTrack,
    ResolveResult,
    RunStatus,
    SummaryBuilder,
    VerificationStatus,
    VerificationSummary,
)

__all__ = [
    "NO_MATCH_REASON",
    "AppleRef",
    "BatchVerification",
    "Candidate",
    "DeletionPlan",
    "FailedTrack",
    "Platform",
    "PlatformIds",
    "QobuzRef",
    "ResolutionReport",
    "ResolveResult",
    "ResolvedTrack",
    "ReplacementAttemptState",
    "ReplacementProgress",
    "ReplacementRequest",
    "ReplacementResult",
    "ReplacementStage",
    "RunStatus",
    "SpotifyRef",
    "SummaryBuilder",
    "TidalRef",
    "TrackQuery",
    "VerificationStatus",
    "VerificationSummary",
    "YouTubeRef",
]
