"""Text similarity and confidence scoring for cross-platform matching."""

from .algorithms import (
    normalize,
    pick_best,
    score_candidate,
    similarity,
    weighted_confidence,
)
from .types import (
    ARTIST_WEIGHTED,
    TITLE_WEIGHTED,
    ConfidenceEvidence,
    FailureKind,
    ResolutionTier,
    ScoringWeights,
)

__all__ = [
    "ARTIST_WEIGHTED",
    "TITLE_WEIGHTED",
    "ConfidenceEvidence",
    "FailureKind",
    "ResolutionTier",
    "ScoringWeights",
    "normalize",
    "pick_best",
    "score_candidate",
    "similarity",
    "weighted_confidence",
]
