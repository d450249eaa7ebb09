"""Pure domain types for tiered matching and confidence scoring."""

from enum import StrEnum
from typing import Any

from attrs import define, field


class ResolutionTier(StrEnum):
    """Which strategy produced a match, in increasing order of uncertainty."""

    DIRECT = "direct"
    SOFT = "soft"
    HARD = "hard"
    FAILED = "failed"


class FailureKind(StrEnum):
    NOT_FOUND = "not_found"
    AUTH = "auth"


def _unit_interval(instance, attribute, value):
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{attribute.name} must be within [0, 1], got {value}")


@define(frozen=True, slots=True)
class ScoringWeights:
    """Weights applied to artist and title similarity; must sum to 1."""

    title: float = field(default=0.7, validator=_unit_interval)
    artist: float = field(default=0.3, validator=_unit_interval)

    def __attrs_post_init__(self) -> None:
        if abs(self.title + self.artist - 1.0) > 1e-9:
            raise ValueError(
                f"Scoring weights must sum to 1.0, got {self.title + self.artist}"
            )


TITLE_WEIGHTED = ScoringWeights(title=0.7, artist=0.3)
ARTIST_WEIGHTED = ScoringWeights(title=0.45, artist=0.55)


@define(frozen=True, slots=True)
class ConfidenceEvidence:
    """How a confidence score was put together for one candidate."""

    title_similarity: float
    artist_similarity: float
    weights: ScoringWeights
    confidence: float = field(validator=_unit_interval)

    def as_dict(self) -> dict[str, Any]:
        return {
            "title_similarity": round(self.title_similarity, 2),
            "artist_similarity": round(self.artist_similarity, 2),
            "title_weight": self.weights.title,
            "artist_weight": self.weights.artist,
            "confidence": round(self.confidence, 3),
        }
