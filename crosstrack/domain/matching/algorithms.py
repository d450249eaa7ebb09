"""Pure algorithms for text similarity and confidence scoring.

Confidence thresholds in the resolver are tuned against ``similarity`` exactly
as written here: an asymmetric token overlap that tolerates one side being a
superset of the other ("Song (feat. X)" versus "Song").
"""

from collections.abc import Sequence
import unicodedata

from rapidfuzz.utils import default_process

from crosstrack.domain.entities.track import Candidate, TrackQuery

from .types import ConfidenceEvidence, ScoringWeights, TITLE_WEIGHTED


def normalize(text: str | None) -> str:
    """Strip diacritics, lowercase, and reduce punctuation runs to single spaces."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    # default_process lowercases and blanks out non-alphanumerics
    return " ".join(default_process(stripped).split())


def tokens(text: str | None) -> set[str]:
    return set(normalize(text).split())


def similarity(a: str | None, b: str | None) -> float:
    """Token overlap ``|A & B| / max(|A|, |B|)``; 0 when either side is empty."""
    tokens_a, tokens_b = tokens(a), tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / max(len(tokens_a), len(tokens_b))


def score_candidate(
    query: TrackQuery, candidate: Candidate, weights: ScoringWeights = TITLE_WEIGHTED
) -> ConfidenceEvidence:
    """Weighted artist and title similarity of ``candidate`` against ``query``."""
    title_sim = similarity(query.title, candidate.title)
    artist_sim = similarity(query.artist, candidate.artist)
    confidence = title_sim * weights.title + artist_sim * weights.artist
    return ConfidenceEvidence(
        title_similarity=title_sim,
        artist_similarity=artist_sim,
        weights=weights,
        # float error must not push an exact match past 1.0
        confidence=min(max(confidence, 0.0), 1.0),
    )


def weighted_confidence(
    query: TrackQuery, candidate: Candidate, weights: ScoringWeights = TITLE_WEIGHTED
) -> float:
    return score_candidate(query, candidate, weights).confidence


def pick_best(
    query: TrackQuery,
    candidates: Sequence[Candidate],
    weights: ScoringWeights = TITLE_WEIGHTED,
) -> tuple[Candidate, ConfidenceEvidence] | None:
    """Highest scoring candidate; ties keep the platform's ranking order."""
    best: tuple[Candidate, ConfidenceEvidence] | None = None
    for candidate in candidates:
        evidence = score_candidate(query, candidate, weights)
        if best is None or evidence.confidence > best[1].confidence:
            best = (candidate, evidence)
    return best
