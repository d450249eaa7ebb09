"""Tiered track resolution: direct, soft search, hard search, failed.

For one track on one platform the resolver tries, in order:

1. direct: an id already present on the query. No network call.
2. soft: only for queries already confirmed by a trusted source. The
   platform's top hit is accepted above ``soft_threshold``.
3. hard: the top ``hard_search_limit`` hits are scored and the first maximum
   is accepted at or above ``hard_threshold``.
4. failed: nothing was accepted.

Adapter errors degrade to "no candidates" for that tier. An auth error ends
the resolution with a failed result marked ``FailureKind.AUTH`` so callers can
stop using the platform. ``resolve`` never raises.
"""

from collections.abc import Sequence

from crosstrack.config import get_logger, settings
from crosstrack.config.settings import ResolverConfig
from crosstrack.domain.entities import (
    NO_MATCH_REASON,
    Platform,
    ResolutionReport,
    ResolveResult,
    TrackQuery,
)
from crosstrack.domain.exceptions import PlatformAuthError
from crosstrack.domain.matching import (
    FailureKind,
    ResolutionTier,
    pick_best,
    score_candidate,
)
from crosstrack.infrastructure.connectors.protocols import PlatformSearchAdapter

logger = get_logger(__name__)


class TieredResolver:
    """Platform-agnostic tiered resolver.

    Args:
        config: Thresholds, hard-search size and trusted sources; defaults to
            ``settings.resolver``
    """

    def __init__(self, config: ResolverConfig | None = None) -> None:
        config = config or settings.resolver
        self.soft_threshold = config.soft_threshold
        self.hard_threshold = config.hard_threshold
        self.hard_search_limit = config.hard_search_limit
        self.trusted_sources = frozenset(Platform(s) for s in config.trusted_sources)

    def is_trusted(self, query: TrackQuery) -> bool:
        """Whether an upstream validator already confirmed this track exists."""
        return (
            query.verification_source in self.trusted_sources
            or query.has_valid_musicbrainz_id
        )

    async def resolve(self, query: TrackQuery, adapter: PlatformSearchAdapter) -> ResolveResult:
        """Resolve ``query`` on ``adapter``'s platform.

        Returns:
            ResolveResult with the tier that produced the match, or a failed
            result carrying a human-readable reason
        """
        platform = adapter.platform
        log = logger.bind(service=platform.value)
        attempted: list[ResolutionTier] = [ResolutionTier.DIRECT]

        try:
            direct_id = adapter.extract_direct_id(query)
        except Exception as e:
            log.warning("Direct id extraction failed", error=str(e), track=query.label)
            direct_id = None
        if direct_id:
            log.debug("Resolved from known id", track=query.label, id=direct_id)
            return ResolveResult.direct(platform, direct_id)

        if not query.is_complete:
            return ResolveResult.failed(
                platform, "Missing artist or title", attempted=tuple(attempted)
            )

        if self.is_trusted(query):
            attempted.append(ResolutionTier.SOFT)
            try:
                candidate = await adapter.search_top1(query.artist, query.title)
            except PlatformAuthError as e:
                return self._auth_failure(platform, e, attempted)
            except Exception as e:
                log.debug("Soft search failed, falling through", error=str(e), track=query.label)
                candidate = None

            if candidate is not None:
                evidence = score_candidate(query, candidate, adapter.weights)
                if evidence.confidence > self.soft_threshold:
                    log.debug(
                        "Soft match accepted",
                        track=query.label,
                        confidence=round(evidence.confidence, 3),
                    )
                    return ResolveResult(
                        platform=platform,
                        tier=ResolutionTier.SOFT,
                        identifier=candidate.id,
                        confidence=evidence.confidence,
                        candidate=candidate,
                        evidence=evidence,
                        attempted=tuple(attempted),
                    )

        attempted.append(ResolutionTier.HARD)
        try:
            candidates = await adapter.search_top_n(
                query.artist, query.title, self.hard_search_limit
            )
        except PlatformAuthError as e:
            return self._auth_failure(platform, e, attempted)
        except Exception as e:
            log.debug("Hard search failed", error=str(e), track=query.label)
            candidates = []

        best = pick_best(query, candidates, adapter.weights)
        if best is not None:
            candidate, evidence = best
            if evidence.confidence >= self.hard_threshold:
                log.debug(
                    "Hard match accepted",
                    track=query.label,
                    confidence=round(evidence.confidence, 3),
                    candidates=len(candidates),
                )
                return ResolveResult(
                    platform=platform,
                    tier=ResolutionTier.HARD,
                    identifier=candidate.id,
                    confidence=evidence.confidence,
                    candidate=candidate,
                    evidence=evidence,
                    attempted=tuple(attempted),
                )
            log.debug(
                "Best candidate below threshold",
                track=query.label,
                confidence=round(evidence.confidence, 3),
                threshold=self.hard_threshold,
            )

        return ResolveResult.failed(platform, NO_MATCH_REASON, attempted=tuple(attempted))

    def _auth_failure(
        self,
        platform: Platform,
        error: PlatformAuthError,
        attempted: list[ResolutionTier],
    ) -> ResolveResult:
        logger.bind(service=platform.value).warning("Platform rejected credentials", error=error.message)
        return ResolveResult.failed(
            platform,
            f"{platform.value} unavailable: {error.message}",
            failure=FailureKind.AUTH,
            attempted=tuple(attempted),
        )

    async def resolve_batch(
        self, queries: Sequence[TrackQuery], adapter: PlatformSearchAdapter
    ) -> ResolutionReport:
        """Resolve several tracks on one platform, in order, for export reports."""
        results = []
        with logger.contextualize(platform=adapter.platform.value, batch_size=len(queries)):
            for query in queries:
                results.append(await self.resolve(query, adapter))
        report = ResolutionReport(platform=adapter.platform, results=tuple(results))
        logger.info(
            f"Resolved {report.resolved}/{report.total} tracks on {adapter.platform}",
            breakdown=report.breakdown(),
            average_confidence=round(report.average_confidence, 3),
        )
        return report
