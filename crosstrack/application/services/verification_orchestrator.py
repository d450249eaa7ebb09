"""Batch verification across a cascade of platforms.

Each track goes through the primary cascade in order until one platform
accepts it. A verified track is then enriched best-effort: MusicBrainz
recording details and cover art when MusicBrainz verified it, plus lookups on
the configured enrichment platforms, which run concurrently since every
adapter has its own rate limiter. Tracks themselves are processed one at a
time, in input order.

Usage:
    ```python
    orchestrator = VerificationOrchestrator(adapters)
    batch = await orchestrator.verify_batch(tracks, on_progress=print)

    # or consume progress explicitly
    async for event in orchestrator.iter_batch(tracks):
        ...
    ```
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Mapping, Sequence
from typing import Any

from attrs import define, evolve, field

from crosstrack.application.utilities.progress import (
    RunControl,
    VerificationProgress,
    notify,
)
from crosstrack.config import get_logger, settings
from crosstrack.config.settings import VerificationConfig
from crosstrack.domain.entities import (
    BatchVerification,
    Candidate,
    Platform,
    PlatformIds,
    ResolvedTrack,
    ResolveResult,
    RunStatus,
    SummaryBuilder,
    TrackQuery,
    VerificationStatus,
)
from crosstrack.domain.exceptions import ConfigurationError, InvalidIdentifierError
from crosstrack.domain.matching import FailureKind, ResolutionTier, score_candidate
from crosstrack.infrastructure.connectors.protocols import (
    IsrcLookupAdapter,
    PlatformSearchAdapter,
)

from .tiered_resolver import TieredResolver

logger = get_logger(__name__)

MISSING_FIELDS_REASON = "Missing artist or title"
NO_PLATFORM_REASON = "No verification platform available"


def _as_platforms(names: Sequence[str | Platform]) -> tuple[Platform, ...]:
    try:
        return tuple(Platform(name) for name in names)
    except ValueError as e:
        raise ConfigurationError(f"Unknown platform in cascade: {e}") from e


def _record_id(ids: PlatformIds, result: ResolveResult) -> PlatformIds:
    """Record a resolved id; MusicBrainz ids live on the track, not here."""
    if result.identifier is None or result.platform is Platform.MUSICBRAINZ:
        return ids
    extra: dict[str, Any] = {}
    if result.platform is Platform.APPLE and result.candidate is not None:
        extra["url"] = result.candidate.url
    try:
        return ids.with_id(result.platform, result.identifier, **extra)
    except InvalidIdentifierError as e:
        logger.warning("Ignoring malformed platform id", error=e.message)
        return ids


@define(slots=True)
class _RunState:
    """Per-call state, so one orchestrator can serve concurrent batches."""

    available: set[Platform] = field(factory=set)

    def disable(self, platform: Platform) -> None:
        if platform in self.available:
            logger.warning(f"Disabling {platform} for the rest of the run")
            self.available.discard(platform)


class VerificationOrchestrator:
    """Drive a batch of tracks through the verification cascade.

    Args:
        adapters: Adapter per platform; every cascade platform needs one
        resolver: Tiered resolver used for each (track, platform) pair
        cascade: Primary platforms in order; defaults to settings
        enrichment: Secondary platforms for verified tracks; defaults to settings
        config: Verification settings group
        sleep: Awaitable sleep for inter-track pacing, injectable for tests

    Raises:
        ConfigurationError: Empty cascade, unknown platform names, or a
            cascade platform without an adapter
    """

    def __init__(
        self,
        adapters: Mapping[Platform, PlatformSearchAdapter],
        resolver: TieredResolver | None = None,
        cascade: Sequence[str | Platform] | None = None,
        enrichment: Sequence[str | Platform] | None = None,
        config: VerificationConfig | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        config = config or settings.verification
        self.adapters = dict(adapters)
        self.resolver = resolver or TieredResolver()
        self.cascade = _as_platforms(cascade if cascade is not None else config.cascade)
        if not self.cascade:
            raise ConfigurationError("Verification cascade is empty")
        missing = [p.value for p in self.cascade if p not in self.adapters]
        if missing:
            raise ConfigurationError(f"No adapter configured for: {', '.join(missing)}")

        requested = _as_platforms(enrichment if enrichment is not None else config.enrichment)
        self.enrichment = tuple(p for p in requested if p in self.adapters)
        skipped = set(requested) - set(self.enrichment)
        if skipped:
            logger.debug("Enrichment platforms without adapters ignored", platforms=sorted(skipped))

        self.inter_track_delay = config.inter_track_delay
        self.fetch_cover_art = config.fetch_cover_art
        self.timeout = config.timeout
        self._sleep = sleep

    async def _start_run(self) -> _RunState:
        """Check which platforms can be used; a null token means skip."""
        state = _RunState()
        for platform in dict.fromkeys(self.cascade + self.enrichment):
            if await self.adapters[platform].is_available():
                state.available.add(platform)
            else:
                logger.info(f"{platform} unavailable, skipping it for this run")
        return state

    async def iter_batch(
        self,
        tracks: Sequence[TrackQuery],
        control: RunControl | None = None,
    ) -> AsyncIterator[VerificationProgress]:
        """Verify ``tracks`` in order, yielding one progress record per track.

        Stops early, without error, once ``control`` is cancelled or past its
        deadline.
        """
        control = (control or RunControl(timeout=self.timeout)).start()
        state = await self._start_run()
        total = len(tracks)

        for index, query in enumerate(tracks, start=1):
            reason = control.stop_reason()
            if reason is not None:
                logger.warning(
                    f"Verification stopped: {reason}",
                    processed=index - 1,
                    total=total,
                )
                return

            outcome = await self.verify_track(query, state)
            yield VerificationProgress(
                current=index, total=total, label=query.label, outcome=outcome
            )

            if index < total and self.inter_track_delay > 0:
                await self._sleep(self.inter_track_delay)

    async def verify_batch(
        self,
        tracks: Sequence[TrackQuery],
        on_progress: Callable[[VerificationProgress], Any] | None = None,
        control: RunControl | None = None,
    ) -> BatchVerification:
        """Verify a batch and aggregate the run summary.

        Args:
            tracks: Tracks to verify, processed in order
            on_progress: Optional fire-and-continue callback per processed track
            control: Cancellation and timeout control for the run

        Returns:
            Resolved tracks plus an immutable VerificationSummary
        """
        control = (control or RunControl(timeout=self.timeout)).start()
        builder = SummaryBuilder()
        resolved: list[ResolvedTrack] = []

        with logger.contextualize(batch_size=len(tracks)):
            logger.info(f"Verifying {len(tracks)} tracks", cascade=[p.value for p in self.cascade])
            async for event in self.iter_batch(tracks, control):
                builder.add(event.outcome)
                resolved.append(event.outcome)
                notify(on_progress, event)

        unprocessed = len(tracks) - builder.processed
        status = RunStatus.COMPLETED
        if unprocessed:
            status = control.stop_reason() or RunStatus.CANCELLED
        summary = builder.build(status=status, unprocessed=unprocessed)
        logger.info(
            "Verification finished",
            verified=summary.verified,
            failed=summary.failed,
            skipped=summary.skipped,
            status=summary.status.value,
        )
        return BatchVerification(resolved=tuple(resolved), summary=summary)

    async def verify_track(self, query: TrackQuery, state: _RunState | None = None) -> ResolvedTrack:
        """Verify one track; failures come back as a failed ResolvedTrack."""
        if not query.is_complete:
            return ResolvedTrack(
                query=query, status=VerificationStatus.SKIPPED, error=MISSING_FIELDS_REASON
            )
        if state is None:
            state = await self._start_run()

        results: list[ResolveResult] = []
        try:
            for platform in self.cascade:
                if platform not in state.available:
                    continue
                result = await self.resolver.resolve(query, self.adapters[platform])
                results.append(result)
                if result.succeeded:
                    return await self._verified(query, result, results, state)
                if result.failure is FailureKind.AUTH:
                    state.disable(platform)
        except Exception as e:
            logger.opt(exception=e).error("Verification error", track=query.label)
            return ResolvedTrack(
                query=query,
                status=VerificationStatus.FAILED,
                error=str(e) or type(e).__name__,
                resolutions=tuple(results),
            )

        if not results:
            error = NO_PLATFORM_REASON
        else:
            tried = " or ".join(r.platform.value for r in results)
            reasons = "; ".join(dict.fromkeys(r.reason or "" for r in results))
            error = f"Not found in {tried}. {reasons}"
        logger.debug("Track failed verification", track=query.label, error=error)
        return ResolvedTrack(
            query=query,
            status=VerificationStatus.FAILED,
            error=error,
            resolutions=tuple(results),
        )

    async def _verified(
        self,
        query: TrackQuery,
        result: ResolveResult,
        results: list[ResolveResult],
        state: _RunState,
    ) -> ResolvedTrack:
        candidate = result.candidate
        track = ResolvedTrack(
            query=query,
            status=VerificationStatus.VERIFIED,
            source=result.platform,
            artist=candidate.artist if candidate else query.artist,
            title=candidate.title if candidate else query.title,
            album=(candidate.album if candidate else None) or query.album,
            year=(candidate.year if candidate else None) or query.year,
            isrc=(candidate.isrc if candidate else None) or query.isrc,
            musicbrainz_id=(
                result.identifier
                if result.platform is Platform.MUSICBRAINZ
                else query.musicbrainz_id
            ),
            release_id=candidate.release_id if candidate else None,
            album_art_url=candidate.artwork_url if candidate else None,
            preview_url=candidate.preview_url if candidate else None,
            platform_ids=_record_id(query.platform_ids, result),
            confidence=result.confidence,
        )
        logger.debug(
            f"Verified via {result.platform}",
            track=query.label,
            tier=result.tier.value,
            confidence=round(result.confidence, 3),
        )

        if result.platform is Platform.MUSICBRAINZ:
            track = await self._add_recording_detail(track)

        enrichment = await self._enrich(track, state)
        ids, art, preview = track.platform_ids, track.album_art_url, track.preview_url
        for extra in enrichment:
            if not extra.succeeded:
                continue
            ids = _record_id(ids, extra)
            if extra.candidate is not None:
                art = art or extra.candidate.artwork_url
                preview = preview or extra.candidate.preview_url
        return evolve(
            track,
            platform_ids=ids,
            album_art_url=art,
            preview_url=preview,
            resolutions=tuple(results) + enrichment,
        )

    async def _add_recording_detail(self, track: ResolvedTrack) -> ResolvedTrack:
        adapter = self.adapters.get(Platform.MUSICBRAINZ)
        lookup = getattr(adapter, "lookup_recording", None)
        if lookup is None or track.musicbrainz_id is None:
            return track
        try:
            detail = await lookup(track.musicbrainz_id)
            if detail is not None:
                track = evolve(
                    track,
                    album=track.album or detail.album,
                    year=track.year or detail.year,
                    isrc=track.isrc or detail.isrc,
                    release_id=track.release_id or detail.release_id,
                    platform_ids=track.platform_ids.merge(detail.platform_ids),
                )
            if self.fetch_cover_art and not track.album_art_url:
                cover_art_url = getattr(adapter, "cover_art_url", None)
                if cover_art_url is not None:
                    track = evolve(track, album_art_url=await cover_art_url(track.release_id))
        except Exception as e:
            logger.debug("Recording detail lookup failed", error=str(e), mbid=track.musicbrainz_id)
        return track

    async def _enrich(self, track: ResolvedTrack, state: _RunState) -> tuple[ResolveResult, ...]:
        """Best-effort lookups on secondary platforms; failures leave ids unset."""
        targets = [
            p
            for p in self.enrichment
            if p is not track.source and p in state.available and not track.platform_ids.has(p)
        ]
        if not targets:
            return ()

        query = TrackQuery(
            artist=track.artist or track.query.artist,
            title=track.title or track.query.title,
            album=track.album,
            year=track.year,
            verification_source=track.source,
            musicbrainz_id=track.musicbrainz_id,
            isrc=track.isrc,
            platform_ids=track.platform_ids,
        )
        lookups = await asyncio.gather(*(self._enrich_one(p, query, state) for p in targets))
        return tuple(r for r in lookups if r is not None)

    async def _enrich_one(
        self, platform: Platform, query: TrackQuery, state: _RunState
    ) -> ResolveResult | None:
        adapter = self.adapters[platform]
        try:
            if query.isrc and isinstance(adapter, IsrcLookupAdapter):
                candidate = await adapter.search_by_isrc(query.isrc)
                if candidate is not None:
                    return self._isrc_result(query, candidate, adapter)
            result = await self.resolver.resolve(query, adapter)
        except Exception as e:
            logger.bind(service=platform.value).debug("Enrichment failed", error=str(e), track=query.label)
            return None
        if result.failure is FailureKind.AUTH:
            state.disable(platform)
        return result

    def _isrc_result(
        self, query: TrackQuery, candidate: Candidate, adapter: PlatformSearchAdapter
    ) -> ResolveResult:
        evidence = score_candidate(query, candidate, adapter.weights)
        return ResolveResult(
            platform=adapter.platform,
            tier=ResolutionTier.SOFT,
            identifier=candidate.id,
            confidence=evidence.confidence,
            candidate=candidate,
            evidence=evidence,
            attempted=(ResolutionTier.DIRECT, ResolutionTier.SOFT),
        )
