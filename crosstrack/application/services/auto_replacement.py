"""Bounded automatic replacement of tracks that failed verification.

A round runs as an explicit state machine:

    REQUESTING -> VERIFYING -> (DELETING | RETRYING) -> {COMPLETE | FAILED}

Replacements are requested from an external generator, verified through the
``VerificationOrchestrator``, and paired in order with the still-failed
originals. Each verified replacement supersedes one original, which is then
deleted; originals whose replacement failed stay in the still-failed set for
the next attempt. Collaborator errors fail the attempt, never the loop.
"""

from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

from crosstrack.application.utilities.progress import RunControl, notify
from crosstrack.config import get_logger, settings
from crosstrack.domain.entities import (
    DeletionPlan,
    ReplacementAttemptState,
    ReplacementProgress,
    ReplacementRequest,
    ReplacementResult,
    ReplacementStage,
    RunStatus,
    TrackQuery,
)

from .verification_orchestrator import VerificationOrchestrator

logger = get_logger(__name__)

RequestReplacements = Callable[[int, str], Awaitable[Sequence[TrackQuery]]]
DeleteTracks = Callable[[Sequence[str]], Awaitable[None]]


class AutoReplacementOrchestrator:
    """Replace failed tracks, retrying up to ``max_retries`` attempts per round.

    Args:
        verifier: Orchestrator used to verify replacement candidates
        request_replacements: ``(count, context) -> tracks`` generator
        delete_tracks: Removes superseded originals by track id
    """

    def __init__(
        self,
        verifier: VerificationOrchestrator,
        request_replacements: RequestReplacements,
        delete_tracks: DeleteTracks,
    ) -> None:
        self.verifier = verifier
        self.request_replacements = request_replacements
        self.delete_tracks = delete_tracks

    async def iter_replacement(
        self,
        request: ReplacementRequest,
        control: RunControl | None = None,
    ) -> AsyncIterator[ReplacementProgress]:
        """Run one round, yielding a record on every stage change.

        The last record is terminal and carries the ReplacementResult.
        """
        control = (control or RunControl()).start()
        log = logger.bind(round=request.round)
        state = ReplacementAttemptState(
            round=request.round,
            max_retries=request.max_retries,
            still_failed=list(request.failed_tracks),
            original_count=len(request.failed_tracks),
        )
        if state.still_failed:
            state.attempt = 1
        else:
            state.stage = ReplacementStage.COMPLETE

        replacements: tuple[TrackQuery, ...] = ()
        plan: DeletionPlan | None = None

        def progress(message: str, result: ReplacementResult | None = None) -> ReplacementProgress:
            return ReplacementProgress(
                stage=state.stage,
                round=state.round,
                attempt=state.attempt,
                max_retries=state.max_retries,
                message=message,
                result=result,
            )

        def attempt_failed(error: str) -> ReplacementStage:
            state.last_error = error
            log.warning(
                f"Replacement attempt {state.attempt}/{state.max_retries} failed",
                error=error,
            )
            return ReplacementStage.RETRYING if state.attempts_left else ReplacementStage.FAILED

        while True:
            match state.stage:
                case ReplacementStage.REQUESTING:
                    stop = control.stop_reason()
                    if stop is not None:
                        state.stage = ReplacementStage.STOPPED
                        yield progress(f"Replacement {stop}", self._result(state, stop))
                        return
                    count = len(state.still_failed)
                    yield progress(f"Requesting {count} replacements")
                    try:
                        replacements = tuple(
                            await self.request_replacements(count, request.context)
                        )
                    except Exception as e:
                        state.stage = attempt_failed(f"Replacement request failed: {e}")
                        continue
                    if not replacements:
                        state.stage = attempt_failed("No replacements returned")
                    else:
                        state.stage = ReplacementStage.VERIFYING

                case ReplacementStage.VERIFYING:
                    yield progress(f"Verifying {len(replacements)} replacements")
                    try:
                        batch = await self.verifier.verify_batch(
                            replacements[: len(state.still_failed)], control=control
                        )
                    except Exception as e:
                        state.stage = attempt_failed(f"Verification failed: {e}")
                        continue
                    verified = [t for t in batch.resolved if t.verified]
                    pairs = list(zip(enumerate(state.still_failed), verified, strict=False))
                    if pairs:
                        plan = DeletionPlan(
                            positions=(index for (index, _), _ in pairs),
                            superseded=(original for (_, original), _ in pairs),
                            accepted=(replacement for _, replacement in pairs),
                        )
                        state.stage = ReplacementStage.DELETING
                    else:
                        state.stage = attempt_failed("No replacement passed verification")

                case ReplacementStage.DELETING:
                    if plan is None:
                        raise RuntimeError("Deletion stage entered without a deletion plan")
                    yield progress(f"Replacing {len(plan.superseded)} tracks")
                    ids = [t.track_id for t in plan.superseded if t.track_id is not None]
                    try:
                        if ids:
                            await self.delete_tracks(ids)
                    except Exception as e:
                        state.stage = attempt_failed(f"Deleting originals failed: {e}")
                        continue
                    state.apply(plan)
                    plan = None
                    log.info(
                        "Replacements accepted",
                        replaced=state.replaced_count,
                        remaining=len(state.still_failed),
                    )
                    if not state.still_failed:
                        state.stage = ReplacementStage.COMPLETE
                    else:
                        state.stage = attempt_failed(
                            f"{len(state.still_failed)} tracks still unverified"
                        )

                case ReplacementStage.RETRYING:
                    state.attempt += 1
                    yield progress(f"Retrying (attempt {state.attempt}/{state.max_retries})")
                    state.stage = ReplacementStage.REQUESTING

                case ReplacementStage.COMPLETE:
                    yield progress(
                        f"Replaced {state.replaced_count} tracks", self._result(state)
                    )
                    return

                case ReplacementStage.FAILED:
                    log.warning(
                        "Replacement retries exhausted, user action needed",
                        still_failed=len(state.still_failed),
                    )
                    yield progress(
                        f"{len(state.still_failed)} tracks need manual replacement",
                        self._result(state),
                    )
                    return

    def _result(
        self, state: ReplacementAttemptState, status: RunStatus = RunStatus.COMPLETED
    ) -> ReplacementResult:
        success = not state.still_failed
        return ReplacementResult(
            success=success,
            round=state.round,
            attempts=state.attempt,
            replaced_count=state.replaced_count,
            still_failed_songs=tuple(state.still_failed),
            replacements=tuple(state.accepted),
            user_action_needed=not success,
            status=status,
            error=None if success else state.last_error,
        )

    async def auto_replace_failed(
        self,
        request: ReplacementRequest,
        on_progress: Callable[[ReplacementProgress], Any] | None = None,
        control: RunControl | None = None,
    ) -> ReplacementResult:
        """Run one round to completion and return its result."""
        result: ReplacementResult | None = None
        async for event in self.iter_replacement(request, control):
            notify(on_progress, event)
            if event.result is not None:
                result = event.result
        if result is None:
            raise RuntimeError(f"Replacement round {request.round} ended without a result")
        return result

    async def auto_replace_rounds(
        self,
        requests: Sequence[ReplacementRequest],
        on_progress: Callable[[ReplacementProgress], Any] | None = None,
        control: RunControl | None = None,
    ) -> dict[int, ReplacementResult]:
        """Run several rounds one after another, in the order given."""
        results: dict[int, ReplacementResult] = {}
        for request in requests:
            results[request.round] = await self.auto_replace_failed(request, on_progress, control)
        return results


def default_request(
    round_number: int, failed_tracks: Sequence[TrackQuery], context: str = ""
) -> ReplacementRequest:
    """Request with ``max_retries`` taken from settings."""
    return ReplacementRequest(
        round=round_number,
        failed_tracks=tuple(failed_tracks),
        context=context,
        max_retries=settings.replacement.max_retries,
    )
