"""Progress records and run control for verification and replacement runs.

Runs report progress as a finite stream of immutable records that the caller
consumes explicitly (``async for event in ...``). ``RunControl`` carries the
abort flag and the optional deadline checked between tracks and attempts.
"""

from collections.abc import Callable
import time
from typing import Any

from attrs import define

from crosstrack.config import get_logger
from crosstrack.domain.entities import ResolvedTrack, RunStatus

logger = get_logger(__name__)


@define(frozen=True, slots=True)
class VerificationProgress:
    """Emitted once per processed track, in input order."""

    current: int
    total: int
    label: str
    outcome: ResolvedTrack

    @property
    def progress_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        return min(100.0, (self.current / self.total) * 100)


class RunControl:
    """Cancellation flag plus optional deadline for one run.

    Args:
        timeout: Seconds after ``start()`` at which the run is abandoned
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self._clock = clock
        self._cancelled = False
        self._deadline: float | None = None

    def start(self) -> "RunControl":
        if self.timeout is not None and self._deadline is None:
            self._deadline = self._clock() + self.timeout
        return self

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def stop_reason(self) -> RunStatus | None:
        """Why the run must stop scheduling work, or None to carry on."""
        if self._cancelled:
            return RunStatus.CANCELLED
        if self.timed_out:
            return RunStatus.TIMED_OUT
        return None


def notify(callback: Callable[[Any], Any] | None, event: Any) -> None:
    """Fire-and-continue delivery: a failing callback never stops the run."""
    if callback is None:
        return
    try:
        callback(event)
    except Exception as e:
        logger.opt(exception=e).warning("Progress callback failed", error=str(e))

