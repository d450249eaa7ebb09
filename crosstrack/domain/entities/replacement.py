"""Entities for the automatic replacement loop."""

from enum import StrEnum

from attrs import define, field, validators

from .results import ResolvedTrack, RunStatus
from .track import TrackQuery


class ReplacementStage(StrEnum):
    """States of one replacement round.

    ``REQUESTING -> VERIFYING -> (DELETING | RETRYING) -> {COMPLETE | FAILED}``;
    ``STOPPED`` ends a round that was cancelled or ran past its deadline.
    """

    REQUESTING = "requesting"
    VERIFYING = "verifying"
    DELETING = "deleting"
    RETRYING = "retrying"
    COMPLETE = "complete"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (ReplacementStage.COMPLETE, ReplacementStage.FAILED, ReplacementStage.STOPPED)


@define(frozen=True, slots=True)
class ReplacementRequest:
    """One round of failed tracks to replace."""

    round: int
    failed_tracks: tuple[TrackQuery, ...] = field(converter=tuple)
    context: str = ""
    max_retries: int = field(default=3, validator=validators.ge(1))


@define(frozen=True, slots=True)
class DeletionPlan:
    """Originals superseded by verified replacements; never empty.

    ``positions`` index the superseded originals within the still-failed list.
    """

    positions: tuple[int, ...] = field(converter=tuple, validator=validators.min_len(1))
    superseded: tuple[TrackQuery, ...] = field(converter=tuple)
    accepted: tuple[ResolvedTrack, ...] = field(converter=tuple)

    def __attrs_post_init__(self) -> None:
        if not len(self.positions) == len(self.superseded) == len(self.accepted):
            raise ValueError("each superseded track needs exactly one accepted replacement")
        if len(set(self.positions)) != len(self.positions):
            raise ValueError("a position can only be superseded once")


@define(slots=True)
class ReplacementAttemptState:
    """Mutable bookkeeping for a single round, owned by one run."""

    round: int
    max_retries: int
    still_failed: list[TrackQuery]
    original_count: int
    attempt: int = 0
    stage: ReplacementStage = ReplacementStage.REQUESTING
    accepted: list[ResolvedTrack] = field(factory=list)
    last_error: str | None = None

    @property
    def replaced_count(self) -> int:
        return self.original_count - len(self.still_failed)

    @property
    def attempts_left(self) -> bool:
        return self.attempt < self.max_retries

    def apply(self, plan: DeletionPlan) -> None:
        """Drop the paired originals by position; equal tracks stay distinct."""
        dropped = set(plan.positions)
        self.still_failed = [
            track for index, track in enumerate(self.still_failed) if index not in dropped
        ]
        self.accepted.extend(plan.accepted)


@define(frozen=True, slots=True)
class ReplacementResult:
    """Outcome of one replacement round.

    ``replaced_count == original count - len(still_failed_songs)``.
    """

    success: bool
    round: int
    attempts: int
    replaced_count: int
    still_failed_songs: tuple[TrackQuery, ...] = ()
    replacements: tuple[ResolvedTrack, ...] = ()
    user_action_needed: bool = False
    status: RunStatus = RunStatus.COMPLETED
    error: str | None = None


@define(frozen=True, slots=True)
class ReplacementProgress:
    """Stage change within a round; the terminal record carries the result."""

    stage: ReplacementStage
    round: int
    attempt: int
    max_retries: int
    message: str
    result: ReplacementResult | None = None
