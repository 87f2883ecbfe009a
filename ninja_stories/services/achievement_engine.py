"""
Achievement engine: belt and character level progression.

A user's tier on a track is a pure function of one counter and a static tier table.
Advancing is only reported after the new tier index has been written with a
compare-and-swap, so each tier is celebrated at most once per user even when
several polls evaluate the same user at the same time.
"""
import logging
from typing import Callable, List, Optional, Tuple

from ..exceptions import ProgressionStoreError
from ..models.progression import AdvanceResult, UserProgression
from ..models.tier import (
    BELTS, LEVELS, NO_TIER, BELT_TRACK_NAME, LEVEL_TRACK_NAME, Tier, TierTable,
)
from ..repositories.user_progress_repository import UserProgressRepository

logger = logging.getLogger(__name__)


def evaluate_tier(counter: int, table: TierTable) -> Tuple[int, Optional[Tier]]:
    """
    Highest tier whose threshold the counter has reached (counter >= threshold).
    Returns (1-based position, tier), or (NO_TIER, None) below the lowest threshold.
    """
    index = NO_TIER
    for position, tier in enumerate(table, start=1):
        if counter >= tier.threshold:
            index = position
    return index, table.position(index)


def check_and_advance(user_id: int, counter: int, stored_index: int, table: TierTable) -> AdvanceResult:
    """
    Compare the evaluated tier with the stored one.
    "advanced" carries the directive to persist stored_index := tier_index; the
    caller must persist it before showing anything.
    """
    target_index, target_tier = evaluate_tier(counter, table)
    if target_tier is None or target_index <= stored_index:
        return AdvanceResult(
            user_id=user_id,
            track=table.track,
            status=AdvanceResult.UNCHANGED,
            previous_index=stored_index,
            tier_index=target_index,
            tier=target_tier,
        )
    return AdvanceResult(
        user_id=user_id,
        track=table.track,
        status=AdvanceResult.ADVANCED,
        previous_index=stored_index,
        tier_index=target_index,
        tier=target_tier,
    )


class ProgressionTrack:
    """One progression axis: which counter drives it and where its tier is stored."""

    def __init__(
        self,
        name: str,
        table: TierTable,
        counter_selector: Callable[[UserProgression], int],
        stored_index_selector: Callable[[UserProgression], int],
    ):
        if table.track != name:
            raise ValueError(f"Track '{name}' cannot use the '{table.track}' tier table")
        self.name = name
        self.table = table
        self.counter_selector = counter_selector
        self.stored_index_selector = stored_index_selector

    def check(self, progression: UserProgression) -> AdvanceResult:
        return check_and_advance(
            progression.user_id,
            self.counter_selector(progression),
            self.stored_index_selector(progression),
            self.table,
        )

    def __repr__(self) -> str:
        return f"ProgressionTrack(name='{self.name}')"


BELT_TRACK = ProgressionTrack(
    BELT_TRACK_NAME,
    BELTS,
    counter_selector=lambda p: p.stories_uploaded,
    stored_index_selector=lambda p: p.ninja_level,
)

LEVEL_TRACK = ProgressionTrack(
    LEVEL_TRACK_NAME,
    LEVELS,
    counter_selector=lambda p: p.ninja_gold,
    stored_index_selector=lambda p: p.ninja_character_level,
)


class AchievementEngine:
    """
    Reads a user's progression, checks every track and writes back advancements.
    """

    def __init__(
        self,
        user_progress_repo: Optional[UserProgressRepository] = None,
        tracks: Optional[List[ProgressionTrack]] = None,
    ):
        self.user_progress_repo = user_progress_repo or UserProgressRepository()
        self.tracks = tracks if tracks is not None else [BELT_TRACK, LEVEL_TRACK]

    def evaluate(self, user_id: int) -> Optional[List[AdvanceResult]]:
        """
        Run one check cycle for the user. Returns None if the user does not exist.
        A failed read raises ProgressionStoreError before anything is computed.
        """
        progression = self.user_progress_repo.read_user_progression(user_id)
        if progression is None:
            return None
        return self.apply(progression)

    def apply(self, progression: UserProgression) -> List[AdvanceResult]:
        """Check each track against an already-read snapshot and persist advancements."""
        return [self._advance(track, progression) for track in self.tracks]

    def _advance(self, track: ProgressionTrack, progression: UserProgression) -> AdvanceResult:
        result = track.check(progression)
        if not result.advanced:
            return result
        try:
            written = self.user_progress_repo.write_tier_index(
                progression.user_id, track.name, result.previous_index, result.persist_index
            )
        except ProgressionStoreError:
            logger.warning(
                "Could not persist %s tier %d for user %s; will retry on next check",
                track.name, result.tier_index, progression.user_id, exc_info=True,
            )
            return result.with_status(AdvanceResult.FAILED)
        if not written:
            # Another evaluation persisted first and owns the celebration
            logger.debug(
                "Lost %s tier race for user %s (%d -> %d)",
                track.name, progression.user_id, result.previous_index, result.tier_index,
            )
            return result.with_status(AdvanceResult.CONFLICT)
        logger.info(
            "User %s advanced on %s track: %d -> %d (%s)",
            progression.user_id, track.name, result.previous_index, result.tier_index, result.tier.name,
        )
        return result
