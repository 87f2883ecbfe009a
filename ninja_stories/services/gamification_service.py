"""
GamificationService: runs achievement checks and builds celebration payloads.
Called by the polling endpoint, after a story upload and after a quiz is completed.
"""
import logging
from typing import Optional, List, Dict, Any

from ..config import QUIZ_COMPLETION_GOLD
from ..exceptions import ProgressionStoreError
from ..models.progression import AdvanceResult, UserProgression
from ..models.tier import BELTS, LEVELS, BELT_TRACK_NAME, LEVEL_TRACK_NAME, TierTable
from ..repositories.user_progress_repository import UserProgressRepository
from .achievement_engine import AchievementEngine, evaluate_tier

logger = logging.getLogger(__name__)


class GamificationService:
    """
    Entry point for the progression features.
    Returns celebrations only for advancements that were durably persisted.
    """

    def __init__(
        self,
        user_progress_repo: Optional[UserProgressRepository] = None,
        engine: Optional[AchievementEngine] = None,
        quiz_completion_gold: int = QUIZ_COMPLETION_GOLD,
    ):
        self.user_progress_repo = user_progress_repo or UserProgressRepository()
        self.engine = engine or AchievementEngine(self.user_progress_repo)
        self.quiz_completion_gold = quiz_completion_gold

    def poll(self, user_id: int) -> Optional[Dict[str, Any]]:
        """
        One polling cycle: evaluate both tracks.
        Returns {"celebrations", "retry"}; retry is True when an advancement could
        not be persisted and will be offered again on the next poll.
        Returns None if the user does not exist. Read failures propagate as
        ProgressionStoreError.
        """
        progression = self.user_progress_repo.read_user_progression(user_id)
        if progression is None:
            return None
        results = self.engine.apply(progression)
        self._sync_next_level_points(progression)
        return {
            "celebrations": [self._celebration(r, progression) for r in results if r.advanced],
            "retry": any(r.status == AdvanceResult.FAILED for r in results),
        }

    def check_achievements(self, user_id: int) -> Optional[List[Dict[str, Any]]]:
        """Celebration dicts from one polling cycle, or None if the user does not exist."""
        outcome = self.poll(user_id)
        if outcome is None:
            return None
        return outcome["celebrations"]

    def record_story_upload(self, user_id: int) -> Optional[List[Dict[str, Any]]]:
        """Count a newly created story, then check for a new belt."""
        if not self.user_progress_repo.increment_stories_uploaded(user_id):
            return None
        return self.check_achievements(user_id)

    def record_quiz_completion(self, user_id: int, quiz_id: int) -> Optional[Dict[str, Any]]:
        """
        Award ninja gold the first time a user completes a published quiz.
        Returns {"quiz_id", "first_completion", "gold_awarded", "celebrations", "retry"},
        or None for unknown users and quizzes that are missing or unpublished.
        """
        if self.user_progress_repo.read_user_progression(user_id) is None:
            return None
        if not self.user_progress_repo.quiz_is_published(quiz_id):
            return None
        first = self.user_progress_repo.award_quiz_completion(user_id, quiz_id, self.quiz_completion_gold)
        outcome = self.poll(user_id) or {"celebrations": [], "retry": False}
        return {
            "quiz_id": quiz_id,
            "first_completion": first,
            "gold_awarded": self.quiz_completion_gold if first else 0,
            "celebrations": outcome["celebrations"],
            "retry": outcome["retry"],
        }

    def belt_progress(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Belt catalog for the user: unlocked/current flags and what is left to the next belt."""
        progression = self.user_progress_repo.read_user_progression(user_id)
        if progression is None:
            return None
        progress = self._track_progress(BELTS, progression.stories_uploaded)
        nxt = progress["next"]
        remaining = progress["remaining"]
        noun = "story" if remaining == 1 else "stories"
        progress["summary"] = (
            f"{remaining} {noun} to reach {nxt['name']}." if nxt else "Maximum belt achieved."
        )
        return progress

    def level_progress(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Character level catalog for the user, driven by ninja gold."""
        progression = self.user_progress_repo.read_user_progression(user_id)
        if progression is None:
            return None
        progress = self._track_progress(LEVELS, progression.ninja_gold)
        nxt = progress["next"]
        progress["summary"] = (
            f"{progress['remaining']} Ninja Gold to reach {nxt['name']}." if nxt else "Maximum level achieved."
        )
        return progress

    def get_progression(self, user_id: int) -> Optional[UserProgression]:
        return self.user_progress_repo.read_user_progression(user_id)

    def _track_progress(self, table: TierTable, counter: int) -> Dict[str, Any]:
        current_index, current = evaluate_tier(counter, table)
        nxt = table.next_tier(counter)
        tiers = []
        for position, tier in enumerate(table, start=1):
            entry = tier.to_dict()
            entry["position"] = position
            entry["unlocked"] = counter >= tier.threshold
            entry["current"] = position == current_index
            tiers.append(entry)
        return {
            "track": table.track,
            "counter": counter,
            "current_index": current_index,
            "current": current.to_dict() if current else None,
            "next": nxt.to_dict() if nxt else None,
            "remaining": table.remaining(counter),
            "tiers": tiers,
        }

    def _sync_next_level_points(self, progression: UserProgression) -> None:
        """Keep next_level_bonus_points equal to the gold still needed for the next level."""
        needed = LEVELS.remaining(progression.ninja_gold)
        if progression.next_level_bonus_points == needed:
            return
        try:
            self.user_progress_repo.update_next_level_bonus_points(progression.user_id, needed)
        except ProgressionStoreError:
            logger.warning("Could not sync next level points for user %s", progression.user_id, exc_info=True)

    def _celebration(self, result: AdvanceResult, progression: UserProgression) -> Dict[str, Any]:
        tier = result.tier
        if result.track == BELT_TRACK_NAME:
            return {
                "track": BELT_TRACK_NAME,
                "tier_index": result.tier_index,
                "name": tier.name,
                "title": f"Congratulations Your Writing belt is upgraded! {tier.name}",
                "message": tier.message,
                "image": tier.image,
            }
        if result.track == LEVEL_TRACK_NAME:
            needed = LEVELS.remaining(progression.ninja_gold)
            if needed > 0:
                message = f"Earn {needed} more points to reach the next level."
            else:
                message = "You've reached the highest level. Keep shining!"
            return {
                "track": LEVEL_TRACK_NAME,
                "tier_index": result.tier_index,
                "name": tier.name,
                "title": f"Level Up! You're now Level {result.tier_index} – {tier.name}",
                "message": message,
                "image": tier.image,
            }
        return {
            "track": result.track,
            "tier_index": result.tier_index,
            "name": tier.name,
            "title": tier.name,
            "message": tier.message,
            "image": tier.image,
        }
