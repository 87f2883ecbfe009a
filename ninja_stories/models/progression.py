"""
UserProgression and AdvanceResult entity classes.
UserProgression: the progression fields of a user row (counters and stored tier indices).
AdvanceResult: outcome of one tier check on one track.
"""
from typing import Optional, Dict, Any

from .tier import Tier, NO_TIER


class UserProgression:
    """
    Snapshot of a user's progression as read from the store.
    """

    def __init__(
        self,
        user_id: int,
        stories_uploaded: int = 0,
        ninja_gold: int = 0,
        ninja_level: int = NO_TIER,
        ninja_character_level: int = NO_TIER,
        next_level_bonus_points: int = 0,
        role: str = "student",
    ):
        self.user_id = user_id
        self.stories_uploaded = stories_uploaded
        self.ninja_gold = ninja_gold
        # Stored belt tier index
        self.ninja_level = ninja_level
        # Stored character level tier index
        self.ninja_character_level = ninja_character_level
        self.next_level_bonus_points = next_level_bonus_points
        self.role = role

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "stories_uploaded": self.stories_uploaded,
            "ninja_gold": self.ninja_gold,
            "ninja_level": self.ninja_level,
            "ninja_character_level": self.ninja_character_level,
            "next_level_bonus_points": self.next_level_bonus_points,
            "role": self.role,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserProgression":
        return cls(
            user_id=data["id"] if "id" in data else data["user_id"],
            stories_uploaded=data.get("stories_uploaded") or 0,
            ninja_gold=data.get("ninja_gold") or 0,
            ninja_level=data.get("ninja_level") or NO_TIER,
            ninja_character_level=data.get("ninja_character_level") or NO_TIER,
            next_level_bonus_points=data.get("next_level_bonus_points") or 0,
            role=data.get("role") or "student",
        )

    def __repr__(self) -> str:
        return (
            f"UserProgression(user_id={self.user_id}, stories_uploaded={self.stories_uploaded}, "
            f"ninja_gold={self.ninja_gold}, ninja_level={self.ninja_level}, "
            f"ninja_character_level={self.ninja_character_level})"
        )


class AdvanceResult:
    """
    Result of checking one track for one user.

    status is one of:
      advanced  - a higher tier was reached and persisted; celebrate once
      unchanged - nothing new
      conflict  - another evaluation already persisted this advancement
      failed    - the write-back failed; retried on the next check
    Only "advanced" may be shown to the user.
    """

    ADVANCED = "advanced"
    UNCHANGED = "unchanged"
    CONFLICT = "conflict"
    FAILED = "failed"

    def __init__(
        self,
        user_id: int,
        track: str,
        status: str,
        previous_index: int,
        tier_index: int = NO_TIER,
        tier: Optional[Tier] = None,
    ):
        self.user_id = user_id
        self.track = track
        self.status = status
        self.previous_index = previous_index
        self.tier_index = tier_index
        self.tier = tier

    @property
    def advanced(self) -> bool:
        return self.status == self.ADVANCED

    @property
    def persist_index(self) -> Optional[int]:
        """Index to write back for this user/track, or None when nothing should be written."""
        if self.status == self.ADVANCED:
            return self.tier_index
        return None

    def with_status(self, status: str) -> "AdvanceResult":
        return AdvanceResult(
            user_id=self.user_id,
            track=self.track,
            status=status,
            previous_index=self.previous_index,
            tier_index=self.tier_index,
            tier=self.tier,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "track": self.track,
            "status": self.status,
            "previous_index": self.previous_index,
            "tier_index": self.tier_index,
            "tier": self.tier.to_dict() if self.tier else None,
        }

    def __repr__(self) -> str:
        return (
            f"AdvanceResult(user_id={self.user_id}, track='{self.track}', status='{self.status}', "
            f"{self.previous_index} -> {self.tier_index})"
        )
