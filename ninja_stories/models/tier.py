"""
Tier and TierTable: the static progression tables.
Belt track: driven by stories uploaded. Level track: driven by ninja gold.
Tier positions are 1-based; NO_TIER (0) means no tier reached yet.
"""
from typing import Optional, Tuple, List, Dict, Any, NamedTuple

from ..exceptions import ConfigurationError

NO_TIER = 0

BELT_TRACK_NAME = "belt"
LEVEL_TRACK_NAME = "level"


class Tier(NamedTuple):
    """A named rank reached once a counter meets its threshold."""
    name: str
    threshold: int
    message: str = ""
    image: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "threshold": self.threshold,
            "message": self.message,
            "image": self.image,
        }


class TierTable:
    """
    Ordered, validated list of tiers for one track.
    Thresholds are non-negative and strictly increasing.
    """

    def __init__(self, track: str, tiers: List[Tier]):
        if not tiers:
            raise ConfigurationError(f"Tier table '{track}' is empty")
        previous = None
        for tier in tiers:
            if isinstance(tier.threshold, bool) or not isinstance(tier.threshold, int):
                raise ConfigurationError(f"Tier '{tier.name}' in '{track}' has a non-integer threshold")
            if tier.threshold < 0:
                raise ConfigurationError(f"Tier '{tier.name}' in '{track}' has a negative threshold")
            if previous is not None and tier.threshold <= previous.threshold:
                raise ConfigurationError(
                    f"Tier '{tier.name}' in '{track}' must have a threshold above '{previous.name}'"
                )
            previous = tier
        self.track = track
        self.tiers: Tuple[Tier, ...] = tuple(tiers)

    def __len__(self) -> int:
        return len(self.tiers)

    def __iter__(self):
        return iter(self.tiers)

    def position(self, index: int) -> Optional[Tier]:
        """Tier at a 1-based position, or None for NO_TIER / out of range."""
        if index < 1 or index > len(self.tiers):
            return None
        return self.tiers[index - 1]

    def next_tier(self, counter: int) -> Optional[Tier]:
        """First tier not reached yet, or None at the top of the table."""
        for tier in self.tiers:
            if tier.threshold > counter:
                return tier
        return None

    def remaining(self, counter: int) -> int:
        """Counter units still needed for the next tier (0 when maxed out)."""
        nxt = self.next_tier(counter)
        if nxt is None:
            return 0
        return max(nxt.threshold - counter, 0)

    def __repr__(self) -> str:
        return f"TierTable(track='{self.track}', tiers={len(self.tiers)})"


BELTS = TierTable(BELT_TRACK_NAME, [
    Tier("White Belt", 1, "You've started your writing path!", "/belts/White.png"),
    Tier("Yellow Belt", 2, "Your ideas are growing brighter.", "/belts/Yellow.png"),
    Tier("Orange Belt", 4, "Your writing is becoming stronger and more colorful.", "/belts/Orange.png"),
    Tier("Green Belt", 5, "Your writing is blooming like a garden.", "/belts/Green.png"),
    Tier("Blue Belt", 7, "Your stories reach new heights.", "/belts/Blue.png"),
    Tier("Brown Belt", 10, "Your writing shows wisdom and strength.", "/belts/Brown.png"),
    Tier("Black Belt", 15, "You are a true Writing Ninja Master!", "/belts/Black.png"),
])

_LEVEL_NAMES = [
    "Beginner", "Explorer", "Adventurer", "Dreamer", "Emerging",
    "Enthusiast", "Trailblazer", "Pioneer", "Innovator", "Navigator",
    "Champion", "Hero", "Legend", "Imagineer", "Maestro",
    "Ambassador", "Visionary", "Advocate", "Luminary", "Mastermind",
]

# Levels 1-20, one every 50 ninja gold
LEVELS = TierTable(LEVEL_TRACK_NAME, [
    Tier(name, i * 50, image=f"/readingAvatars/{i + 1}.png")
    for i, name in enumerate(_LEVEL_NAMES)
])
