"""Models package for Ninja Stories."""
from .tier import Tier, TierTable, BELTS, LEVELS, NO_TIER, BELT_TRACK_NAME, LEVEL_TRACK_NAME
from .progression import UserProgression, AdvanceResult
