"""Tests for tier evaluation, check_and_advance and the persisted engine cycle."""
import sqlite3
import threading

import pytest

from ninja_stories.exceptions import ProgressionStoreError
from ninja_stories.models.progression import AdvanceResult, UserProgression
from ninja_stories.models.tier import BELTS, LEVELS, NO_TIER, Tier, TierTable
from ninja_stories.repositories.user_progress_repository import UserProgressRepository
from ninja_stories.services.achievement_engine import (
    AchievementEngine, ProgressionTrack, BELT_TRACK, LEVEL_TRACK,
    check_and_advance, evaluate_tier,
)

SHORT_BELTS = TierTable("belt", [
    Tier("White", 1), Tier("Yellow", 2), Tier("Orange", 4), Tier("Green", 5),
])


# =============================================================================
# evaluate_tier (pure)
# =============================================================================

class TestEvaluateTier:

    def test_below_lowest_threshold(self):
        assert evaluate_tier(0, BELTS) == (NO_TIER, None)

    def test_exact_threshold_reaches_tier(self):
        index, tier = evaluate_tier(4, BELTS)
        assert index == 3
        assert tier.name == "Orange Belt"

    def test_between_thresholds_picks_lower(self):
        index, tier = evaluate_tier(3, BELTS)
        assert (index, tier.name) == (2, "Yellow Belt")

    def test_beyond_top_tier(self):
        index, tier = evaluate_tier(500, BELTS)
        assert (index, tier.name) == (7, "Black Belt")

    def test_zero_threshold_level(self):
        index, tier = evaluate_tier(0, LEVELS)
        assert (index, tier.name) == (1, "Beginner")

    def test_pure_function(self):
        assert evaluate_tier(120, LEVELS) == evaluate_tier(120, LEVELS)


# =============================================================================
# check_and_advance (pure)
# =============================================================================

class TestCheckAndAdvance:

    def test_walkthrough(self):
        stored = NO_TIER
        result = check_and_advance(1, 0, stored, SHORT_BELTS)
        assert result.status == AdvanceResult.UNCHANGED
        assert result.persist_index is None

        result = check_and_advance(1, 1, stored, SHORT_BELTS)
        assert result.advanced
        assert (result.tier_index, result.tier.name) == (1, "White")
        stored = result.persist_index

        # 3 skips the exact check at 2 but still lands on Yellow, not Orange
        result = check_and_advance(1, 3, stored, SHORT_BELTS)
        assert result.advanced
        assert (result.tier_index, result.tier.name) == (2, "Yellow")
        stored = result.persist_index

        result = check_and_advance(1, 4, stored, SHORT_BELTS)
        assert (result.tier_index, result.tier.name) == (3, "Orange")
        stored = result.persist_index

        again = check_and_advance(1, 4, stored, SHORT_BELTS)
        assert again.status == AdvanceResult.UNCHANGED

    def test_stored_above_target_is_unchanged(self):
        result = check_and_advance(1, 1, 3, SHORT_BELTS)
        assert not result.advanced
        assert result.previous_index == 3

    def test_level_beginner_fires_once(self):
        first = check_and_advance(1, 0, NO_TIER, LEVELS)
        assert first.advanced
        assert first.tier.name == "Beginner"
        assert not check_and_advance(1, 0, first.persist_index, LEVELS).advanced


class TestProgressionTrack:

    def test_mismatched_table_rejected(self):
        with pytest.raises(ValueError):
            ProgressionTrack("belt", LEVELS, lambda p: 0, lambda p: 0)

    def test_tracks_read_their_own_counters(self):
        progression = UserProgression(user_id=1, stories_uploaded=2, ninja_gold=120)
        assert BELT_TRACK.check(progression).tier.name == "Yellow Belt"
        assert LEVEL_TRACK.check(progression).tier.name == "Adventurer"


# =============================================================================
# AchievementEngine with the SQLite store
# =============================================================================

def _set_counter(db_path, user_id, column, value):
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(f"UPDATE users SET {column} = ? WHERE id = ?", (value, user_id))
        conn.commit()
    finally:
        conn.close()


def _by_track(results):
    return {r.track: r for r in results}


class TestAchievementEngine:

    def test_unknown_user(self, repo):
        assert AchievementEngine(repo).evaluate(999) is None

    def test_first_evaluation_gives_beginner_only(self, repo, student_id):
        results = _by_track(AchievementEngine(repo).evaluate(student_id))
        assert results["belt"].status == AdvanceResult.UNCHANGED
        assert results["level"].advanced
        stored = repo.read_user_progression(student_id)
        assert stored.ninja_level == NO_TIER
        assert stored.ninja_character_level == 1

    def test_at_most_one_advance_per_tier(self, repo, student_id):
        engine = AchievementEngine(repo, tracks=[BELT_TRACK])
        assert not engine.evaluate(student_id)[0].advanced
        repo.increment_stories_uploaded(student_id)
        statuses = [engine.evaluate(student_id)[0].status for _ in range(4)]
        assert statuses == [AdvanceResult.ADVANCED] + [AdvanceResult.UNCHANGED] * 3
        assert repo.read_user_progression(student_id).ninja_level == 1

    def test_stored_index_is_monotonic(self, repo, db_path, student_id):
        engine = AchievementEngine(repo, tracks=[BELT_TRACK])
        seen = []
        for count in [0, 1, 1, 3, 4, 4, 9, 15, 20]:
            _set_counter(db_path, student_id, "stories_uploaded", count)
            engine.evaluate(student_id)
            seen.append(repo.read_user_progression(student_id).ninja_level)
        assert seen == sorted(seen)
        assert seen[-1] == len(BELTS)

    def test_no_demotion_when_counter_corrected_down(self, repo, db_path, student_id):
        engine = AchievementEngine(repo, tracks=[BELT_TRACK])
        _set_counter(db_path, student_id, "stories_uploaded", 5)
        engine.evaluate(student_id)
        _set_counter(db_path, student_id, "stories_uploaded", 1)
        result = engine.evaluate(student_id)[0]
        assert result.status == AdvanceResult.UNCHANGED
        assert repo.read_user_progression(student_id).ninja_level == 4

    def test_stale_snapshot_loses_to_first_writer(self, repo, student_id):
        repo.increment_stories_uploaded(student_id)
        engine = AchievementEngine(repo)
        snapshot = repo.read_user_progression(student_id)
        first = _by_track(engine.apply(snapshot))
        second = _by_track(engine.apply(snapshot))
        assert first["belt"].advanced and first["level"].advanced
        assert second["belt"].status == AdvanceResult.CONFLICT
        assert second["level"].status == AdvanceResult.CONFLICT

    def test_concurrent_evaluations_celebrate_once(self, db_path, student_id):
        barrier = threading.Barrier(2, timeout=5)

        class BarrierRepository(UserProgressRepository):
            # Both evaluations read before either writes
            def read_user_progression(self, user_id):
                progression = super().read_user_progression(user_id)
                barrier.wait()
                return progression

        racing_repo = BarrierRepository(db_path)
        racing_repo.increment_stories_uploaded(student_id)
        engine = AchievementEngine(racing_repo)
        results = []
        lock = threading.Lock()

        def run():
            out = engine.evaluate(student_id)
            with lock:
                results.extend(out)

        threads = [threading.Thread(target=run) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for track in ("belt", "level"):
            statuses = sorted(r.status for r in results if r.track == track)
            assert statuses == [AdvanceResult.ADVANCED, AdvanceResult.CONFLICT]
        stored = UserProgressRepository(db_path).read_user_progression(student_id)
        assert stored.ninja_level == 1
        assert stored.ninja_character_level == 1

    def test_write_failure_is_retried_next_cycle(self, db_path, student_id):
        class FlakyRepository(UserProgressRepository):
            failures = 1

            def write_tier_index(self, user_id, track, expected_old_index, new_index):
                if self.failures:
                    self.failures -= 1
                    raise ProgressionStoreError("store down", user_id=user_id)
                return super().write_tier_index(user_id, track, expected_old_index, new_index)

        flaky = FlakyRepository(db_path)
        flaky.increment_stories_uploaded(student_id)
        engine = AchievementEngine(flaky, tracks=[BELT_TRACK])

        failed = engine.evaluate(student_id)[0]
        assert failed.status == AdvanceResult.FAILED
        assert not failed.advanced
        assert flaky.read_user_progression(student_id).ninja_level == NO_TIER

        retried = engine.evaluate(student_id)[0]
        assert retried.advanced
        assert retried.tier.name == "White Belt"

    def test_write_failure_does_not_block_other_track(self, db_path, student_id):
        class BeltWritesFail(UserProgressRepository):
            def write_tier_index(self, user_id, track, expected_old_index, new_index):
                if track == "belt":
                    raise ProgressionStoreError("belt column locked", user_id=user_id)
                return super().write_tier_index(user_id, track, expected_old_index, new_index)

        repo = BeltWritesFail(db_path)
        repo.increment_stories_uploaded(student_id)
        results = _by_track(AchievementEngine(repo).evaluate(student_id))
        assert results["belt"].status == AdvanceResult.FAILED
        assert results["level"].advanced

    def test_read_failure_propagates(self, tmp_path):
        repo = UserProgressRepository(str(tmp_path / "missing" / "nowhere.db"))
        with pytest.raises(ProgressionStoreError):
            AchievementEngine(repo).evaluate(1)
