"""
UserProgressRepository: progression counters and stored tier indices on the users table,
plus first-time quiz completions.
Tier index writes are compare-and-swap: they only land if the stored index still
equals the value the caller read.
"""
import sqlite3
from datetime import datetime
from typing import Optional, Dict

from ..config import DATABASE_PATH, DEFAULT_NEXT_LEVEL_BONUS_POINTS
from ..exceptions import ProgressionStoreError
from ..models.progression import UserProgression
from ..models.tier import NO_TIER, BELT_TRACK_NAME, LEVEL_TRACK_NAME

# Track name -> users column holding the stored tier index
TIER_COLUMNS: Dict[str, str] = {
    BELT_TRACK_NAME: "ninja_level",
    LEVEL_TRACK_NAME: "ninja_character_level",
}


class UserProgressRepository:
    def __init__(self, db_path: str = DATABASE_PATH):
        self.db_path = db_path

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def create_user(self, username: str, email: str, role: str = "student") -> int:
        """Insert a user with zeroed counters and no tiers. Returns the new id."""
        now = datetime.now().isoformat()
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """INSERT INTO users (username, email, role, stories_uploaded, ninja_gold,
                                          ninja_level, ninja_character_level, next_level_bonus_points,
                                          created_at, updated_at)
                       VALUES (?, ?, ?, 0, 0, ?, ?, ?, ?, ?)""",
                    (username, email, role, NO_TIER, NO_TIER, DEFAULT_NEXT_LEVEL_BONUS_POINTS, now, now),
                )
                conn.commit()
                return cursor.lastrowid
            finally:
                conn.close()
        except sqlite3.IntegrityError:
            # Duplicate email or invalid role: a caller error, not a store outage
            raise
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not create user '{username}': {e}") from e

    def read_user_progression(self, user_id: int) -> Optional[UserProgression]:
        """Fetch counters and stored tier indices. None if the user does not exist."""
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """SELECT id, role, stories_uploaded, ninja_gold, ninja_level,
                              ninja_character_level, next_level_bonus_points
                       FROM users WHERE id = ?""",
                    (user_id,),
                )
                row = cursor.fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not read progression: {e}", user_id=user_id) from e
        if not row:
            return None
        return UserProgression.from_dict(dict(row))

    def write_tier_index(self, user_id: int, track: str, expected_old_index: int, new_index: int) -> bool:
        """
        Conditionally store a new tier index for one track.
        Returns True if written, False on conflict (stored index no longer equals
        expected_old_index) or if new_index would not advance the track.
        """
        column = TIER_COLUMNS.get(track)
        if column is None:
            raise ValueError(f"Unknown progression track: {track}")
        if new_index <= expected_old_index:
            return False
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    f"UPDATE users SET {column} = ?, updated_at = ? WHERE id = ? AND {column} = ?",
                    (new_index, datetime.now().isoformat(), user_id, expected_old_index),
                )
                conn.commit()
                return cursor.rowcount == 1
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not write {track} tier: {e}", user_id=user_id) from e

    def increment_stories_uploaded(self, user_id: int) -> bool:
        """Add one uploaded story to the user's counter. Returns False if the user does not exist."""
        return self._increment(user_id, "stories_uploaded", 1)

    def add_reward_points(self, user_id: int, amount: int) -> bool:
        """Add ninja gold. Counters never decrease, so negative amounts are rejected."""
        if amount < 0:
            raise ValueError("Reward points cannot be negative")
        if amount == 0:
            return True
        return self._increment(user_id, "ninja_gold", amount)

    def _increment(self, user_id: int, column: str, amount: int) -> bool:
        # column is always one of our own counter names
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    f"UPDATE users SET {column} = {column} + ?, updated_at = ? WHERE id = ?",
                    (amount, datetime.now().isoformat(), user_id),
                )
                conn.commit()
                return cursor.rowcount > 0
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not update {column}: {e}", user_id=user_id) from e

    def create_quiz(self, title: str, story_id: Optional[int] = None, published: bool = True) -> int:
        now = datetime.now().isoformat()
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO quizzes (story_id, title, published, created_at) VALUES (?, ?, ?, ?)",
                    (story_id, title, 1 if published else 0, now),
                )
                conn.commit()
                return cursor.lastrowid
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not create quiz '{title}': {e}") from e

    def quiz_is_published(self, quiz_id: int) -> bool:
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute("SELECT 1 FROM quizzes WHERE id = ? AND published = 1", (quiz_id,))
                return cursor.fetchone() is not None
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not read quiz {quiz_id}: {e}") from e

    def award_quiz_completion(self, user_id: int, quiz_id: int, gold: int) -> bool:
        """
        Record a first completion of a published quiz and pay its gold in one transaction.
        Returns True if recorded and paid, False if already completed, the quiz is not
        published or the user does not exist. On a store error nothing is recorded.
        """
        if gold < 0:
            raise ValueError("Reward points cannot be negative")
        now = datetime.now().isoformat()
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    """INSERT OR IGNORE INTO quiz_completions (user_id, quiz_id, gold_awarded, completed_at)
                       SELECT ?, ?, ?, ? WHERE EXISTS (SELECT 1 FROM quizzes WHERE id = ? AND published = 1)""",
                    (user_id, quiz_id, gold, now, quiz_id),
                )
                if cursor.rowcount == 0:
                    conn.rollback()
                    return False
                cursor.execute(
                    "UPDATE users SET ninja_gold = ninja_gold + ?, updated_at = ? WHERE id = ?",
                    (gold, now, user_id),
                )
                if cursor.rowcount == 0:
                    conn.rollback()
                    return False
                conn.commit()
                return True
            except sqlite3.Error:
                conn.rollback()
                raise
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not record quiz completion: {e}", user_id=user_id) from e

    def update_next_level_bonus_points(self, user_id: int, points: int) -> None:
        try:
            conn = self._get_connection()
            try:
                cursor = conn.cursor()
                cursor.execute(
                    "UPDATE users SET next_level_bonus_points = ?, updated_at = ? WHERE id = ?",
                    (points, datetime.now().isoformat(), user_id),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise ProgressionStoreError(f"Could not update next level points: {e}", user_id=user_id) from e
