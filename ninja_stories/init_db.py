import sqlite3
import os
import logging
from typing import Optional

from .config import DATABASE_PATH, DEFAULT_NEXT_LEVEL_BONUS_POINTS

logger = logging.getLogger(__name__)


def _column_exists(cursor, table, column):
    """Return True if column exists in table."""
    # Validate table name against whitelist to prevent SQL injection
    valid_tables = {'users', 'quizzes', 'quiz_completions'}
    if table not in valid_tables:
        raise ValueError(f"Invalid table name: {table}")
    cursor.execute(f"PRAGMA table_info({table})")
    return any(row[1] == column for row in cursor.fetchall())


# Progression columns added to pre-existing users tables
_PROGRESSION_COLUMNS = [
    ('stories_uploaded', 'INTEGER NOT NULL DEFAULT 0'),
    ('ninja_gold', 'INTEGER NOT NULL DEFAULT 0'),
    ('ninja_level', 'INTEGER NOT NULL DEFAULT 0'),
    ('ninja_character_level', 'INTEGER NOT NULL DEFAULT 0'),
    ('next_level_bonus_points', f'INTEGER NOT NULL DEFAULT {DEFAULT_NEXT_LEVEL_BONUS_POINTS}'),
]


def init_db(db_path: Optional[str] = None):
    # Initialize the database with users, quizzes and quiz completion tables.
    db_path = db_path or DATABASE_PATH
    data_dir = os.path.dirname(db_path)
    if data_dir and not os.path.exists(data_dir):
        os.makedirs(data_dir)

    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()

        # Users with their progression counters and stored tier indices
        cursor.execute(f'''
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                role TEXT NOT NULL DEFAULT 'student' CHECK(role IN ('student', 'teacher', 'admin')),
                stories_uploaded INTEGER NOT NULL DEFAULT 0,
                ninja_gold INTEGER NOT NULL DEFAULT 0,
                ninja_level INTEGER NOT NULL DEFAULT 0,
                ninja_character_level INTEGER NOT NULL DEFAULT 0,
                next_level_bonus_points INTEGER NOT NULL DEFAULT {DEFAULT_NEXT_LEVEL_BONUS_POINTS},
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        for column, ddl in _PROGRESSION_COLUMNS:
            if not _column_exists(cursor, 'users', column):
                try:
                    cursor.execute(f'ALTER TABLE users ADD COLUMN {column} {ddl}')
                except sqlite3.OperationalError:
                    pass
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_users_role ON users(role)')
        conn.commit()

        # Quizzes attached to stories; only published ones pay out gold
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS quizzes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                story_id INTEGER,
                title TEXT NOT NULL,
                published INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL
            )
        ''')
        conn.commit()

        # First-time quiz completions (unique per user per quiz)
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS quiz_completions (
                user_id INTEGER NOT NULL,
                quiz_id INTEGER NOT NULL,
                gold_awarded INTEGER NOT NULL DEFAULT 0,
                completed_at TEXT NOT NULL,
                PRIMARY KEY (user_id, quiz_id),
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        ''')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_quiz_completions_user_id ON quiz_completions(user_id)')
        conn.commit()
    finally:
        conn.close()

    logger.info("Database initialized at: %s", db_path)


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    init_db()
