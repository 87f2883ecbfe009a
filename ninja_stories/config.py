import os
import logging

logger = logging.getLogger(__name__)

# Base directory of the application
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Database configuration
DATABASE_PATH = os.environ.get(
    'NINJA_DATABASE_PATH',
    os.path.join(BASE_DIR, 'data', 'ninja_stories.db'),
)

# Valid user roles
VALID_ROLES = ['student', 'teacher', 'admin']

# Gamification
ACHIEVEMENT_POLL_SECONDS = int(os.environ.get('ACHIEVEMENT_POLL_SECONDS', '8'))
QUIZ_COMPLETION_GOLD = int(os.environ.get('QUIZ_COMPLETION_GOLD', '10'))
# Points needed for level 2 on a fresh account
DEFAULT_NEXT_LEVEL_BONUS_POINTS = 50

# Flask secret key (MUST be set in production via environment variable)
SECRET_KEY = os.environ.get('FLASK_SECRET_KEY')
if not SECRET_KEY:
    # Development fallback - generates a random key per process
    import secrets
    SECRET_KEY = secrets.token_hex(32)
    logger.warning("Using auto-generated SECRET_KEY. Set FLASK_SECRET_KEY environment variable in production!")
