"""Repositories package for Ninja Stories."""
from .user_progress_repository import UserProgressRepository
