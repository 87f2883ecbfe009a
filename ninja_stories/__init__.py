"""
Ninja Stories - achievement and progression backend.
Belts are earned by uploading stories, character levels by collecting ninja gold.
"""
from .app import create_app

__all__ = ["create_app"]
