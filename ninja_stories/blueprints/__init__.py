"""Blueprints package for Ninja Stories."""
