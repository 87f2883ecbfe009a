"""Services package for Ninja Stories."""
