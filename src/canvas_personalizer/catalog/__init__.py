"""Immutable recipe and template catalogs."""

__all__ = ["recipes", "templates"]
