"""Exporter configuration."""

from .settings_model import Settings

__all__ = ["Settings"]
