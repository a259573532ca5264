"""Configuration module for CypherDB."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
