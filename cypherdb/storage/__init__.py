"""Storage module for CypherDB."""

from .store import KVStore

__all__ = ["KVStore"]
