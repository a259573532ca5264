"""
Key-Value Store Module

This module implements the in-memory storage shared by every client
connection, plus its JSON snapshot persistence.

The store is loaded once when it is constructed and written back once,
when the server shuts down. Neither direction is fatal: an unreadable
snapshot yields an empty store, and a failed save is logged and reported
through the return value.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


class KVStore:
    """
    Thread-safe in-memory key-value store with snapshot persistence.

    This class provides O(1) average-case time complexity for:
    - set: Insert or update a key-value pair
    - get: Retrieve a value by key
    - delete: Remove a key-value pair

    Concurrency:
        A single lock guards the whole mapping. Every operation holds it
        for exactly one dict access, so readers never wait on a writer for
        longer than one critical section and never see a half-written value.
        This is a plain mutex rather than a reader/writer lock: the standard
        library has none, and with O(1) critical sections readers gain
        nothing from sharing.

    Persistence:
        The full mapping is stored as one JSON object ``{key: value}`` at
        ``data_file``. When ``data_file`` is None the store lives purely in
        memory and ``load``/``save`` do nothing.

    Attributes:
        data_file: Path of the JSON snapshot, or None
    """

    def __init__(self, data_file: Optional[Union[str, Path]] = None):
        """
        Initialize the store and load the existing snapshot, if any.

        Args:
            data_file: Snapshot location (None disables persistence)
        """
        self.data_file = Path(data_file) if data_file is not None else None
        self._data: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.load()

    def set(self, key: str, value: str) -> None:
        """
        Insert or update a key-value pair.

        Args:
            key: The key to store
            value: The value to associate with the key
        """
        with self._lock:
            self._data[key] = value

    def get(self, key: str) -> Optional[str]:
        """
        Retrieve the value for a given key.

        Args:
            key: The key to look up

        Returns:
            The value if found, None otherwise
        """
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> bool:
        """
        Delete a key-value pair. Deleting a missing key is a no-op.

        Args:
            key: The key to delete

        Returns:
            True if key was deleted, False if key didn't exist
        """
        with self._lock:
            return self._data.pop(key, None) is not None

    def size(self) -> int:
        """Get the current number of keys in the store."""
        with self._lock:
            return len(self._data)

    def snapshot(self) -> Dict[str, str]:
        """Return a point-in-time copy of the whole mapping."""
        with self._lock:
            return dict(self._data)

    def clear(self) -> None:
        """Remove all keys from the store."""
        with self._lock:
            self._data.clear()

    def load(self) -> None:
        """
        Replace the contents of the store with the persisted snapshot.

        A missing file, an I/O error, malformed JSON, or a document that is
        not an object of string values all leave the store empty. Failures
        are logged, never raised.
        """
        data: Dict[str, str] = {}

        if self.data_file is None:
            pass
        elif not self.data_file.exists():
            logger.info(f"No snapshot at {self.data_file}, starting empty")
        else:
            try:
                with open(self.data_file, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                logger.warning(f"Could not read snapshot {self.data_file}: {exc}")
            else:
                if self._is_valid_snapshot(loaded):
                    data = loaded
                    logger.info(f"Loaded {len(data)} keys from {self.data_file}")
                else:
                    logger.warning(
                        f"Snapshot {self.data_file} is not a string mapping, starting empty"
                    )

        with self._lock:
            self._data = data

    @staticmethod
    def _is_valid_snapshot(loaded: Any) -> bool:
        """Check that a decoded snapshot maps strings to strings."""
        if not isinstance(loaded, dict):
            return False
        return all(isinstance(v, str) for v in loaded.values())

    def save(self) -> bool:
        """
        Write the full mapping to the snapshot file, overwriting it.

        Returns:
            True if the snapshot was written (or persistence is disabled),
            False if writing failed. Failures are logged, never raised.
        """
        if self.data_file is None:
            return True

        data = self.snapshot()
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.data_file, "w", encoding="utf-8") as f:
                json.dump(data, f)
                f.flush()
                os.fsync(f.fileno())
        except (OSError, TypeError, ValueError) as exc:
            logger.error(f"Failed to save snapshot to {self.data_file}: {exc}")
            return False

        logger.info(f"Saved {len(data)} keys to {self.data_file}")
        return True

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing:
            - total_keys: Total keys in store
            - data_file: Snapshot location (None when not persisted)
        """
        return {
            "total_keys": self.size(),
            "data_file": str(self.data_file) if self.data_file is not None else None,
        }
