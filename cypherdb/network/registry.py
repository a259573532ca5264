"""
Connection Registry Module

Directory of the connections that are currently open, keyed by an integer
id handed out in increasing order and never reused. The server uses it to
broadcast the shutdown warning and to force-close whatever is left once the
grace period is over.
"""

import itertools
import threading
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .connection import Connection


class ConnectionRegistry:
    """
    Thread-safe map of connection id -> Connection.

    Iteration always works on a copy taken under the lock, so callbacks run
    without holding it: a slow client cannot stall register/unregister, and a
    connection that goes away mid-iteration causes no error.
    """

    def __init__(self):
        self._connections: Dict[int, Connection] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count()

    def next_id(self) -> int:
        """Allocate the next connection id."""
        with self._lock:
            return next(self._ids)

    def register(self, conn_id: int, conn: Connection) -> None:
        with self._lock:
            self._connections[conn_id] = conn

    def unregister(self, conn_id: int) -> Optional[Connection]:
        """Remove a connection; unknown ids are ignored."""
        with self._lock:
            return self._connections.pop(conn_id, None)

    def get(self, conn_id: int) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(conn_id)

    def ids(self) -> List[int]:
        with self._lock:
            return list(self._connections)

    def snapshot(self) -> List[Tuple[int, Connection]]:
        """Point-in-time copy of all entries."""
        with self._lock:
            return list(self._connections.items())

    def for_each(self, fn: Callable[[int, Connection], None]) -> None:
        """Call fn(conn_id, conn) for every entry present at call time."""
        for conn_id, conn in self.snapshot():
            fn(conn_id, conn)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, conn_id: int) -> bool:
        with self._lock:
            return conn_id in self._connections

    def __iter__(self) -> Iterator[Tuple[int, Connection]]:
        return iter(self.snapshot())
