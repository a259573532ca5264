"""
Async TCP Server Module

This module implements the TCP server for CypherDB: the accept loop that
hands every client to its own ConnectionHandler task, and the shutdown
coordinator that drains open connections before the store is saved.

Lifecycle:
    IDLE --start()--> RUNNING --stop()--> STOPPING --drain--> STOPPED

Shutdown (drain) sequence:
    1. Close the listener so no further connections are accepted
    2. Warn every open connection that the server is going down
    3. Wait the full grace period
    4. Force-close whatever connections are still open
    5. Signal "drained"; stop() then saves the store snapshot
"""

import asyncio
import logging
from asyncio import StreamReader, StreamWriter
from enum import Enum
from typing import Optional, Set

from ..config.settings import settings
from ..protocol.commands import Response
from ..protocol.parser import ProtocolParser
from ..storage.store import KVStore
from .connection import Connection, ConnectionHandler
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class ServerState(Enum):
    """Lifecycle states of a CypherServer."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class CypherServer:
    """
    Asynchronous TCP server for the CypherDB service.

    Each client connection is served by its own task, so a slow or idle
    client never holds up another one. All listener and shutdown state is
    kept on the instance, which lets several servers run side by side.

    Usage:
        server = CypherServer(host='0.0.0.0', port=8080, store=store)
        await server.start()   # returns once the listener is bound
        ...
        await server.stop()    # drains connections, then saves the store

    Attributes:
        host: Server bind address (e.g., '0.0.0.0')
        port: Server port number; the actual bound port after start()
        store: The KVStore instance shared by all connections
        registry: Directory of currently open connections
        grace_period: Seconds clients get between the shutdown warning
            and the forced close
        poll_interval: Upper bound in seconds on how long the accept loop
            goes without re-checking for a shutdown request
    """

    def __init__(
            self,
            host: str = None,
            port: int = None,
            store: KVStore = None,
            grace_period: float = None,
            poll_interval: float = None,
    ):
        """
        Initialize the server.

        Args:
            host: Bind address (default from settings)
            port: Port number (default from settings, 0 picks a free port)
            store: KVStore instance (creates an in-memory one if not provided)
            grace_period: Drain grace period (default from settings)
            poll_interval: Shutdown polling interval (default from settings)
        """
        self.host = host if host is not None else settings.HOST
        self.port = port if port is not None else settings.PORT
        self.store = store if store is not None else KVStore()
        self.grace_period = grace_period if grace_period is not None else settings.GRACE_PERIOD
        self.poll_interval = poll_interval if poll_interval is not None else settings.ACCEPT_POLL_INTERVAL
        self.parser = ProtocolParser()
        self.registry = ConnectionRegistry()

        # Server state
        self._state = ServerState.IDLE
        self._server: Optional[asyncio.Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._save_task: Optional[asyncio.Future] = None
        self._client_tasks: Set[asyncio.Task] = set()
        self._stop_requested = asyncio.Event()
        self._drained = asyncio.Event()
        self._connection_count = 0
        self._total_commands = 0

    @property
    def state(self) -> ServerState:
        return self._state

    async def start(self) -> None:
        """
        Bind the listener and start accepting connections in the background.

        Returns as soon as the listener is bound. Calling start() on a
        server that has already been started does nothing.

        Raises:
            OSError: if the listener cannot be bound (e.g. port in use)
        """
        if self._state != ServerState.IDLE:
            return

        self._server = await asyncio.start_server(
            self._accept_client,
            self.host,
            self.port,
            limit=settings.READ_BUFFER_SIZE,
        )
        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        self._state = ServerState.RUNNING

        addrs = ', '.join(str(sock.getsockname()) for sock in sockets)
        logger.info(f"Starting DB server, serving on {addrs}")

        self._serve_task = asyncio.create_task(self._serve())

    async def _serve(self) -> None:
        """
        Accept loop supervisor.

        The listener accepts clients on its own; this task waits for a
        shutdown request in slices of at most poll_interval seconds, then
        runs the drain procedure exactly once.
        """
        logger.info("Listening for client connections")
        try:
            while not self._stop_requested.is_set():
                try:
                    await asyncio.wait_for(
                        self._stop_requested.wait(),
                        timeout=self.poll_interval,
                    )
                except asyncio.TimeoutError:
                    continue

            self._state = ServerState.STOPPING
            logger.info("Shutting down server")
            await self._drain()
        except Exception as exc:
            logger.exception(f"Error while draining connections: {exc}")
        finally:
            self._state = ServerState.STOPPED
            self._drained.set()

    async def _accept_client(self, reader: StreamReader, writer: StreamWriter) -> None:
        """
        Called by the listener for every accepted connection.

        Registers the connection, sends the welcome line, then serves it
        until it terminates. Registering first means a connection still being
        welcomed when shutdown begins is warned and drained like any other.
        Each call runs on its own task.
        """
        if self._state != ServerState.RUNNING:
            # Accepted just as shutdown began
            writer.close()
            return

        task = asyncio.current_task()
        if task is not None:
            self._client_tasks.add(task)
            task.add_done_callback(self._client_tasks.discard)

        conn = Connection(self.registry.next_id(), reader, writer, self.parser)
        self.registry.register(conn.conn_id, conn)
        self._connection_count += 1

        try:
            await conn.send(Response.welcome())
        except (ConnectionError, OSError) as exc:
            logger.warning(f"Failed to welcome client {conn.peer}: {exc}")
            self.registry.unregister(conn.conn_id)
            conn.close()
            return

        handler = ConnectionHandler(conn, self.store, self.registry)
        try:
            await handler.run()
        finally:
            self._total_commands += handler.commands_processed

    async def _drain(self) -> None:
        """Close the listener, warn, wait out the grace period, force-close."""
        self._server.close()

        if len(self.registry) > 0:
            await self._warn_connections()
            await asyncio.sleep(self.grace_period)
            self._close_connections()
            await self._wait_for_handlers()

        try:
            await asyncio.wait_for(self._server.wait_closed(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            logger.warning("Listener did not report closed in time")
        logger.info("All connections drained")

    async def _warn_connections(self) -> None:
        warning = Response.shutdown_warning(self.grace_period)

        async def warn(conn: Connection) -> None:
            try:
                await asyncio.wait_for(conn.send(warning), timeout=self.poll_interval)
            except (ConnectionError, OSError, asyncio.TimeoutError) as exc:
                logger.warning(f"Could not warn connection with id {conn.conn_id}: {exc}")

        await asyncio.gather(*(warn(conn) for _, conn in self.registry.snapshot()))

    def _close_connections(self) -> None:
        logger.info("Closing all connections")

        def close(conn_id: int, conn: Connection) -> None:
            try:
                conn.close()
            except (ConnectionError, OSError) as exc:
                logger.warning(f"Could not close connection with id {conn_id}: {exc}")

        self.registry.for_each(close)

    async def _wait_for_handlers(self) -> None:
        """Give force-closed handlers a chance to unwind and unregister."""
        pending = list(self._client_tasks)
        if pending:
            _, still_running = await asyncio.wait(pending, timeout=self.poll_interval)
            if still_running:
                logger.warning(f"{len(still_running)} client handlers did not exit in time")

        # Whatever is still registered is closed but has not been reaped yet
        for conn_id in self.registry.ids():
            self.registry.unregister(conn_id)

    async def stop(self) -> None:
        """
        Stop the server gracefully.

        Requests shutdown, waits until every connection has been drained,
        then saves the store snapshot. Safe to call more than once and from
        several tasks at the same time: all callers wait for the same drain
        and the snapshot is written only once. A failed save is logged and
        does not make stop() fail.
        """
        if self._state == ServerState.IDLE:
            logger.debug("Stop requested on a server that was never started")
            return

        logger.info("Stopping the DB server")
        self._stop_requested.set()
        await self._drained.wait()

        if self._save_task is None:
            logger.info("Saving memory records to DB")
            self._save_task = asyncio.ensure_future(asyncio.to_thread(self.store.save))
            saved = await asyncio.shield(self._save_task)
            if saved:
                logger.info("DB server successfully stopped")
            else:
                logger.warning("DB server stopped without saving its snapshot")
        else:
            await asyncio.shield(self._save_task)

    def is_running(self) -> bool:
        """Check if the server is currently accepting connections."""
        return self._state == ServerState.RUNNING

    def get_stats(self) -> dict:
        """
        Get server statistics.

        Returns:
            Dictionary with server state, connection counts, command
            counts, and store statistics.
        """
        return {
            "state": self._state.value,
            "host": self.host,
            "port": self.port,
            "active_connections": len(self.registry),
            "total_connections": self._connection_count,
            "total_commands": self._total_commands,
            "store_stats": self.store.get_stats(),
        }
