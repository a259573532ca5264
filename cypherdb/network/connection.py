"""
Client Connection Module

This module contains the per-client side of the server:

- Connection: a handle on one open client stream, used by the handler to
  reply and by the server to broadcast and force-close during shutdown
- ConnectionHandler: the read/parse/execute/reply loop for one client

A handler runs until the client disconnects, sends ``exit``, a read or
write on its stream fails, or the server closes the stream during
shutdown. Whatever the reason, it unregisters its connection on the way out.
"""

import logging
from asyncio import StreamReader, StreamWriter
from typing import TYPE_CHECKING, Optional

from ..protocol.commands import Command, CommandType, Response
from ..protocol.parser import ProtocolParser
from ..storage.store import KVStore

if TYPE_CHECKING:
    from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Connection:
    """
    One open client stream.

    Attributes:
        conn_id: Registry id assigned when the connection was accepted
        reader: StreamReader for reading from the client
        writer: StreamWriter for writing to the client
        peer: Client address as reported by the transport
    """

    def __init__(
            self,
            conn_id: int,
            reader: StreamReader,
            writer: StreamWriter,
            parser: Optional[ProtocolParser] = None,
    ):
        self.conn_id = conn_id
        self.reader = reader
        self.writer = writer
        self.peer = writer.get_extra_info('peername')
        self.parser = parser if parser is not None else ProtocolParser()

    @property
    def closed(self) -> bool:
        return self.writer.is_closing()

    async def send(self, response: Response) -> None:
        """
        Write one framed message to the client and wait for it to flush.

        Raises:
            ConnectionError: if the stream is already closed or the peer
                went away
        """
        if self.closed:
            raise ConnectionResetError(f"connection {self.conn_id} is closed")
        self.writer.write(self.parser.format_response(response).encode('utf-8'))
        await self.writer.drain()

    def close(self) -> None:
        """Close the stream. Pending reads on it see end-of-stream."""
        if not self.closed:
            self.writer.close()

    async def wait_closed(self) -> None:
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            # The peer may already have reset the connection
            pass

    def __repr__(self) -> str:
        return f"Connection(id={self.conn_id}, peer={self.peer})"


class ConnectionHandler:
    """
    Serves one client connection until it terminates.

    Each line read from the client is parsed into a Command, executed
    against the shared store, and answered with exactly one framed reply
    (``exit`` is the only command that gets no reply).
    """

    def __init__(
            self,
            connection: Connection,
            store: KVStore,
            registry: "ConnectionRegistry",
    ):
        self.connection = connection
        self.store = store
        self.registry = registry
        self.parser = connection.parser
        self.commands_processed = 0

    async def run(self) -> None:
        """
        Read, execute and answer commands until the connection ends.

        Network failures only end this connection; they are logged and
        never propagate to the server.
        """
        conn = self.connection
        logger.info(f"Client with id {conn.conn_id} joined from {conn.peer}")

        try:
            while True:
                data = await conn.reader.readline()
                if not data:
                    logger.debug(f"Client {conn.conn_id} reached end of stream")
                    break

                raw = data.decode('utf-8', errors='replace')
                command = self.parser.parse_request(raw)

                response = self.execute(command)
                if response is None:
                    logger.debug(f"Client {conn.conn_id} requested exit")
                    break

                self.commands_processed += 1
                await conn.send(response)

        except ValueError as exc:
            # readline() raises ValueError when a line exceeds the stream limit
            logger.warning(f"Dropping client {conn.conn_id}: {exc}")
        except (ConnectionError, OSError) as exc:
            logger.debug(f"Connection error on client {conn.conn_id}: {exc}")
        except Exception as exc:  # Log unexpected errors but keep server alive
            logger.exception(f"Error handling client {conn.conn_id}: {exc}")
        finally:
            self.registry.unregister(conn.conn_id)
            conn.close()
            await conn.wait_closed()
            logger.info(f"Client with id {conn.conn_id} left")

    def execute(self, command: Command) -> Optional[Response]:
        """
        Execute a parsed command on the store.

        Args:
            command: The Command object to execute

        Returns:
            Response object with the result, or None for EXIT
        """
        if command.type == CommandType.SET:
            self.store.set(command.key, command.value)
            return Response.ok()

        if command.type == CommandType.GET:
            value = self.store.get(command.key)
            if value is None:
                return Response.key_not_found(command.key)
            return Response.value_response(value)

        if command.type == CommandType.DELETE:
            self.store.delete(command.key)
            return Response.ok()

        if command.type == CommandType.EXIT:
            return None

        return Response.unknown_command(command.raw)
