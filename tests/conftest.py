"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import pytest
import pytest_asyncio
from contextlib import closing
from pathlib import Path
from typing import AsyncGenerator

from cypherdb.network.registry import ConnectionRegistry
from cypherdb.network.tcp_server import CypherServer
from cypherdb.protocol.commands import MESSAGE_TERMINATOR
from cypherdb.protocol.parser import ProtocolParser
from cypherdb.storage.store import KVStore

# Short timings so shutdown tests finish quickly
TEST_GRACE_PERIOD = 0.3
TEST_POLL_INTERVAL = 0.1


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('127.0.0.1', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# KVStore Fixtures
# ============================================================================

@pytest.fixture
def store() -> KVStore:
    """Create a fresh in-memory KVStore instance."""
    return KVStore()


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    """Location of a snapshot file inside the test's temp directory."""
    return tmp_path / "data" / "cypherdb.json"


@pytest.fixture
def persistent_store(data_file: Path) -> KVStore:
    """Create a KVStore backed by a snapshot file."""
    return KVStore(data_file=data_file)


# ============================================================================
# Protocol / Registry Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


@pytest.fixture
def registry() -> ConnectionRegistry:
    """Create an empty ConnectionRegistry."""
    return ConnectionRegistry()


# ============================================================================
# Server Fixtures
# ============================================================================

def make_server(store: KVStore = None, grace_period: float = TEST_GRACE_PERIOD) -> CypherServer:
    """Build a server on a free loopback port with test timings."""
    return CypherServer(
        host='127.0.0.1',
        port=0,
        store=store,
        grace_period=grace_period,
        poll_interval=TEST_POLL_INTERVAL,
    )


@pytest_asyncio.fixture
async def server(persistent_store: KVStore) -> AsyncGenerator[CypherServer, None]:
    """
    Create and start a server instance for testing.

    This fixture:
    1. Creates a CypherServer on a free port, backed by a temp snapshot
    2. Starts it (the accept loop runs in a background task)
    3. Yields the server for testing
    4. Stops it after the test
    """
    srv = make_server(store=persistent_store)
    await srv.start()

    yield srv

    await srv.stop()


# ============================================================================
# Client Fixtures
# ============================================================================

class AsyncClient:
    """
    Helper class for testing server interactions.

    Every server message ends with a newline plus the prompt marker, so a
    reply is read up to and including that terminator and returned without it.

    Usage:
        async with AsyncClient('127.0.0.1', port) as client:
            response = await client.send_command("set key value")
            assert response == "OK"
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.reader = None
        self.writer = None
        self.welcome = None

    async def connect(self) -> None:
        """Establish connection to server and read the welcome line."""
        self.reader, self.writer = await asyncio.open_connection(
            self.host, self.port
        )
        self.welcome = await self.read_message()

    async def disconnect(self) -> None:
        """Close connection to server."""
        if self.writer:
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def read_message(self) -> str:
        """Read one framed message from the server."""
        data = await self.reader.readuntil(MESSAGE_TERMINATOR.encode())
        return data[:-len(MESSAGE_TERMINATOR)].decode()

    async def send_line(self, line: str) -> None:
        """Send a raw line without waiting for a reply."""
        if not line.endswith('\n'):
            line += '\n'
        self.writer.write(line.encode())
        await self.writer.drain()

    async def send_command(self, command: str) -> str:
        """
        Send a command and receive the response.

        Args:
            command: Command string (newline will be added if missing)

        Returns:
            Response text without the prompt marker
        """
        await self.send_line(command)
        return await self.read_message()

    async def read_until_closed(self, timeout: float = 5.0) -> bytes:
        """Read everything the server sends until it closes the connection."""
        return await asyncio.wait_for(self.reader.read(), timeout=timeout)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()


@pytest.fixture
def client_factory(server: CypherServer):
    """
    Factory fixture to create test clients for the running server.

    Usage:
        async def test_something(server, client_factory):
            async with client_factory() as client:
                response = await client.send_command("get key")
    """
    def factory() -> AsyncClient:
        return AsyncClient('127.0.0.1', server.port)
    return factory


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


# Configure asyncio mode for pytest-asyncio
pytest_plugins = ['pytest_asyncio']
