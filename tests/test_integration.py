"""
Integration Tests

End-to-end tests that verify the complete system works together,
including persistence across a server restart and the blocking client.

Run with: python -m pytest tests/test_integration.py -v
"""

import asyncio
import json
import os
import signal
import sys

import pytest
from conftest import AsyncClient, find_free_port, make_server
from cypherdb.client import CypherClient
from cypherdb.config.settings import settings
from cypherdb.server import parse_args, run
from cypherdb.storage.store import KVStore


@pytest.mark.asyncio
@pytest.mark.integration
class TestEndToEnd:
    """End-to-end integration tests."""

    async def test_complete_workflow(self, server, client_factory):
        async with client_factory() as client:
            assert await client.send_command("set user:1 alice") == "OK"
            assert await client.send_command("set user:2 bob") == "OK"
            assert await client.send_command("get user:1") == "alice"

            assert await client.send_command("set user:1 alice_updated") == "OK"
            assert await client.send_command("get user:1") == "alice_updated"

            assert await client.send_command("delete user:2") == "OK"
            assert await client.send_command("get user:2") == "Key user:2 not found"
            assert await client.send_command("get user:99") == "Key user:99 not found"

    async def test_data_survives_restart(self, data_file):
        first = make_server(store=KVStore(data_file=data_file))
        await first.start()
        async with AsyncClient('127.0.0.1', first.port) as client:
            await client.send_command("set color blue")
            await client.send_command("set size large")
            await client.send_command("delete size")
        await first.stop()

        second = make_server(store=KVStore(data_file=data_file))
        await second.start()
        try:
            async with AsyncClient('127.0.0.1', second.port) as client:
                assert await client.send_command("get color") == "blue"
                assert await client.send_command("get size") == "Key size not found"
        finally:
            await second.stop()

    async def test_corrupt_snapshot_starts_empty(self, data_file):
        data_file.parent.mkdir(parents=True)
        data_file.write_text("garbage")

        srv = make_server(store=KVStore(data_file=data_file))
        await srv.start()
        async with AsyncClient('127.0.0.1', srv.port) as client:
            assert await client.send_command("get anything") == "Key anything not found"
            await client.send_command("set fresh start")
        await srv.stop()

        assert json.loads(data_file.read_text()) == {"fresh": "start"}


@pytest.mark.asyncio
@pytest.mark.integration
class TestBlockingClients:
    """Drive the server from real threads using CypherClient."""

    async def test_blocking_client_roundtrip(self, server):
        def session():
            with CypherClient('127.0.0.1', server.port) as client:
                assert client.welcome == "Welcome To Cypher DB"
                assert client.set("foo", "bar") == "OK"
                assert client.get("foo") == "bar"
                assert client.delete("foo") == "OK"
                assert client.get("foo") == "Key foo not found"
                assert client.send_command("gett foo") == "Unknown command gett foo"
                assert client.send_command("x -> y") == "Unknown command x -> y"
                assert client.set("k", "v") == "OK"
                client.exit()

        await asyncio.to_thread(session)

    async def test_parallel_clients_on_distinct_keys(self, server):
        num_clients = 10

        def session(client_id: int):
            with CypherClient('127.0.0.1', server.port) as client:
                for i in range(20):
                    key, value = f"t{client_id}:{i}", f"v{client_id}:{i}"
                    assert client.set(key, value) == "OK"
                    assert client.get(key) == value
                for i in range(0, 20, 2):
                    assert client.delete(f"t{client_id}:{i}") == "OK"
                for i in range(20):
                    expected = f"Key t{client_id}:{i} not found" if i % 2 == 0 else f"v{client_id}:{i}"
                    assert client.get(f"t{client_id}:{i}") == expected

        await asyncio.gather(*(asyncio.to_thread(session, n) for n in range(num_clients)))
        assert server.store.size() == num_clients * 10

    async def test_blocking_client_sees_shutdown(self):
        srv = make_server()
        await srv.start()

        def session():
            with CypherClient('127.0.0.1', srv.port) as client:
                warning = client.recv_message()
                with pytest.raises(ConnectionError):
                    client.recv_message()
                return warning

        reader_task = asyncio.create_task(asyncio.to_thread(session))
        while len(srv.registry) == 0:
            await asyncio.sleep(0.01)
        await srv.stop()

        assert (await reader_task).startswith("Host wants to shutdown server in")


@pytest.mark.asyncio
class TestEntryPoint:
    """Test the process entry point helpers."""

    async def test_run_reports_bind_failure(self, server, tmp_path):
        args = parse_args([
            "--host", "127.0.0.1",
            "--port", str(server.port),
            "--data-file", str(tmp_path / "db.json"),
        ])
        assert await run(args) == 1

    @pytest.mark.skipif(sys.platform == 'win32', reason="signal handlers are Unix only")
    async def test_sigterm_saves_and_exits(self, data_file):
        port = find_free_port()
        args = parse_args([
            "--host", "127.0.0.1",
            "--port", str(port),
            "--data-file", str(data_file),
            "--grace-period", "0.2",
            "--poll-interval", "0.1",
        ])
        task = asyncio.create_task(run(args))

        client = AsyncClient('127.0.0.1', port)
        deadline = asyncio.get_running_loop().time() + 5.0
        while True:
            try:
                await client.connect()
                break
            except OSError:
                if task.done() or asyncio.get_running_loop().time() > deadline:
                    raise
                await asyncio.sleep(0.05)

        assert await client.send_command("set color blue") == "OK"
        await client.disconnect()

        os.kill(os.getpid(), signal.SIGTERM)

        assert await asyncio.wait_for(task, timeout=5.0) == 0
        assert json.loads(data_file.read_text()) == {"color": "blue"}


class TestParseArgs:
    """Test command line parsing."""

    def test_parse_args_defaults(self):
        args = parse_args([])
        assert args.port == settings.PORT
        assert args.grace_period == settings.GRACE_PERIOD
        assert args.data_file == settings.DATA_FILE
