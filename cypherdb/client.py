#!/usr/bin/env python3
"""
Interactive Client for CypherDB

A simple blocking TCP client for the CypherDB text protocol, plus an
interactive shell for trying the server by hand.

Usage:
    cypherdb-cli                     # Connect to localhost:8080
    cypherdb-cli --host 1.2.3.4      # Connect to specific host
    cypherdb-cli --port 9090         # Connect to specific port

Commands:
    set <key> <value>   - Store a key-value pair
    get <key>           - Retrieve a value
    delete <key>        - Delete a key
    exit                - Close connection and exit
    help                - Show this help
"""

import argparse
import socket
import sys
from typing import Optional

from .protocol.commands import MESSAGE_TERMINATOR, PROMPT

# Enable command history with arrow keys (works on Unix systems)
try:
    import readline  # noqa: F401
except ImportError:
    pass  # readline not available on Windows by default

_TERMINATOR_BYTES = MESSAGE_TERMINATOR.encode('utf-8')


class CypherClient:
    """
    Blocking TCP client for CypherDB.

    Every server message is framed as ``<text>\\n-> ``; recv_message()
    returns the text of one such frame.
    """

    def __init__(self, host: str = "localhost", port: int = 8080, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket: Optional[socket.socket] = None
        self.welcome: Optional[str] = None
        self._buffer = b''

    def connect(self) -> str:
        """
        Connect to the server and consume its welcome line.

        Returns:
            The welcome message
        """
        self._buffer = b''
        self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout)
        self.welcome = self.recv_message()
        return self.welcome

    def disconnect(self) -> None:
        """Disconnect from the server."""
        if self.socket:
            try:
                self.socket.close()
            except OSError:
                pass
            self.socket = None

    def recv_message(self) -> str:
        """
        Read one framed server message.

        Raises:
            ConnectionError: if the server closes the connection first
        """
        if not self.socket:
            raise ConnectionError("not connected")

        while _TERMINATOR_BYTES not in self._buffer:
            chunk = self.socket.recv(4096)
            if not chunk:
                raise ConnectionError("connection closed by server")
            self._buffer += chunk

        frame, self._buffer = self._buffer.split(_TERMINATOR_BYTES, 1)
        return frame.decode('utf-8').rstrip('\r')

    def send_command(self, command: str) -> str:
        """Send one command line and return the server's reply."""
        if not self.socket:
            raise ConnectionError("not connected")

        if not command.endswith('\n'):
            command += '\n'
        self.socket.sendall(command.encode('utf-8'))
        return self.recv_message()

    def set(self, key: str, value: str) -> str:
        return self.send_command(f"set {key} {value}")

    def get(self, key: str) -> str:
        return self.send_command(f"get {key}")

    def delete(self, key: str) -> str:
        return self.send_command(f"delete {key}")

    def exit(self) -> None:
        """Ask the server to close the connection, then disconnect."""
        if self.socket:
            try:
                self.socket.sendall(b"exit\n")
            except OSError:
                pass
        self.disconnect()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()


def print_help():
    """Print help message."""
    print("""
CypherDB Commands:
------------------
  set <key> <value>   Store a key-value pair
  get <key>           Retrieve the value for a key
  delete <key>        Delete a key-value pair
  exit                Close connection and exit

Client Commands:
----------------
  help                Show this help message
""")


def main():
    parser = argparse.ArgumentParser(
        description="Interactive client for CypherDB"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="localhost",
        help="Server host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Server port (default: 8080)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Socket timeout in seconds (default: none)"
    )

    args = parser.parse_args()

    client = CypherClient(args.host, args.port, args.timeout)

    try:
        print(client.connect())
    except OSError as e:
        print(f"Failed to connect to {args.host}:{args.port}: {e}")
        print(f"  Try: python -m cypherdb.server --port {args.port}")
        sys.exit(1)

    try:
        while True:
            try:
                command = input(PROMPT).strip()
            except EOFError:
                print()
                client.exit()
                break

            if not command:
                continue

            if command.lower() == "help":
                print_help()
                continue

            if command.lower() == "exit":
                client.exit()
                print("Goodbye!")
                break

            try:
                print(client.send_command(command))
            except (ConnectionError, OSError) as e:
                print(f"Connection lost: {e}")
                break

    except KeyboardInterrupt:
        print("\n\nInterrupted. Goodbye!")
    finally:
        client.disconnect()


if __name__ == "__main__":
    main()
