"""
Protocol Command and Response Definitions

This module defines the data structures for protocol commands and responses.
"""

from dataclasses import dataclass
from enum import Enum, auto

# Written after every server message so interactive clients get a prompt.
PROMPT = "-> "

# Ends every server message. Message text never contains a newline, so a
# bare prompt inside echoed client text cannot end a frame early.
MESSAGE_TERMINATOR = "\n" + PROMPT

WELCOME_MESSAGE = "Welcome To Cypher DB"


class CommandType(Enum):
    """Enumeration of supported command types."""
    SET = auto()
    GET = auto()
    DELETE = auto()
    EXIT = auto()
    UNKNOWN = auto()


@dataclass
class Command:
    """
    Represents a parsed protocol command.

    Attributes:
        type: The type of command (SET, GET, DELETE, EXIT, UNKNOWN)
        key: The key for the operation (empty for EXIT and UNKNOWN)
        value: The value for SET operations (empty for other operations)
        raw: The original command line, stripped of surrounding whitespace
    """
    type: CommandType
    key: str = ""
    value: str = ""
    raw: str = ""


@dataclass
class Response:
    """
    Represents a protocol response.

    Attributes:
        message: The text sent back to the client
    """
    message: str

    @classmethod
    def ok(cls) -> "Response":
        """Create an 'OK' response for SET and DELETE operations."""
        return cls(message="OK")

    @classmethod
    def value_response(cls, value: str) -> "Response":
        """Create a GET response with a value."""
        return cls(message=value)

    @classmethod
    def key_not_found(cls, key: str) -> "Response":
        """Create a 'key not found' response for GET operations."""
        return cls(message=f"Key {key} not found")

    @classmethod
    def unknown_command(cls, raw: str) -> "Response":
        """Create a response echoing an unrecognized command line."""
        return cls(message=f"Unknown command {raw}")

    @classmethod
    def shutdown_warning(cls, grace_period: float) -> "Response":
        """Create the notice broadcast to clients when the server drains."""
        return cls(message=f"Host wants to shutdown server in {grace_period:g}s")

    @classmethod
    def welcome(cls) -> "Response":
        """Create the greeting sent to every new connection."""
        return cls(message=WELCOME_MESSAGE)
