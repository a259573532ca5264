"""Protocol module for CypherDB."""

from .commands import MESSAGE_TERMINATOR, PROMPT, WELCOME_MESSAGE, Command, CommandType, Response
from .parser import ProtocolParser

__all__ = [
    "MESSAGE_TERMINATOR",
    "PROMPT",
    "WELCOME_MESSAGE",
    "Command",
    "CommandType",
    "Response",
    "ProtocolParser",
]
