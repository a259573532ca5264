"""
Protocol Parser Module

This module handles parsing of raw protocol lines and formatting of responses.
"""

from .commands import MESSAGE_TERMINATOR, Command, CommandType, Response


class ProtocolParser:
    """
    Parser for the CypherDB text protocol.

    Protocol Format:
        Request:  <command> [ARGS...]\\n
        Response: <TEXT>\\n-> (prompt marker, no newline)

    Commands:
        set <key> <value>   -> OK
        get <key>           -> <value> | Key <key> not found
        delete <key>        -> OK
        exit                -> (connection closed)

    Command names are case-insensitive; keys and values are kept as sent.
    Tokens are separated by single spaces, so a doubled space or a tab
    yields an empty or merged token.
    A line that does not match one of the forms above exactly, including
    one with the wrong number of arguments, parses as UNKNOWN.
    """

    def parse_request(self, data: str) -> Command:
        """
        Parse a raw request line into a Command object.

        Args:
            data: Raw request line (may include trailing newline)

        Returns:
            Command object representing the parsed request.
            Returns Command with type=UNKNOWN for invalid/malformed requests.

        Examples:
            >>> parser = ProtocolParser()
            >>> cmd = parser.parse_request("SET mykey myvalue")
            >>> cmd.type == CommandType.SET
            True
            >>> cmd.key, cmd.value
            ('mykey', 'myvalue')
        """
        raw = data.strip()
        parts = raw.split(" ")
        command_name = parts[0].lower()

        if command_name == "set" and len(parts) == 3:
            return Command(type=CommandType.SET, key=parts[1], value=parts[2], raw=raw)
        if command_name == "get" and len(parts) == 2:
            return Command(type=CommandType.GET, key=parts[1], raw=raw)
        if command_name == "delete" and len(parts) == 2:
            return Command(type=CommandType.DELETE, key=parts[1], raw=raw)
        if command_name == "exit" and len(parts) == 1:
            return Command(type=CommandType.EXIT, raw=raw)

        return Command(type=CommandType.UNKNOWN, raw=raw)

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol string.

        Examples:
            >>> ProtocolParser().format_response(Response.ok())
            'OK\\n-> '
        """
        return f"{response.message}{MESSAGE_TERMINATOR}"
