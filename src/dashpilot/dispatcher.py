"""OBD-II mode 01 command dispatch over the session's serial link."""

from __future__ import annotations

import asyncio
import logging

from dashpilot import pids
from dashpilot._constants import COMMAND_TERMINATOR, DEFAULT_COMMAND_TIMEOUT, MODE_01_POSITIVE_RESPONSE
from dashpilot.exceptions import CommandTimeoutError, InvalidResponseFormatError
from dashpilot.session import ConnectionSession

_logger = logging.getLogger(__name__)


def parse_mode01_response(command: str, response: str) -> str:
    """Validate a mode 01 answer and return its data bytes as concatenated hex.

    ``"41 0C 1A F8"`` for command ``"010C"`` gives ``"1AF8"``.
    """
    tokens = response.split()
    if not tokens or tokens[0].upper() != MODE_01_POSITIVE_RESPONSE:
        raise InvalidResponseFormatError(
            f"Invalid response format for {command}: {response!r}",
            command=command,
            response=response,
        )
    if len(tokens) < 3:
        raise InvalidResponseFormatError(
            f"Response to {command} carries no data: {response!r}",
            command=command,
            response=response,
        )
    if tokens[1].upper() != command[2:].upper():
        raise InvalidResponseFormatError(
            f"Response echoes PID {tokens[1]} but {command} was sent",
            command=command,
            response=response,
        )
    return "".join(tokens[2:])


class CommandDispatcher:
    """Sends one PID request at a time and decodes the answer.

    Each exchange holds the session's link for its whole duration, so
    callers may fire several queries concurrently; they are serialized
    on the wire.
    """

    def __init__(self, session: ConnectionSession, *, timeout: float = DEFAULT_COMMAND_TIMEOUT) -> None:
        self._session = session
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def query_raw(self, command: str) -> str:
        """Send *command* and return the validated hex payload.

        Raises
        ------
        NotConnectedError
            No connected session.
        CommandTimeoutError
            No line arrived within :attr:`timeout`.
        InvalidResponseFormatError
            The line is not a positive mode 01 response to *command*.
        """
        code = command.strip().upper()
        async with self._session.exclusive_link() as link:
            link.clear()
            await link.write(code + COMMAND_TERMINATOR)
            try:
                response = await asyncio.wait_for(link.read_line(), timeout=self._timeout)
            except TimeoutError:
                # Drop whatever partial answer the adapter might still send.
                link.clear()
                raise CommandTimeoutError(
                    f"Command {code} timed out after {self._timeout}s",
                    command=code,
                    timeout=self._timeout,
                ) from None
        return parse_mode01_response(code, response)

    async def query(self, command: str) -> float:
        """Send *command* and return its decoded physical value."""
        pids.command_for_code(command)
        payload = await self.query_raw(command)
        value = pids.decode(command, payload)
        _logger.debug("%s -> %s", command, value)
        return value
