"""
BIRD control socket client

Tells the running BIRD daemon to reload its configuration over the local
control socket (the channel birdc talks to). One connection per run:
greeting, one command line, one reply.

Reply lines have the form ``NNNN text`` (final) or ``NNNN-text``
(continued); lines starting with a space continue the previous reply.
"""

import logging
import re
import socket
from dataclasses import dataclass
from typing import List, Optional

from bcg.utils.error_handling import ReconfigurationError

REPLY_LINE = re.compile(r"^(\d{4})([ -])(.*)$")

# 8xxx runtime errors, 9xxx parse errors
ERROR_REPLY_CODES = range(8000, 10000)


@dataclass
class ReplyLine:
    """One line of a BIRD control reply"""
    code: Optional[int]
    final: bool
    text: str


def parse_reply(data: str) -> List[ReplyLine]:
    """Split raw control socket data into reply lines"""
    lines = []
    for raw in data.splitlines():
        if not raw.strip():
            continue
        match = REPLY_LINE.match(raw)
        if match:
            lines.append(ReplyLine(int(match.group(1)), match.group(2) == " ", match.group(3)))
        else:
            lines.append(ReplyLine(None, False, raw.strip()))
    return lines


def final_reply_code(lines: List[ReplyLine]) -> Optional[int]:
    """Code of the last final reply line, falling back to the last coded line"""
    coded = [line for line in lines if line.code is not None]
    for line in reversed(coded):
        if line.final:
            return line.code
    return coded[-1].code if coded else None


def _reply_complete(data: bytes) -> bool:
    if not data.endswith(b"\n"):
        return False
    last = data.decode("utf-8", errors="replace").splitlines()[-1]
    if last.startswith(" "):
        return False
    match = REPLY_LINE.match(last)
    return match is None or match.group(2) == " "


@dataclass
class ReconfigurationResult:
    """Outcome of one reconfiguration request"""
    socket_path: str
    command: str
    greeting: str
    response: str
    reply_code: Optional[int]

    @property
    def message(self) -> str:
        return " ".join(line.text for line in parse_reply(self.response)).strip()


class BirdControlClient:
    """Apply generated configuration through the BIRD control socket"""

    def __init__(self, socket_path: str = "/run/bird/bird.ctl", timeout: int = 10,
                 buffer_size: int = 1024, logger: Optional[logging.Logger] = None):
        """
        Args:
            socket_path: Path of the BIRD control socket
            timeout: Seconds allowed for connect and for each read/write
            buffer_size: Upper bound on the bytes read for one reply
            logger: Optional logger instance
        """
        self.socket_path = socket_path
        self.timeout = timeout
        self.buffer_size = buffer_size
        self.logger = logger or logging.getLogger("bcg.appliers.bird")

    def _error(self, message: str, details: Optional[str] = None) -> ReconfigurationError:
        return ReconfigurationError(message, socket_path=self.socket_path, technical_details=details)

    def _read_reply(self, sock: socket.socket, what: str) -> str:
        """
        Read one reply: stops at a complete final line, when the daemon
        closes the connection, or when ``buffer_size`` bytes have arrived
        """
        data = b""
        while len(data) < self.buffer_size:
            try:
                chunk = sock.recv(self.buffer_size - len(data))
            except OSError as e:
                raise self._error(f"Failed to read {what} from BIRD control socket {self.socket_path}: {e}")
            if not chunk:
                break
            data += chunk
            if _reply_complete(data):
                break

        if not data:
            raise self._error(f"BIRD closed the control connection before sending a {what}")
        return data.decode("utf-8", errors="replace")

    def apply_configuration(self, command: str = "configure") -> ReconfigurationResult:
        """
        Send ``command`` to the daemon and check its reply

        Raises:
            ReconfigurationError: On connect, write or read failure, or when
                BIRD answers with a runtime or parse error
        """
        line = command.rstrip("\n") + "\n"
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.timeout)

        try:
            try:
                sock.connect(self.socket_path)
            except OSError as e:
                raise self._error(f"Cannot connect to BIRD control socket {self.socket_path}: {e}")

            greeting = self._read_reply(sock, "greeting")
            self.logger.info(f"BIRD: {greeting.strip()}")

            try:
                sock.sendall(line.encode("utf-8"))
            except OSError as e:
                raise self._error(f"Failed to send '{command.strip()}' to BIRD: {e}")
            self.logger.debug(f"Sent '{command.strip()}' to {self.socket_path}")

            response = self._read_reply(sock, "response")
        finally:
            sock.close()

        result = ReconfigurationResult(
            socket_path=self.socket_path,
            command=command.strip(),
            greeting=greeting,
            response=response,
            reply_code=final_reply_code(parse_reply(response)),
        )

        if result.reply_code in ERROR_REPLY_CODES:
            raise self._error(
                f"BIRD rejected '{result.command}' ({result.reply_code}): {result.message}",
                details=response.strip(),
            )

        self.logger.info(f"BIRD: {result.message}")
        return result
