"""
Y86-64 Emulator - Interactive Line Client

Connects to a session server, sends one instruction per line and prints
each response. `quit` or `q` closes the connection.
"""

import logging
import socket
from typing import Optional

from ..config import DEFAULT_HOST, DEFAULT_PORT
from .server import RESPONSE_TERMINATOR

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Raised when the server goes away mid-response."""


class LineClient:
    """Blocking request/response client for the session server."""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT,
                 timeout: Optional[float] = 10.0):
        self.host = host
        self.port = port
        self.timeout = timeout
        self._sock: Optional[socket.socket] = None
        self._buf = bytearray()

    def connect(self):
        self._sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        logger.info("Connected to %s:%d", self.host, self.port)

    def request(self, line: str) -> str:
        """Send one line, block until the full response has arrived."""
        if self._sock is None:
            self.connect()
        self._sock.sendall(line.encode("ascii", errors="replace") + b"\n")
        while RESPONSE_TERMINATOR not in self._buf:
            data = self._sock.recv(1024)
            if not data:
                raise ClientError("server closed the connection")
            self._buf.extend(data)
        raw, _, rest = bytes(self._buf).partition(RESPONSE_TERMINATOR)
        self._buf = bytearray(rest)
        return raw.decode("ascii", errors="replace")

    def close(self):
        if self._sock is not None:
            self._sock.close()
            self._sock = None
            logger.info("Connection closed")

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, *exc):
        self.close()


def interactive_mode(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT):
    """Read instructions from the terminal and show the server's replies."""
    print("Y86-64 Interactive Client")
    print(f"  Server: {host}:{port}")
    print("  Type one instruction per line (e.g. irmovq 5, r1)")
    print("    dump   -> show registers, flags and PC")
    print("    quit   -> exit")
    print()

    with LineClient(host, port) as client:
        while True:
            try:
                line = input("Y86> ").strip()
            except (EOFError, KeyboardInterrupt):
                break

            if line in ('quit', 'q'):
                print("Closing connection...")
                break

            try:
                print(client.request(line))
            except (ClientError, OSError) as e:
                logger.error("Lost connection: %s", e)
                break
