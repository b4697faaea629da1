"""
Y86-64 Emulator - TCP Session Server

Listens on a TCP port and gives every accepted connection its own Session
running on its own thread. Sessions are owned by their connection thread
and dropped when the client goes away; nothing is shared between clients.

Wire format:
    request   one line of text terminated by "\\n" ("\\r\\n" accepted)
    response  response text followed by an empty line ("\\n\\n")
    oversize  a request longer than ServerConfig.max_line bytes (default 4096)
              is answered with "Error: line longer than ..." and skipped

    $ y86emu serve --port 8080
    $ y86emu client --port 8080
"""

import logging
import socket
import threading
from typing import Optional, Tuple

from ..config import DEFAULT_MAX_LINE, DEFAULT_RECV_SIZE, MachineConfig, ServerConfig
from ..session import ERROR_PREFIX, Session

logger = logging.getLogger(__name__)

RESPONSE_TERMINATOR = b"\n\n"


def encode_response(text: str) -> bytes:
    return text.encode("ascii", errors="replace") + RESPONSE_TERMINATOR


def handle_client(conn: socket.socket, addr: Tuple[str, int],
                  machine: Optional[MachineConfig] = None,
                  recv_size: int = DEFAULT_RECV_SIZE,
                  max_line: int = DEFAULT_MAX_LINE) -> Session:
    """Serve one connection until the peer closes it. Returns the Session.

    A line longer than max_line bytes is answered with an error and
    dropped up to its terminating newline; the session carries on.
    """
    session = Session(machine, name=f"{addr[0]}:{addr[1]}")
    buf = bytearray()
    discarding = False

    def answer(raw: bytes):
        if len(raw) > max_line:
            logger.info("[%s] dropped %d-byte line", session.name, len(raw))
            reply = ERROR_PREFIX + f"line longer than {max_line} bytes"
        else:
            reply = session.handle(raw.decode("ascii", errors="replace").rstrip("\r"))
        conn.sendall(encode_response(reply))

    try:
        while True:
            data = conn.recv(recv_size)
            if not data:
                break
            buf.extend(data)

            # Answer every complete line in the buffer, in order
            while True:
                end = buf.find(b"\n")
                if end < 0:
                    break
                if discarding:
                    discarding = False
                else:
                    answer(bytes(buf[:end]))
                del buf[:end + 1]

            if discarding:
                buf.clear()
            elif len(buf) > max_line:
                answer(bytes(buf))
                buf.clear()
                discarding = True

        # Peer closed after an unterminated final line
        if buf.strip() and not discarding:
            answer(bytes(buf))
    except (ConnectionResetError, BrokenPipeError):
        logger.info("[%s] connection dropped", session.name)
    finally:
        conn.close()
    logger.info("[%s] client disconnected. Stats:\n%s", session.name, session.dump_stats())
    return session


class SessionServer:
    """Accept loop with one thread (and one Session) per client.

    Usage:
        server = SessionServer(ServerConfig(port=0))
        port = server.bind()
        threading.Thread(target=server.serve_forever, daemon=True).start()
        ...
        server.close()
    """

    def __init__(self, config: Optional[ServerConfig] = None,
                 machine: Optional[MachineConfig] = None):
        self.config = config or ServerConfig()
        self.machine = machine
        self._sock: Optional[socket.socket] = None
        self._running = False

    def bind(self) -> int:
        """Bind and listen. Returns the bound port (useful with port=0)."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((self.config.host, self.config.port))
        sock.listen(self.config.backlog)
        self._sock = sock
        self._running = True
        port = sock.getsockname()[1]
        logger.info("TCP server listening on %s:%d", self.config.host, port)
        return port

    @property
    def address(self) -> Tuple[str, int]:
        return self._sock.getsockname()

    def serve_forever(self):
        if self._sock is None:
            self.bind()
        while self._running:
            try:
                conn, addr = self._sock.accept()
            except OSError:
                if not self._running:
                    break
                logger.warning("Failed to accept connection", exc_info=True)
                continue
            logger.info("Client connected from %s:%d", addr[0], addr[1])
            t = threading.Thread(
                target=handle_client,
                args=(conn, addr, self.machine, self.config.recv_size, self.config.max_line),
                name=f"session-{addr[0]}:{addr[1]}",
                daemon=True,
            )
            t.start()

    def close(self):
        self._running = False
        if self._sock is not None:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass  # already disconnected
            self._sock.close()
            logger.info("Server socket closed")


def run_server(config: Optional[ServerConfig] = None,
               machine: Optional[MachineConfig] = None):
    """Run the session server until interrupted."""
    server = SessionServer(config, machine)
    server.bind()
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.close()
