"""Single-threaded, readiness-driven TCP echo server."""

from __future__ import annotations

import selectors
import socket
import sys
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

LISTEN_BACKLOG = 256
MAX_EVENTS = 256
ECHO_BUF_SIZE = 65536


class ServerError(Exception):
    """Raised when the server cannot be set up or used."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage


@dataclass(frozen=True)
class ServerConfig:
    """Where the server listens and whether it prints what it echoes."""

    host: str = "0.0.0.0"
    port: int = 5430
    print_data: bool = False


def format_address(address: Tuple[Any, ...]) -> str:
    """Render a socket address tuple as ``host:port``."""
    host, port = address[0], address[1]
    return f"{host}:{port}"


def _describe(exc: OSError) -> str:
    return f"err: {exc.errno}({exc.strerror})"


class EchoServer:
    """Accepts TCP clients and sends back every byte they send."""

    def __init__(self, config: ServerConfig) -> None:
        self.config = config
        self._listener: Optional[socket.socket] = None
        self._selector: Optional[selectors.BaseSelector] = None
        self._clients: dict[int, socket.socket] = {}

    @property
    def address(self) -> Tuple[Any, ...]:
        """The address the listening socket is bound to."""
        if self._listener is None:
            raise ServerError("server is not started", "start")
        return self._listener.getsockname()

    @property
    def connections(self) -> int:
        """Number of clients currently connected."""
        return len(self._clients)

    @staticmethod
    def _attempt(stage: str, message: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except OSError as exc:
            raise ServerError(f"{message}. {_describe(exc)}", stage) from exc

    def start(self) -> None:
        """Bind, listen and prepare the event loop."""
        if self._listener is not None:
            raise ServerError("server is already started", "start")
        sock = self._attempt(
            "socket",
            "Cannot create server socket",
            socket.socket,
            socket.AF_INET,
            socket.SOCK_STREAM,
            socket.IPPROTO_TCP,
        )
        selector: Optional[selectors.BaseSelector] = None
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._attempt(
                "bind", "Could not bind", sock.bind, (self.config.host, self.config.port)
            )
            self._attempt("listen", "Could not listen", sock.listen, LISTEN_BACKLOG)
            self._attempt(
                "nonblocking",
                "Could not make server socket non-blocking",
                sock.setblocking,
                False,
            )
            selector = self._attempt(
                "poll", "Could not create poll structure", selectors.DefaultSelector
            )
            self._attempt(
                "register",
                "Could not register listener for server socket",
                selector.register,
                sock,
                selectors.EVENT_READ,
            )
        except ServerError:
            if selector is not None:
                selector.close()
            sock.close()
            raise
        self._listener = sock
        self._selector = selector
        print(f"Listening {format_address(sock.getsockname())}")

    def poll_once(self, timeout: Optional[float]) -> int:
        """Wait up to ``timeout`` seconds for activity and handle it.

        Returns the number of events handled.
        """
        if self._selector is None or self._listener is None:
            raise ServerError("server is not started", "start")
        events = self._selector.select(timeout)[:MAX_EVENTS]
        for key, _mask in events:
            if key.fileobj is self._listener:
                self._accept()
            else:
                self._echo(key.fileobj)
        return len(events)

    def serve_forever(self) -> None:
        """Handle events until the process is interrupted."""
        if self._selector is None:
            self.start()
        while True:
            self.poll_once(None)

    def close(self) -> None:
        """Close every client, the listener and the event loop."""
        for sock in list(self._clients.values()):
            self._drop(sock)
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None

    def __enter__(self) -> "EchoServer":
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _accept(self) -> None:
        assert self._listener is not None and self._selector is not None
        try:
            client, client_addr = self._listener.accept()
        except BlockingIOError:
            return
        except OSError as exc:
            print(f"Cannot accept client. {_describe(exc)}", file=sys.stderr)
            return
        print(f"Accepted new client. addr: {format_address(client_addr)}")
        fd = client.fileno()
        try:
            client.setblocking(False)
        except OSError as exc:
            print(
                f"Could not make client socket non-blocking. fd: {fd}, {_describe(exc)}",
                file=sys.stderr,
            )
            client.close()
            return
        try:
            self._selector.register(client, selectors.EVENT_READ)
        except (OSError, ValueError) as exc:
            print(
                f"Could not register read event for client. fd: {fd}, err: {exc}",
                file=sys.stderr,
            )
            client.close()
            return
        self._clients[fd] = client

    def _drop(self, sock: socket.socket) -> None:
        fd = sock.fileno()
        self._clients.pop(fd, None)
        if self._selector is not None:
            try:
                self._selector.unregister(sock)
            except (KeyError, ValueError):
                pass
        sock.close()

    def _echo(self, sock: socket.socket) -> None:
        fd = sock.fileno()
        # Peek first so that nothing is lost if the echo cannot be sent yet.
        try:
            data = sock.recv(ECHO_BUF_SIZE - 1, socket.MSG_PEEK)
        except BlockingIOError:
            return
        except OSError as exc:
            print(f"ERR! Closing socket. fd: {fd}, {_describe(exc)}", file=sys.stderr)
            self._drop(sock)
            return

        if not data:
            print(f"Peer closed the connection. fd: {fd}")
            self._drop(sock)
            return

        if self.config.print_data:
            print(f"fd: {fd} => {data.decode('utf-8', errors='replace')}", end="")

        try:
            nwritten = sock.send(data)
        except BlockingIOError:
            return
        except OSError as exc:
            print(f"ERR! Closing socket. fd: {fd}, {_describe(exc)}", file=sys.stderr)
            self._drop(sock)
            return
        if nwritten <= 0:
            return

        try:
            drained = sock.recv(nwritten)
        except OSError as exc:
            print(
                f"ERR! Echoed back {nwritten} bytes successfully but could not drain. "
                f"fd: {fd}, {_describe(exc)}",
                file=sys.stderr,
            )
            self._drop(sock)
            return
        if not drained:
            print(
                f"Echoed back and client closed. Looks strange. fd: {fd}",
                file=sys.stderr,
            )
            self._drop(sock)
        elif len(drained) != nwritten:
            print(
                "ERR! Could not drain same amount of bytes echoed back. "
                f"fd: {fd}, nwritten: {nwritten}, ndrained: {len(drained)}",
                file=sys.stderr,
            )