"""Load generator that floods an echo server over many connections."""

from __future__ import annotations

import argparse
import random
import selectors
import socket
import sys
from dataclasses import dataclass
from typing import Optional, Sequence

N_BATCHES = 128
BATCH_SIZE = 16384
RECV_SIZE = 2048
MAX_EVENTS = 512
# The generator picks among the first 25 letters only.
ALPHABET = "abcdefghijklmnopqrstuvwxy"


@dataclass(frozen=True)
class StressOptions:
    """Target server and number of parallel connections."""

    host: str = "127.0.0.1"
    port: int = 5430
    connections: int = 16


def make_batches(n_batches: int, batch_size: int, rng: random.Random) -> list[bytes]:
    """Build ``n_batches`` random lowercase payloads of ``batch_size`` bytes."""
    return [
        "".join(rng.choices(ALPHABET, k=batch_size)).encode("ascii")
        for _ in range(n_batches)
    ]


def parse_args(argv: Optional[Sequence[str]]) -> StressOptions:
    """Parse ``-c``, ``-p`` and ``-n`` options."""
    defaults = StressOptions()
    parser = argparse.ArgumentParser(
        prog="e46_stress",
        usage="e46_stress -c <srv_ip> -p <srv_port>",
    )
    parser.add_argument("-c", dest="host", default=defaults.host)
    parser.add_argument("-p", dest="port", type=int, default=defaults.port)
    parser.add_argument("-n", dest="connections", type=int, default=defaults.connections)
    args = parser.parse_args(argv)
    return StressOptions(host=args.host, port=args.port, connections=args.connections)


class StressClient:
    """Keeps many connections busy sending batches and reading echoes."""

    def __init__(self, options: StressOptions, batches: Sequence[bytes]) -> None:
        if not batches:
            raise ValueError("at least one batch is required")
        self.options = options
        self.batches = list(batches)
        self.sent = 0
        self.received = 0
        self._selector = selectors.DefaultSelector()
        self._sockets: list[socket.socket] = []

    @property
    def position(self) -> int:
        """Running count of bytes moved in either direction."""
        return self.sent + self.received

    @property
    def connections(self) -> int:
        """Number of open connections."""
        return len(self._sockets)

    def connect(self) -> None:
        """Open every connection; raises ``OSError`` on the first failure."""
        target = (self.options.host, self.options.port)
        for _ in range(self.options.connections):
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM, socket.IPPROTO_TCP)
            try:
                sock.connect(target)
                sock.setblocking(False)
                self._selector.register(
                    sock, selectors.EVENT_READ | selectors.EVENT_WRITE
                )
            except BaseException:
                sock.close()
                raise
            self._sockets.append(sock)
            print(
                f"Client {sock.fileno()} connected to "
                f"{self.options.host}:{self.options.port}"
            )

    def poll_once(self, timeout: Optional[float]) -> int:
        """Service ready connections once; returns the number of events."""
        if not self._sockets:
            return 0
        events = self._selector.select(timeout)[:MAX_EVENTS]
        for key, mask in events:
            sock = key.fileobj
            if mask & selectors.EVENT_READ and not self._read(sock):
                continue
            if mask & selectors.EVENT_WRITE:
                self._write(sock)
        return len(events)

    def run(self) -> None:
        """Keep the load going while any connection stays open."""
        while self._sockets:
            self.poll_once(None)

    def close(self) -> None:
        """Close every connection."""
        for sock in list(self._sockets):
            self._drop(sock)
        self._selector.close()

    def _drop(self, sock: socket.socket) -> None:
        try:
            self._selector.unregister(sock)
        except (KeyError, ValueError):
            pass
        if sock in self._sockets:
            self._sockets.remove(sock)
        sock.close()

    def _read(self, sock: socket.socket) -> bool:
        try:
            data = sock.recv(RECV_SIZE)
        except BlockingIOError:
            return True
        except OSError:
            self._drop(sock)
            return False
        if not data:
            self._drop(sock)
            return False
        self.received += len(data)
        return True

    def _write(self, sock: socket.socket) -> None:
        batch = self.batches[self.position % len(self.batches)]
        try:
            self.sent += sock.send(batch)
        except BlockingIOError:
            pass
        except OSError:
            self._drop(sock)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Connect to the server and generate load until interrupted."""
    options = parse_args(argv)
    print(
        f"Connecting to {options.host}:{options.port}, "
        f"n_connections: {options.connections}"
    )
    batches = make_batches(N_BATCHES, BATCH_SIZE, random.Random())
    client = StressClient(options, batches)
    try:
        client.connect()
        client.run()
    except KeyboardInterrupt:
        return 0
    except OSError as exc:
        print(f"Cannot connect client socket. err: {exc.errno}({exc.strerror})", file=sys.stderr)
        return 1
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())