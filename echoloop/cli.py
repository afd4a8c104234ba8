"""Command line entry point for the echo server."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from echoloop.server import EchoServer, ServerConfig, ServerError


def build_config(argv: Optional[Sequence[str]]) -> ServerConfig:
    """Turn command line arguments into a server configuration."""
    defaults = ServerConfig()
    parser = argparse.ArgumentParser(prog="echoloop", description="TCP echo server")
    parser.add_argument("--host", default=defaults.host, help="address to listen on")
    parser.add_argument("--port", type=int, default=defaults.port, help="port to listen on")
    parser.add_argument(
        "--print",
        dest="print_data",
        action="store_true",
        help="print every received chunk",
    )
    args = parser.parse_args(argv)
    return ServerConfig(host=args.host, port=args.port, print_data=args.print_data)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the echo server until interrupted."""
    config = build_config(argv)
    server = EchoServer(config)
    try:
        server.start()
        server.serve_forever()
    except ServerError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())