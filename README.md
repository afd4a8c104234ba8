# echoloop

echoloop is a TCP echo server that runs on one thread and does not block. It comes with a stress client to put load on it.

The server accepts any number of IPv4 clients on one event loop. It sends back every byte it receives. It first peeks at the incoming data and sends it back. Only then does it read the number of bytes that were sent out of the receive buffer. Data is not lost when a client reads slowly.

## Installation

```
pip install .
```

## Running the server

```
echoloop
```

By default the server listens on `0.0.0.0:5430`. It prints a line when it starts listening, a line for each client it accepts, and a line when a peer closes its connection. Errors go to standard error. Press Ctrl+C to stop it.

| Option | Meaning | Default |
|--------|---------|---------|
| `--host` | address to listen on | `0.0.0.0` |
| `--port` | port to listen on | `5430` |
| `--print` | print every chunk received, with its file descriptor | off |

If the server cannot create, bind or register its listening socket, it prints the error and exits with status 1.

## Generating load

Start the server, then open a second terminal and run:

```
echoloop-stress -c 127.0.0.1 -p 5430 -n 16
```

| Option | Meaning | Default |
|--------|---------|---------|
| `-c` | server IP address | `127.0.0.1` |
| `-p` | server port | `5430` |
| `-n` | number of connections | `16` |
| `-h` | show help and exit | |

The client builds 128 blocks of 16384 random lowercase letters. Each connection sends one of these blocks whenever its socket can be written. It reads whatever the server echoes back and throws it away.

The client keeps running until it is interrupted or until every connection has closed. If a connection cannot be opened, it reports the error and exits with status 1.

## Using it from Python

```python
from echoloop.server import EchoServer, ServerConfig

config = ServerConfig(host="127.0.0.1", port=5430, print_data=False)
with EchoServer(config) as server:
    server.serve_forever()
```

- **Starting and closing.** Entering the `with` block calls `EchoServer.start()`, which binds and listens. Leaving the block calls `EchoServer.close()`, which closes every client and the listener. Calling `start()` a second time raises `ServerError`, as does any failure during setup. The `stage` attribute of the error names the step that failed.
- **Ports.** Use port `0` to let the system choose a port. Read the address actually bound from `EchoServer.address`. `EchoServer.connections` gives the number of clients that are connected.
- **Embedding in your own loop.** Call `EchoServer.poll_once(timeout)` instead of `serve_forever()`. It handles one round of events and returns how many it handled.
- **Addresses as text.** `format_address(address)` renders a socket address tuple as `host:port`.

The load generator in `echoloop.stress` can be driven the same way:

- `make_batches(n_batches, batch_size, rng)` builds the payloads from a `random.Random`.
- `parse_args(argv)` turns command-line arguments into a `StressOptions`.
- `StressClient(options, batches)` takes those options and payloads. It offers:
  - `connect()`
  - `poll_once(timeout)`
  - `run()`
  - `close()`
  - the counters `sent`, `received` and `connections`.