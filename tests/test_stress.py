import random
import socket
import time

import pytest

from echoloop.server import EchoServer, ServerConfig
from echoloop.stress import (
    ALPHABET,
    StressClient,
    StressOptions,
    main,
    make_batches,
    parse_args,
)


def _free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_make_batches_shape():
    batches = make_batches(4, 100, random.Random(1))
    assert len(batches) == 4
    assert all(len(batch) == 100 for batch in batches)


def test_make_batches_uses_alphabet_only():
    batches = make_batches(3, 2000, random.Random(7))
    allowed = set(ALPHABET.encode("ascii"))
    assert all(set(batch) <= allowed for batch in batches)
    assert ord("z") not in set(b"".join(batches))


def test_make_batches_deterministic_for_seed():
    first = make_batches(2, 50, random.Random(3))
    second = make_batches(2, 50, random.Random(3))
    assert len(first) == 2
    assert all(len(batch) == 50 for batch in first)
    assert first == second
    assert first[0] != first[1]
    assert len(set(b"".join(first))) > 1


def test_parse_args_defaults():
    assert parse_args([]) == StressOptions(host="127.0.0.1", port=5430, connections=16)


def test_parse_args_values():
    options = parse_args(["-c", "10.0.0.1", "-p", "7000", "-n", "4"])
    assert (options.host, options.port, options.connections) == ("10.0.0.1", 7000, 4)


def test_parse_args_help_exits_zero(capsys):
    with pytest.raises(SystemExit) as info:
        parse_args(["-h"])
    assert info.value.code == 0
    assert "usage: e46_stress -c <srv_ip> -p <srv_port>" in capsys.readouterr().out


def test_empty_batches_rejected():
    with pytest.raises(ValueError):
        StressClient(StressOptions(), [])


def test_connect_refused():
    options = StressOptions(host="127.0.0.1", port=_free_port(), connections=1)
    client = StressClient(options, [b"abc"])
    try:
        with pytest.raises(OSError):
            client.connect()
        assert client.connections == 0
    finally:
        client.close()


def test_main_reports_connect_failure(capsys):
    assert main(["-c", "127.0.0.1", "-p", str(_free_port()), "-n", "1"]) == 1
    assert "Cannot connect client socket" in capsys.readouterr().err


def test_load_against_echo_server(capsys):
    with EchoServer(ServerConfig(host="127.0.0.1", port=0)) as server:
        options = StressOptions(host="127.0.0.1", port=server.address[1], connections=3)
        client = StressClient(options, make_batches(4, 256, random.Random(5)))
        try:
            client.connect()
            assert client.connections == 3
            deadline = time.monotonic() + 10
            while client.received == 0 and time.monotonic() < deadline:
                client.poll_once(0.02)
                server.poll_once(0.02)
            assert client.sent > 0
            assert client.received > 0
            assert client.position == client.sent + client.received
        finally:
            client.close()
        assert client.connections == 0
    assert "connected to 127.0.0.1:" in capsys.readouterr().out


def test_run_ends_when_server_goes_away():
    server = EchoServer(ServerConfig(host="127.0.0.1", port=0))
    server.start()
    options = StressOptions(host="127.0.0.1", port=server.address[1], connections=2)
    client = StressClient(options, [b"x" * 64])
    try:
        client.connect()
        deadline = time.monotonic() + 5
        while server.connections < 2 and time.monotonic() < deadline:
            server.poll_once(0.05)
        server.close()
        client.run()
        assert client.connections == 0
    finally:
        client.close()
        server.close()