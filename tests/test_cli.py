import pytest

from echoloop.cli import build_config, main


def test_defaults_match_source():
    config = build_config([])
    assert config.host == "0.0.0.0"
    assert config.port == 5430
    assert config.print_data is False


def test_options_are_applied():
    config = build_config(["--host", "127.0.0.1", "--port", "6001", "--print"])
    assert (config.host, config.port, config.print_data) == ("127.0.0.1", 6001, True)


def test_bad_port_rejected():
    with pytest.raises(SystemExit) as info:
        build_config(["--port", "abc"])
    assert info.value.code == 2


def test_main_reports_bind_failure(capsys):
    assert main(["--host", "203.0.113.1", "--port", "0"]) == 1
    assert "Could not bind" in capsys.readouterr().err