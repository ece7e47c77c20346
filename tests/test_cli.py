"""
Command Line Tests
==================

Startup failure paths only; the happy paths need a window or run forever.
"""

import socket

import pytest

from framecast.cli import build_parser, main


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """Run from an empty directory with no environment overrides."""
    monkeypatch.chdir(tmp_path)
    for name in ("FRAMECAST_PORT", "FRAMECAST_SERVERS", "FRAMECAST_HOST", "FRAMECAST_HEADLESS"):
        monkeypatch.delenv(name, raising=False)


def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


class TestParser:

    def test_produce_servers_repeatable(self):
        args = build_parser().parse_args(
            ["produce", "--server", "a:1", "--server", "b:2", "--fps", "30"]
        )
        assert args.server == ["a:1", "b:2"]
        assert args.fps == 30.0

    def test_subcommand_required(self):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2

    def test_bad_server_address(self):
        with pytest.raises(SystemExit) as exc:
            main(["produce", "--headless", "--server", "no-port"])
        assert exc.value.code == 2


class TestStartupFailures:

    def test_receive_port_in_use(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen(1)
            port = busy.getsockname()[1]
            assert main(["receive", "--headless", "--host", "127.0.0.1", "--port", str(port)]) == 1

    def test_produce_no_receiver(self):
        code = main(["produce", "--headless", "--server", f"127.0.0.1:{closed_port()}"])
        assert code == 1


class TestOverrideValidation:
    """Command-line values go through the same bounds as the config file."""

    def test_port_out_of_range(self):
        with pytest.raises(SystemExit) as exc:
            main(["receive", "--headless", "--host", "127.0.0.1", "--port", "70000"])
        assert exc.value.code == 2

    def test_zero_fps(self):
        with pytest.raises(SystemExit) as exc:
            main(["produce", "--headless", "--server", "127.0.0.1:1", "--fps", "0"])
        assert exc.value.code == 2

    def test_frame_larger_than_capacity(self):
        with pytest.raises(SystemExit) as exc:
            main([
                "produce", "--headless", "--server", "127.0.0.1:1",
                "--width", "2000", "--height", "2000",
            ])
        assert exc.value.code == 2
