"""Tests for the netprobe command line entry point."""

import logging
import logging.handlers
import socket
import subprocess
import sys
import threading
from pathlib import Path

import pytest

import netprobe
from common.config import Mode, ProbeConfig

SCRIPT = Path(__file__).resolve().parent.parent / "netprobe.py"


@pytest.mark.unit
class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        args = netprobe.build_parser().parse_args([])
        config = ProbeConfig.from_args(args)
        assert config.mode == Mode.SERVER
        assert config.listen == ":5353"
        assert config.interval_s == 10.0
        assert config.reconnect_delay_s == 30.0
        assert config.verbosity == 0

    def test_short_flags(self) -> None:
        args = netprobe.build_parser().parse_args(
            ["-m", "both", "-l", ":6000", "-r", "a:1,b:2", "-i", "2.5", "-vv"]
        )
        config = ProbeConfig.from_args(args)
        assert config.mode == Mode.BOTH
        assert config.remotes == ["a:1", "b:2"]
        assert config.interval_s == 2.5
        assert config.verbosity == 2

    def test_invalid_config_exits_with_usage(self) -> None:
        with pytest.raises(SystemExit) as excinfo:
            netprobe.main(["--mode", "client"])
        assert excinfo.value.code == netprobe.ExitCode.USAGE

    def test_help(self) -> None:
        result = subprocess.run(
            [sys.executable, str(SCRIPT), "--help"],
            capture_output=True,
            text=True,
            cwd=SCRIPT.parent,
            timeout=30,
        )
        assert result.returncode == 0
        assert "--remotes" in result.stdout
        assert "NETPROBE_SERVER_TOKEN" in result.stdout


@pytest.mark.unit
class TestConfigureLogging:
    """Tests for configure_logging()."""

    def test_file_handler(self, tmp_path: Path) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            netprobe.configure_logging(verbosity=1, log_file=str(tmp_path / "probe.log"))
            assert root.level == logging.DEBUG
            assert any(
                isinstance(h, logging.handlers.TimedRotatingFileHandler) for h in root.handlers
            )
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_trace_level(self) -> None:
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            netprobe.configure_logging(verbosity=2)
            assert root.level == netprobe.TRACE
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


@pytest.mark.integration
class TestRun:
    """Tests for run()."""

    def test_listen_failure(self) -> None:
        with socket.socket() as busy:
            busy.bind(("127.0.0.1", 0))
            busy.listen()
            port = busy.getsockname()[1]
            config = ProbeConfig(mode=Mode.SERVER, listen=f"127.0.0.1:{port}")
            assert netprobe.run(config, threading.Event()) == netprobe.ExitCode.LISTEN_FAILED

    def test_stops_when_signalled(self) -> None:
        with socket.socket() as s:
            s.bind(("127.0.0.1", 0))
            free_port = s.getsockname()[1]
        config = ProbeConfig(
            mode=Mode.BOTH,
            listen="127.0.0.1:0",
            remotes=[f"127.0.0.1:{free_port}"],
            reconnect_delay_s=0.1,
        )
        stop = threading.Event()
        threading.Timer(0.3, stop.set).start()
        assert netprobe.run(config, stop) == netprobe.ExitCode.SUCCESS
