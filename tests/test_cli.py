"""Tests for the pyshadow entry point."""

import logging
import sys

import pytest

import pyshadow.app as app_module
from pyshadow.app import main
from pyshadow.models import (
    DashboardState,
    ProcessSession,
    RunOutcome,
    RunStatus,
    SessionResult,
)


def make_result(outcome: RunOutcome, exit_code: int | None) -> SessionResult:
    state = DashboardState(
        session=ProcessSession(pid=1, command=("true",), started_at=0.0),
        samples=[],
        stdout=[],
        stderr=[],
        total_memory=1,
        cpu_count=1,
        interval_ms=300,
        status=RunStatus.EXITED if outcome is RunOutcome.EXITED else RunStatus.CANCELLED,
        exit_code=exit_code,
    )
    return SessionResult(outcome, exit_code, state)


@pytest.fixture
def no_app(monkeypatch):
    """Fail the test if the dashboard app is ever constructed."""

    def forbidden(*args, **kwargs):
        raise AssertionError("the dashboard must not start")

    monkeypatch.setattr(app_module, "ShadowApp", forbidden)


def test_no_command_prints_usage(capsys):
    """Test running without a command prints usage and exits 2."""
    assert main([]) == 2
    assert "usage: pyshadow <command>" in capsys.readouterr().err


def test_nonexistent_command_never_starts_dashboard(capsys, no_app):
    """Test a launch failure is reported before the terminal is touched."""
    assert main(["definitely-not-a-command-pyshadow"]) == 1

    err = capsys.readouterr().err
    assert err.startswith("pyshadow: error:")
    assert "definitely-not-a-command-pyshadow" in err


def test_invalid_config_is_reported(capsys, monkeypatch, no_app):
    """Test a bad environment setting fails before launching."""
    monkeypatch.setenv("PYSHADOW_INTERVAL_MS", "soon")

    assert main(["true"]) == 1
    assert "PYSHADOW_INTERVAL_MS" in capsys.readouterr().err


def test_exit_code_is_printed(capsys, monkeypatch):
    """Test the child's exit code is printed once the dashboard closes."""
    seen = []

    async def fake_run(command, settings):
        seen.append(command)
        return make_result(RunOutcome.EXITED, 7)

    monkeypatch.setattr(app_module, "run_dashboard", fake_run)

    assert main(["make", "-j8"]) == 0
    assert seen == [["make", "-j8"]]
    assert capsys.readouterr().out == "Process exited with status code: 7\n"


def test_cancel_prints_nothing(capsys, monkeypatch):
    """Test a cancelled run exits quietly."""

    async def fake_run(command, settings):
        return make_result(RunOutcome.CANCELLED, None)

    monkeypatch.setattr(app_module, "run_dashboard", fake_run)

    assert main(["sleep", "100"]) == 0
    assert capsys.readouterr().out == ""


def test_log_file(tmp_path, monkeypatch):
    """Test PYSHADOW_LOG_FILE receives the package's log records."""
    log_file = tmp_path / "pyshadow.log"
    monkeypatch.setenv("PYSHADOW_LOG_FILE", str(log_file))
    package_logger = logging.getLogger("pyshadow")
    before = list(package_logger.handlers)

    try:
        assert main(["definitely-not-a-command-pyshadow"]) == 1
    finally:
        for handler in package_logger.handlers[:]:
            if handler not in before:
                package_logger.removeHandler(handler)
                handler.close()
        package_logger.setLevel(logging.NOTSET)

    assert "definitely-not-a-command-pyshadow" in log_file.read_text()


def test_terminal_failure_is_reported(capsys, monkeypatch):
    """Test an OSError from the terminal driver exits 1 with a terminal error."""
    launched = []
    real_launch = app_module.launch

    async def recording_launch(command, stream_limit):
        child = await real_launch(command, stream_limit=stream_limit)
        launched.append(child)
        return child

    async def broken_terminal(self, *args, **kwargs):
        await launched[0].process.wait()
        raise OSError("no tty")

    monkeypatch.setattr(app_module, "launch", recording_launch)
    monkeypatch.setattr(app_module.ShadowApp, "run_async", broken_terminal)

    assert main([sys.executable, "-c", "pass"]) == 1

    assert launched[0].process.returncode == 0
    captured = capsys.readouterr()
    assert captured.err.startswith("pyshadow: error: terminal error")
    assert "no tty" in captured.err
    assert captured.out == ""
