"""Tests for the accumulated run state."""

import pytest

from pyshadow.models import ProcessSession, RunStatus, TelemetrySample
from pyshadow.state import Dashboard, FrozenView, OutputLog, TelemetryStore


def make_sample(elapsed: float) -> TelemetrySample:
    return TelemetrySample(
        elapsed_seconds=elapsed,
        cpu_percent=1.0,
        memory_bytes=4096,
        disk_read_total=0,
        disk_write_total=0,
    )


class TestFrozenView:
    """Tests for the length-frozen sequence view."""

    def test_view_hides_later_appends(self):
        """Test items appended after the view was taken are invisible."""
        items = ["a", "b"]
        view = FrozenView(items, len(items))
        items.append("c")

        assert len(view) == 2
        assert list(view) == ["a", "b"]
        assert "c" not in view

    def test_indexing(self):
        """Test positive, negative and out-of-range indexing."""
        items = ["a", "b", "c"]
        view = FrozenView(items, 2)

        assert view[0] == "a"
        assert view[-1] == "b"
        with pytest.raises(IndexError):
            view[2]
        with pytest.raises(IndexError):
            view[-3]

    def test_slicing(self):
        """Test slices stay within the frozen length."""
        items = ["a", "b", "c", "d"]
        view = FrozenView(items, 3)

        assert view[1:] == ["b", "c"]
        assert view[:10] == ["a", "b", "c"]
        assert view[::-1] == ["c", "b", "a"]

    def test_equality_with_lists(self):
        """Test a view compares equal to a list with the same items."""
        view = FrozenView(["a", "b"], 2)

        assert view == ["a", "b"]
        assert view != ["a"]
        assert view != "ab"


class TestOutputLog:
    """Tests for OutputLog."""

    def test_append_keeps_order(self):
        """Test lines are kept in append order."""
        log = OutputLog("stdout")
        for line in ["first", "second", "third"]:
            log.append(line)

        assert len(log) == 3
        assert log.snapshot() == ["first", "second", "third"]
        assert log.name == "stdout"

    def test_snapshot_is_stable(self):
        """Test a snapshot does not change after further appends."""
        log = OutputLog("stderr")
        log.append("one")
        snapshot = log.snapshot()
        log.append("two")

        assert snapshot == ["one"]
        assert log.snapshot() == ["one", "two"]

    def test_empty_lines_are_kept(self):
        """Test blank lines count as lines."""
        log = OutputLog("stdout")
        log.append("")
        log.append("")

        assert len(log.snapshot()) == 2


class TestTelemetryStore:
    """Tests for TelemetryStore."""

    def test_append_and_snapshot(self):
        """Test samples are stored in order."""
        store = TelemetryStore()
        store.append(make_sample(0.3))
        store.append(make_sample(0.6))
        snapshot = store.snapshot()
        store.append(make_sample(0.9))

        assert [s.elapsed_seconds for s in snapshot] == [0.3, 0.6]
        assert len(store) == 3


class TestDashboard:
    """Tests for the Dashboard state builder."""

    def test_snapshot_combines_state(self):
        """Test snapshot carries session, logs, samples and static facts."""
        session = ProcessSession(pid=42, command=("ls",), started_at=0.0)
        dashboard = Dashboard(session, total_memory=8 * 1024**3, cpu_count=8, interval_ms=300)
        dashboard.status = RunStatus.RUNNING
        dashboard.stdout.append("out")
        dashboard.stderr.append("err")
        dashboard.telemetry.append(make_sample(0.3))

        state = dashboard.snapshot()

        assert state.session is session
        assert state.stdout == ["out"]
        assert state.stderr == ["err"]
        assert len(state.samples) == 1
        assert state.total_memory == 8 * 1024**3
        assert state.cpu_count == 8
        assert state.interval_ms == 300
        assert state.status == RunStatus.RUNNING

    def test_new_dashboard_is_spawning(self):
        """Test the initial lifecycle state."""
        session = ProcessSession(pid=42, command=("ls",), started_at=0.0)
        dashboard = Dashboard(session, total_memory=1, cpu_count=1, interval_ms=300)

        assert dashboard.status == RunStatus.SPAWNING
        assert dashboard.exit_code is None
