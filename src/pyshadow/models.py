"""Data models for pyshadow."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class RunStatus(Enum):
    """Lifecycle of one supervised run."""

    SPAWNING = "spawning"
    RUNNING = "running"
    DRAINING = "draining"
    EXITED = "exited"
    CANCELLED = "cancelled"
    FAILED = "failed"


class RunOutcome(Enum):
    """How a run that did not fail came to an end."""

    EXITED = "exited"
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class ProcessSession:
    """Identity of the launched child command."""

    pid: int
    command: tuple[str, ...]
    started_at: float  # Event loop clock, seconds

    @property
    def command_line(self) -> str:
        """Space-joined command line."""
        return " ".join(self.command)


@dataclass(slots=True, frozen=True)
class ProcessReading:
    """Raw figures returned by the telemetry provider for one lookup."""

    cpu_percent: float  # 0.0 - 100.0 * core_count
    memory_bytes: int  # Resident set size
    disk_read_total: int  # Bytes since process start
    disk_write_total: int


@dataclass(slots=True, frozen=True)
class TelemetrySample:
    """Immutable telemetry reading taken at one timer tick."""

    elapsed_seconds: float
    cpu_percent: float
    memory_bytes: int
    disk_read_total: int
    disk_write_total: int


def rate_per_second(earlier_total: int, later_total: int, interval_ms: int) -> int:
    """Convert the growth of a byte counter over one interval to bytes/second."""
    if interval_ms <= 0:
        return 0
    return (later_total - earlier_total) * 1000 // interval_ms


@dataclass(slots=True, frozen=True)
class DashboardState:
    """
    Read-only view of everything the dashboard shows for one frame.

    The sequences are length-frozen views: lines or samples appended after
    the snapshot was taken are not visible through it.
    """

    session: ProcessSession
    samples: Sequence[TelemetrySample]
    stdout: Sequence[str]
    stderr: Sequence[str]
    total_memory: int
    cpu_count: int
    interval_ms: int
    status: RunStatus = RunStatus.RUNNING
    exit_code: int | None = None

    @property
    def latest(self) -> TelemetrySample | None:
        """Most recent sample, if any tick has fired yet."""
        return self.samples[-1] if self.samples else None

    @property
    def elapsed_seconds(self) -> float:
        """Elapsed time of the latest sample (0.0 before the first tick)."""
        latest = self.latest
        return latest.elapsed_seconds if latest is not None else 0.0

    @property
    def cpu_upper_bound(self) -> float:
        """Largest CPU percentage the child can reach (100% per logical core)."""
        return 100.0 * self.cpu_count

    @property
    def disk_read_rate(self) -> int:
        """Bytes read per second over the last interval."""
        return self._rate("disk_read_total")

    @property
    def disk_write_rate(self) -> int:
        """Bytes written per second over the last interval."""
        return self._rate("disk_write_total")

    def _rate(self, field: str) -> int:
        if not self.samples:
            return 0
        later = getattr(self.samples[-1], field)
        # The child starts with no I/O, so a lone sample is measured from zero.
        earlier = getattr(self.samples[-2], field) if len(self.samples) > 1 else 0
        return rate_per_second(earlier, later, self.interval_ms)


@dataclass(slots=True, frozen=True)
class SessionResult:
    """Final result of a supervised run."""

    outcome: RunOutcome
    exit_code: int | None
    state: DashboardState
