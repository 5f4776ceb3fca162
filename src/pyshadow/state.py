"""Accumulated telemetry and output state for a supervised run."""

from collections.abc import Sequence
from typing import Generic, TypeVar, overload

from pyshadow.models import DashboardState, ProcessSession, RunStatus, TelemetrySample

T = TypeVar("T")


class FrozenView(Sequence[T], Generic[T]):
    """
    Read-only view over the first ``length`` items of an append-only list.

    Items are never removed or replaced in the backing list, so the prefix a
    view covers can not change after the view is created.
    """

    __slots__ = ("_items", "_length")

    def __init__(self, items: list[T], length: int) -> None:
        self._items = items
        self._length = length

    def __len__(self) -> int:
        return self._length

    @overload
    def __getitem__(self, index: int) -> T: ...

    @overload
    def __getitem__(self, index: slice) -> list[T]: ...

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._items[i] for i in range(*index.indices(self._length))]
        if index < 0:
            index += self._length
        if not 0 <= index < self._length:
            raise IndexError("view index out of range")
        return self._items[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Sequence) and not isinstance(other, str):
            return len(self) == len(other) and all(a == b for a, b in zip(self, other))
        return NotImplemented

    def __repr__(self) -> str:
        return f"FrozenView({self[:]!r})"


class TelemetryStore:
    """Append-only time series of telemetry samples."""

    def __init__(self) -> None:
        self._samples: list[TelemetrySample] = []

    def __len__(self) -> int:
        return len(self._samples)

    def append(self, sample: TelemetrySample) -> None:
        """Append a sample. Callers keep elapsed time increasing."""
        self._samples.append(sample)

    def snapshot(self) -> FrozenView[TelemetrySample]:
        """Return an immutable view of the samples recorded so far."""
        return FrozenView(self._samples, len(self._samples))


class OutputLog:
    """Append-only log of text lines from one output stream."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lines: list[str] = []

    def __len__(self) -> int:
        return len(self._lines)

    def append(self, line: str) -> None:
        """Append one line (without its terminator)."""
        self._lines.append(line)

    def snapshot(self) -> FrozenView[str]:
        """Return an immutable view of the lines recorded so far."""
        return FrozenView(self._lines, len(self._lines))


class Dashboard:
    """
    Mutable state of one run, owned by the supervisor.

    Combines the session, the telemetry store, both output logs and the
    static facts captured at startup. ``snapshot()`` produces the
    DashboardState handed to the renderer.
    """

    def __init__(
        self,
        session: ProcessSession,
        total_memory: int,
        cpu_count: int,
        interval_ms: int,
    ) -> None:
        self.session = session
        self.total_memory = total_memory
        self.cpu_count = cpu_count
        self.interval_ms = interval_ms
        self.telemetry = TelemetryStore()
        self.stdout = OutputLog("stdout")
        self.stderr = OutputLog("stderr")
        self.status = RunStatus.SPAWNING
        self.exit_code: int | None = None

    def snapshot(self) -> DashboardState:
        """Build a read-only view of the current state."""
        return DashboardState(
            session=self.session,
            samples=self.telemetry.snapshot(),
            stdout=self.stdout.snapshot(),
            stderr=self.stderr.snapshot(),
            total_memory=self.total_memory,
            cpu_count=self.cpu_count,
            interval_ms=self.interval_ms,
            status=self.status,
            exit_code=self.exit_code,
        )
