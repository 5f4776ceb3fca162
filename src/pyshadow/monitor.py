"""Process telemetry provider for pyshadow."""

import logging

import psutil

from pyshadow.errors import ProcessVanished, TelemetryLookupFailure
from pyshadow.models import ProcessReading

logger = logging.getLogger(__name__)


class ProcessProbe:
    """
    Telemetry provider for a single process, backed by psutil.

    Owns the psutil.Process handle for the whole run so CPU percentages are
    measured between consecutive samples. System-wide facts (total memory,
    logical CPU count) are captured once at construction.
    """

    def __init__(self, pid: int) -> None:
        """
        Initialize the ProcessProbe.

        Args:
            pid: Process ID of the supervised child.
        """
        self._pid = pid
        self._process: psutil.Process | None = None
        self.total_memory: int = psutil.virtual_memory().total
        self.cpu_count: int = psutil.cpu_count(logical=True) or 1
        try:
            # First call returns 0.0 and starts the measurement window.
            self._handle().cpu_percent(interval=None)
        except (psutil.NoSuchProcess, ProcessVanished):
            logger.debug("pid %d gone before the first sample", pid)

    @property
    def pid(self) -> int:
        """Process ID being sampled."""
        return self._pid

    def _handle(self) -> psutil.Process:
        if self._process is None:
            try:
                self._process = psutil.Process(self._pid)
            except psutil.NoSuchProcess as exc:
                raise ProcessVanished(f"process {self._pid} does not exist") from exc
        return self._process

    def sample(self) -> ProcessReading:
        """
        Read current CPU, memory and cumulative disk I/O for the process.

        Uses psutil's oneshot() context manager so the figures come from a
        single pass over the process' kernel accounting.

        Raises:
            ProcessVanished: The process exited (or is a zombie).
            TelemetryLookupFailure: The process could not be read.
        """
        process = self._handle()
        try:
            with process.oneshot():
                cpu_percent = process.cpu_percent(interval=None)
                memory_bytes = process.memory_info().rss
                read_total, write_total = self._disk_totals(process)
        except psutil.NoSuchProcess as exc:
            # ZombieProcess is a NoSuchProcess subclass
            raise ProcessVanished(f"process {self._pid} exited") from exc
        except psutil.Error as exc:
            raise TelemetryLookupFailure(f"cannot read process {self._pid}: {exc}") from exc

        return ProcessReading(
            cpu_percent=cpu_percent,
            memory_bytes=memory_bytes,
            disk_read_total=read_total,
            disk_write_total=write_total,
        )

    @staticmethod
    def _disk_totals(process: psutil.Process) -> tuple[int, int]:
        """Cumulative bytes read and written; zeros where the platform has no counters."""
        if not hasattr(process, "io_counters"):
            return 0, 0  # macOS
        counters = process.io_counters()
        return counters.read_bytes, counters.write_bytes
