"""
Event-multiplexing supervisor for one child process.

A single asyncio task waits on four sources (sampling timer, child exit,
stdout line, stderr line) and handles exactly one ready event per
iteration:

- timer: drain queued key presses, stop on the cancel key, otherwise
  sample the child and redraw
- exit: record the exit code and drain the remaining output
- stdout/stderr line: append it to the matching log and redraw

The supervisor is the only writer of the dashboard state, so no locking
is involved.
"""

import asyncio
import logging
import math
from collections import deque
from enum import Enum
from typing import Protocol

from pyshadow.config import DEFAULT_CANCEL_KEY, DEFAULT_INTERVAL
from pyshadow.errors import ProcessVanished, StreamReadFailure
from pyshadow.launcher import LaunchedProcess
from pyshadow.models import (
    DashboardState,
    ProcessReading,
    RunOutcome,
    RunStatus,
    SessionResult,
    TelemetrySample,
)
from pyshadow.monitor import ProcessProbe
from pyshadow.state import Dashboard, OutputLog

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    """Paints one frame from a dashboard snapshot. Must not mutate it."""

    def draw(self, state: DashboardState) -> None: ...


class TelemetryProvider(Protocol):
    """Reads CPU, memory and disk figures for the supervised process."""

    total_memory: int
    cpu_count: int

    def sample(self) -> ProcessReading: ...


class Source(Enum):
    """Event sources the supervisor waits on."""

    TIMER = "timer"
    EXIT = "exit"
    STDOUT = "stdout"
    STDERR = "stderr"


class KeyChannel:
    """
    Buffer of key presses from the terminal front end.

    The front end pushes keys as they arrive; the supervisor drains them
    without blocking at each tick, so presses between ticks are kept.
    """

    def __init__(self) -> None:
        self._keys: deque[str] = deque()

    def push(self, key: str) -> None:
        """Queue a key press."""
        self._keys.append(key)

    def drain(self) -> list[str]:
        """Remove and return every queued key press, oldest first."""
        keys = list(self._keys)
        self._keys.clear()
        return keys


class Supervisor:
    """
    Drives one supervised run to completion.

    Example:
        launched = await launch(["make", "-j8"])
        supervisor = Supervisor(launched, renderer)
        result = await supervisor.run()
    """

    def __init__(
        self,
        launched: LaunchedProcess,
        renderer: Renderer,
        probe: TelemetryProvider | None = None,
        *,
        interval: float = DEFAULT_INTERVAL,
        cancel_key: str = DEFAULT_CANCEL_KEY,
        keys: KeyChannel | None = None,
    ) -> None:
        """
        Initialize the Supervisor.

        Args:
            launched: The spawned child and its session.
            renderer: Receives a snapshot after every state change.
            probe: Telemetry provider; a ProcessProbe for the child by default.
            interval: Seconds between samples.
            cancel_key: Key that ends the run early, leaving the child running.
            keys: Key press buffer fed by the terminal front end.
        """
        self._launched = launched
        self._renderer = renderer
        self._probe = probe if probe is not None else ProcessProbe(launched.session.pid)
        self._interval = interval
        self._cancel_key = cancel_key
        self.keys = keys if keys is not None else KeyChannel()
        self.dashboard = Dashboard(
            session=launched.session,
            total_memory=self._probe.total_memory,
            cpu_count=self._probe.cpu_count,
            interval_ms=round(interval * 1000),
        )
        self._tasks: dict[Source, asyncio.Task] = {}
        self._logs = {Source.STDOUT: self.dashboard.stdout, Source.STDERR: self.dashboard.stderr}
        self._streams = {Source.STDOUT: launched.stdout, Source.STDERR: launched.stderr}
        self._deadline = 0.0
        self._turn = 0

    @property
    def status(self) -> RunStatus:
        """Current lifecycle state of the run."""
        return self.dashboard.status

    @property
    def interval(self) -> float:
        """Seconds between samples."""
        return self._interval

    async def run(self) -> SessionResult:
        """
        Run until the child exits or the cancel key is seen at a tick.

        Returns:
            SessionResult with the outcome, exit code and final state.

        Raises:
            StreamReadFailure: Reading stdout or stderr failed.
            TelemetryLookupFailure: The child could not be sampled.
            RenderFailure: The renderer failed to paint a frame.
        """
        loop = asyncio.get_running_loop()
        self.dashboard.status = RunStatus.RUNNING
        self._deadline = self.dashboard.session.started_at + self._interval
        try:
            self._arm(Source.TIMER)
            self._arm(Source.EXIT)
            self._arm(Source.STDOUT)
            self._arm(Source.STDERR)

            while True:
                source = await self._next_ready()
                task = self._tasks.pop(source)

                if source is Source.TIMER:
                    if self._cancel_requested():
                        self.dashboard.status = RunStatus.CANCELLED
                        logger.info("cancelled by user, pid %d left running", self.dashboard.session.pid)
                        return SessionResult(RunOutcome.CANCELLED, None, self.dashboard.snapshot())
                    self._sample(loop.time())
                    self._redraw()
                    self._advance_deadline(loop.time())
                    self._arm(Source.TIMER)

                elif source is Source.EXIT:
                    self.dashboard.exit_code = task.result()
                    logger.info("pid %d exited with code %d", self.dashboard.session.pid, self.dashboard.exit_code)
                    break

                else:
                    line = task.result()
                    if line is None:
                        logger.debug("%s reached end of data", source.value)
                        continue
                    self._logs[source].append(line)
                    self._redraw()
                    self._arm(source)

            self.dashboard.status = RunStatus.DRAINING
            self._cancel(Source.TIMER)
            await self._flush(Source.STDOUT)
            await self._flush(Source.STDERR)
            self.dashboard.status = RunStatus.EXITED
            return SessionResult(RunOutcome.EXITED, self.dashboard.exit_code, self.dashboard.snapshot())
        except Exception:
            self.dashboard.status = RunStatus.FAILED
            raise
        finally:
            await self._cancel_all()

    def _arm(self, source: Source) -> None:
        """Start waiting on a source."""
        if source is Source.TIMER:
            coro = self._tick()
        elif source is Source.EXIT:
            coro = self._launched.process.wait()
        else:
            coro = self._read_line(source)
        self._tasks[source] = asyncio.create_task(coro, name=f"pyshadow-{source.value}")

    async def _next_ready(self) -> Source:
        """Wait until a source is ready; rotate the pick when several are."""
        done, _ = await asyncio.wait(self._tasks.values(), return_when=asyncio.FIRST_COMPLETED)
        order = list(self._tasks)
        start = self._turn % len(order)
        self._turn += 1
        for source in order[start:] + order[:start]:
            if self._tasks[source] in done:
                return source
        raise AssertionError("asyncio.wait returned without a completed task")

    async def _tick(self) -> None:
        loop = asyncio.get_running_loop()
        await asyncio.sleep(max(0.0, self._deadline - loop.time()))

    def _advance_deadline(self, now: float) -> None:
        """Move to the next tick, skipping any that were missed."""
        self._deadline += self._interval
        if self._deadline <= now:
            missed = math.floor((now - self._deadline) / self._interval) + 1
            logger.debug("skipping %d missed tick(s)", missed)
            self._deadline += missed * self._interval

    def _cancel_requested(self) -> bool:
        return self._cancel_key in self.keys.drain()

    def _sample(self, now: float) -> None:
        try:
            reading = self._probe.sample()
        except ProcessVanished as exc:
            # Child exited between the exit check and this tick
            logger.debug("skipping sample: %s", exc)
            return
        self.dashboard.telemetry.append(
            TelemetrySample(
                elapsed_seconds=now - self.dashboard.session.started_at,
                cpu_percent=reading.cpu_percent,
                memory_bytes=reading.memory_bytes,
                disk_read_total=reading.disk_read_total,
                disk_write_total=reading.disk_write_total,
            )
        )

    def _redraw(self) -> None:
        self._renderer.draw(self.dashboard.snapshot())

    async def _read_line(self, source: Source) -> str | None:
        """Read one line from a stream; None at end of data."""
        try:
            raw = await self._streams[source].readline()
        except (OSError, ValueError) as exc:
            # ValueError: line longer than the stream limit
            raise StreamReadFailure(f"reading {source.value} failed: {exc}") from exc
        if not raw:
            return None
        return _decode_line(raw)

    async def _flush(self, source: Source) -> None:
        """Append every line still buffered on a stream until end of data."""
        log: OutputLog = self._logs[source]
        task = self._tasks.pop(source, None)
        if task is None:
            return  # end of data already seen
        line = await task
        while line is not None:
            log.append(line)
            self._redraw()
            line = await self._read_line(source)

    def _cancel(self, source: Source) -> None:
        task = self._tasks.pop(source, None)
        if task is not None:
            task.cancel()

    async def _cancel_all(self) -> None:
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        # Collect results so failed or cancelled tasks are not reported as unretrieved.
        await asyncio.gather(*tasks, return_exceptions=True)


def _decode_line(raw: bytes) -> str:
    line = raw.decode("utf-8", errors="replace")
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line
