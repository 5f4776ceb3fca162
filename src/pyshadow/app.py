"""pyshadow - Textual dashboard for a supervised child process."""

import asyncio
import logging
import sys
from collections.abc import Callable, Sequence
from typing import TypeVar

from textual import events
from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Log, Static

from pyshadow.config import Settings
from pyshadow.errors import ConfigError, RenderFailure, ShadowError, TerminalSetupFailure
from pyshadow.launcher import LaunchedProcess, launch
from pyshadow.models import DashboardState, RunOutcome, SessionResult, TelemetrySample
from pyshadow.supervisor import KeyChannel, Supervisor, TelemetryProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")

BLOCKS = " ▁▂▃▄▅▆▇█"


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.1f}{unit}" if unit != "B" else f"{int(size)}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def downsample(items: Sequence[T], width: int) -> list[T]:
    """Pick at most ``width`` evenly spaced items, always keeping the last one."""
    if width <= 0:
        return []
    if len(items) <= width:
        return list(items)
    step = len(items) / width
    return [items[int((i + 1) * step) - 1] for i in range(width)]


def render_chart(values: Sequence[float], upper: float, width: int, height: int) -> str:
    """
    Render values as a bar chart of block characters.

    Each value is one column, scaled to [0, upper] over ``height`` rows with
    eighth-row resolution. Values outside the range are clipped.
    """
    if width <= 0 or height <= 0:
        return ""
    levels = []
    for value in values[-width:]:
        fraction = 0.0 if upper <= 0 else min(max(value / upper, 0.0), 1.0)
        levels.append(round(fraction * height * 8))

    rows = []
    for row in range(height - 1, -1, -1):
        cells = [BLOCKS[min(max(level - row * 8, 0), 8)] for level in levels]
        rows.append("".join(cells).ljust(width))
    return "\n".join(rows)


def time_axis(elapsed: float, width: int) -> str:
    """Time labels (start, midpoint, latest) spread over ``width`` columns."""
    left = "0 s"
    middle = f"{elapsed / 2:.2f} s"
    right = f"{elapsed:.2f} s"
    gap = width - len(left) - len(middle) - len(right)
    if gap < 2:
        return right.rjust(width)[-width:] if width > 0 else ""
    return left + " " * (gap // 2) + middle + " " * (gap - gap // 2) + right


class UsageStats(Static):
    """Current CPU and memory figures with the command and run status."""

    DEFAULT_CSS = """
    UsageStats {
        height: 3;
        padding: 0 1;
        background: $surface;
        color: $accent;
        text-style: bold;
    }
    """

    text: str = ""

    def update_stats(self, state: DashboardState) -> None:
        """Update the figures from a dashboard snapshot."""
        latest = state.latest
        if latest is None:
            usage = "CPU usage: --    Memory usage: --"
        else:
            usage = (
                f"CPU usage: {latest.cpu_percent:.2f}%    "
                f"Memory usage: {format_bytes(latest.memory_bytes)}"
            )
        status = state.status.value
        if state.exit_code is not None:
            status = f"{status} ({state.exit_code})"
        self.text = f"{usage}\n$ {state.session.command_line}  [{status}]"
        self.update(self.text)


class HistoryChart(Static):
    """History of one telemetry figure, with fixed y bounds."""

    DEFAULT_CSS = """
    HistoryChart {
        width: 1fr;
        height: 1fr;
        border: solid $primary;
        border-title-color: $accent;
        border-title-style: bold;
    }
    """

    def __init__(
        self,
        title: str,
        value_of: Callable[[TelemetrySample], float],
        label: Callable[[float], str],
        *args,
        **kwargs,
    ) -> None:
        """Initialize HistoryChart."""
        super().__init__("", *args, markup=False, **kwargs)
        self.border_title = title
        self._value_of = value_of
        self._label = label
        self._samples: Sequence[TelemetrySample] = ()
        self._upper: float = 0.0
        self._elapsed: float = 0.0

    def update_history(self, samples: Sequence[TelemetrySample], upper: float, elapsed: float) -> None:
        """Replace the plotted history."""
        self._samples = samples
        self._upper = upper
        self._elapsed = elapsed
        self.border_subtitle = f"{self._label(0)} .. {self._label(upper)}"
        self._refresh_chart()

    def on_resize(self, event: events.Resize) -> None:
        """Re-render for the new size."""
        self._refresh_chart()

    def _refresh_chart(self) -> None:
        width = self.content_size.width
        height = self.content_size.height - 1  # Last row holds the time axis
        values = [self._value_of(sample) for sample in downsample(self._samples, width)]
        chart = render_chart(values, self._upper, width, height)
        axis = time_axis(self._elapsed, width)
        self.update(f"{chart}\n{axis}" if chart else axis)


class DiskStats(Static):
    """Disk read/write totals and per-second rates."""

    DEFAULT_CSS = """
    DiskStats {
        height: 4;
        padding: 0 1;
        border: solid $primary;
        border-title-color: $accent;
    }
    """

    def update_stats(self, state: DashboardState) -> None:
        """Update the figures from a dashboard snapshot."""
        latest = state.latest
        read_total = latest.disk_read_total if latest is not None else 0
        write_total = latest.disk_write_total if latest is not None else 0
        self.update(
            f"Storage read: {format_bytes(read_total):>8}    "
            f"Storage read /s: {format_bytes(state.disk_read_rate):>8}\n"
            f"Storage written: {format_bytes(write_total):>8}    "
            f"Storage written /s: {format_bytes(state.disk_write_rate):>8}"
        )


class OutputPane(Log):
    """One of the child's output streams."""

    DEFAULT_CSS = """
    OutputPane {
        width: 1fr;
        height: 1fr;
        border: solid $primary;
        border-title-color: $accent;
        border-title-style: bold;
    }
    """

    def __init__(self, title: str, *args, **kwargs) -> None:
        """Initialize OutputPane."""
        super().__init__(*args, **kwargs)
        self.border_title = title
        self.shown: int = 0

    def append_new(self, lines: Sequence[str]) -> None:
        """Write the lines not written yet; ``lines`` only ever grows."""
        if len(lines) > self.shown:
            self.write_lines(lines[self.shown :])
            self.shown = len(lines)


class ShadowApp(App):
    """Main pyshadow application."""

    TITLE = "pyshadow"
    SUB_TITLE = "Process Dashboard"

    CSS = """
    Screen {
        layout: vertical;
    }

    #charts {
        height: 1fr;
    }

    #logs {
        height: 2fr;
    }
    """

    def __init__(
        self,
        launched: LaunchedProcess,
        settings: Settings | None = None,
        probe: TelemetryProvider | None = None,
    ) -> None:
        """Initialize the ShadowApp."""
        super().__init__()
        self._settings = settings or Settings()
        self.keys = KeyChannel()
        self.supervisor = Supervisor(
            launched,
            self,
            probe,
            interval=self._settings.interval,
            cancel_key=self._settings.cancel_key,
            keys=self.keys,
        )
        self.result: SessionResult | None = None
        self.error: ShadowError | None = None

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield UsageStats(id="usage", markup=False)
        yield Horizontal(
            HistoryChart("CPU", lambda s: s.cpu_percent, lambda v: f"{v:.0f}%", id="cpu-chart"),
            HistoryChart("Memory", lambda s: s.memory_bytes, format_bytes, id="memory-chart"),
            id="charts",
        )
        disk = DiskStats(id="disk", markup=False)
        disk.border_title = "Disk"
        yield disk
        yield Horizontal(
            OutputPane("stdout", id="stdout"),
            OutputPane("stderr", id="stderr"),
            id="logs",
        )

    def on_mount(self) -> None:
        """Start supervising the child when the app is mounted."""
        self.run_worker(self._supervise(), name="supervisor", exclusive=True)

    def on_key(self, event: events.Key) -> None:
        """Buffer key presses; the supervisor checks them at each tick."""
        self.keys.push(event.key)

    async def _supervise(self) -> None:
        try:
            self.result = await self.supervisor.run()
        except ShadowError as exc:
            logger.error("run failed: %s", exc)
            self.error = exc
            self.exit(return_code=1)
            return
        except Exception as exc:
            logger.exception("supervisor crashed")
            self.error = ShadowError(f"supervisor crashed: {exc}")
            self.exit(return_code=1)
            return
        self.exit(self.result)

    def draw(self, state: DashboardState) -> None:
        """
        Paint one frame from a dashboard snapshot.

        Raises:
            RenderFailure: If any widget fails to update.
        """
        try:
            self.query_one("#usage", UsageStats).update_stats(state)
            self.query_one("#cpu-chart", HistoryChart).update_history(
                state.samples, state.cpu_upper_bound, state.elapsed_seconds
            )
            self.query_one("#memory-chart", HistoryChart).update_history(
                state.samples, float(state.total_memory), state.elapsed_seconds
            )
            self.query_one("#disk", DiskStats).update_stats(state)
            self.query_one("#stdout", OutputPane).append_new(state.stdout)
            self.query_one("#stderr", OutputPane).append_new(state.stderr)
        except Exception as exc:
            raise RenderFailure(f"cannot paint frame: {exc}") from exc


async def run_dashboard(command: list[str], settings: Settings) -> SessionResult | None:
    """
    Launch ``command`` and show the dashboard until it exits or is cancelled.

    The child is started before the terminal is touched, so a launch
    failure never enters application mode.

    Returns:
        The session result, or None if the app was closed another way.
    """
    launched = await launch(command, stream_limit=settings.stream_limit)
    app = ShadowApp(launched, settings)
    try:
        await app.run_async()
    except OSError as exc:
        raise TerminalSetupFailure(f"terminal error: {exc}") from exc
    if app.error is not None:
        raise app.error
    return app.result


def configure_logging(log_file: str | None) -> None:
    """Send pyshadow logs to ``log_file``, or discard them when unset."""
    package_logger = logging.getLogger("pyshadow")
    if not log_file:
        package_logger.addHandler(logging.NullHandler())
        return
    handler = logging.FileHandler(log_file)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)


def main(argv: list[str] | None = None) -> int:
    """Entry point for pyshadow application."""
    command = sys.argv[1:] if argv is None else argv
    if not command:
        print("usage: pyshadow <command> [args...]", file=sys.stderr)
        return 2

    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        print(f"pyshadow: error: {exc}", file=sys.stderr)
        return 1
    configure_logging(settings.log_file)

    try:
        result = asyncio.run(run_dashboard(command, settings))
    except ShadowError as exc:
        logger.error("%s", exc)
        print(f"pyshadow: error: {exc}", file=sys.stderr)
        return 1

    if result is not None and result.outcome is RunOutcome.EXITED:
        print(f"Process exited with status code: {result.exit_code}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
