"""Child process launcher for pyshadow."""

import asyncio
import logging
from dataclasses import dataclass

from pyshadow.config import DEFAULT_STREAM_LIMIT
from pyshadow.errors import LaunchFailure
from pyshadow.models import ProcessSession

logger = logging.getLogger(__name__)


@dataclass
class LaunchedProcess:
    """
    A spawned child with its session record.

    Attributes:
        session: Immutable identity of the run (pid, command, start time)
        process: The asyncio subprocess handle, stdout and stderr piped
    """

    session: ProcessSession
    process: asyncio.subprocess.Process

    @property
    def stdout(self) -> asyncio.StreamReader:
        """Line source for the child's standard output."""
        assert self.process.stdout is not None
        return self.process.stdout

    @property
    def stderr(self) -> asyncio.StreamReader:
        """Line source for the child's standard error."""
        assert self.process.stderr is not None
        return self.process.stderr


async def launch(command: list[str], stream_limit: int = DEFAULT_STREAM_LIMIT) -> LaunchedProcess:
    """
    Start a command with separately piped stdout and stderr.

    The first token is the program, the rest are passed verbatim as its
    arguments. Stdin is inherited.

    Args:
        command: Program and arguments.
        stream_limit: Longest line, in bytes, the stream readers accept.

    Returns:
        LaunchedProcess with the session stamped at spawn time.

    Raises:
        LaunchFailure: The command is empty or could not be started.
    """
    if not command:
        raise LaunchFailure("no command given")

    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=stream_limit,
        )
    except OSError as exc:
        # FileNotFoundError, PermissionError, ...
        raise LaunchFailure(f"cannot start {command[0]!r}: {exc.strerror or exc}") from exc

    started_at = asyncio.get_running_loop().time()
    logger.info("launched pid %d: %s", process.pid, " ".join(command))
    session = ProcessSession(pid=process.pid, command=tuple(command), started_at=started_at)
    return LaunchedProcess(session=session, process=process)
