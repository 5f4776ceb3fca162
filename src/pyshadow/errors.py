"""Error taxonomy for pyshadow.

Every failure is fatal to the run. Errors are raised where they are detected
and reported once by the entry point after the terminal has been restored.
"""


class ShadowError(Exception):
    """Base class for all pyshadow errors."""


class ConfigError(ShadowError):
    """An environment setting could not be parsed."""


class LaunchFailure(ShadowError):
    """The child command could not be started."""


class TerminalSetupFailure(ShadowError):
    """The terminal could not enter or leave application mode."""


class StreamReadFailure(ShadowError):
    """Reading the child's stdout or stderr failed."""


class TelemetryLookupFailure(ShadowError):
    """The telemetry provider could not read the child process."""


class ProcessVanished(TelemetryLookupFailure):
    """The child process no longer exists (exited between checks)."""


class RenderFailure(ShadowError):
    """The dashboard could not paint a frame."""
