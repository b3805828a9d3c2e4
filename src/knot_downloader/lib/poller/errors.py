"""Exception types raised by the poller library."""


class KnotDownloaderError(Exception):
    """Base class for all knot-downloader errors."""


class ConfigurationError(KnotDownloaderError, ValueError):
    """Raised when a polling configuration is invalid.

    Fatal at startup: the scheduler refuses to run with an invalid config.
    """


class WriteError(KnotDownloaderError):
    """Raised when fetched content cannot be persisted to its local path."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path
