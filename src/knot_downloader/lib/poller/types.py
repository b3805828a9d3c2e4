"""Data types for the poller library.

Defines the immutable source registry (``SourceSpec`` / ``PollConfig``),
the outcome of a single conditional fetch, and the per-tick events the
scheduler reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

from knot_downloader.lib.poller.errors import ConfigurationError

DEFAULT_TIMEOUT_SECONDS = 30.0

# Share of the polling interval a single fetch or write may use when no
# explicit timeout is configured.
_TIMEOUT_INTERVAL_RATIO = 0.9


@dataclass(frozen=True)
class SourceSpec:
    """A single remote zone file and where to store it.

    Attributes:
        url: Absolute http(s) URL of the remote resource.
        path: Local filesystem destination.
    """

    url: str
    path: str

    def __post_init__(self) -> None:
        parsed = urlparse(self.url)
        if parsed.scheme not in ("http", "https"):
            msg = f"Unsupported URL scheme {parsed.scheme!r} in {self.url!r}"
            raise ConfigurationError(msg)
        if not parsed.hostname:
            msg = f"URL must include a hostname: {self.url!r}"
            raise ConfigurationError(msg)
        if not self.path:
            msg = f"path must not be empty for {self.url!r}"
            raise ConfigurationError(msg)

    @property
    def source_id(self) -> str:
        """Identity used for validation tokens and per-source state.

        Combines URL and path so two entries sharing a URL keep separate
        tokens.
        """
        return f"{self.url} -> {self.path}"


@dataclass(frozen=True)
class PollConfig:
    """Polling configuration consumed by the scheduler.

    Attributes:
        interval: Seconds between the starts of consecutive ticks.
        create_directories: Create missing parent directories before writing.
        sources: Ordered sources to poll.
        timeout: Upper bound in seconds for each fetch and each write.
            Derived from ``interval`` when omitted.
    """

    interval: float
    create_directories: bool = False
    sources: tuple[SourceSpec, ...] = ()
    timeout: float | None = None

    def __post_init__(self) -> None:
        if self.interval <= 0:
            msg = f"interval must be positive, got {self.interval!r}"
            raise ConfigurationError(msg)
        if not self.sources:
            msg = "at least one source must be configured"
            raise ConfigurationError(msg)
        if self.timeout is not None:
            if self.timeout <= 0:
                msg = f"timeout must be positive, got {self.timeout!r}"
                raise ConfigurationError(msg)
            if self.timeout >= self.interval:
                msg = f"timeout ({self.timeout}s) must be shorter than interval ({self.interval}s)"
                raise ConfigurationError(msg)
        # Accept any iterable (e.g. a list from the config loader).
        object.__setattr__(self, "sources", tuple(self.sources))

    @property
    def effective_timeout(self) -> float:
        """Timeout applied to fetches and writes, always below ``interval``."""
        if self.timeout is not None:
            return self.timeout
        return min(DEFAULT_TIMEOUT_SECONDS, self.interval * _TIMEOUT_INTERVAL_RATIO)


@dataclass(frozen=True)
class Unchanged:
    """The server reported the resource as not modified."""


@dataclass(frozen=True)
class Updated:
    """The server returned a full body.

    Attributes:
        content: Response body, byte-for-byte.
        token: Entity tag from the response, or None if the server sent none.
    """

    content: bytes
    token: str | None = None


@dataclass(frozen=True)
class Failed:
    """The fetch could not be completed.

    Attributes:
        reason: Human-readable cause.
    """

    reason: str


FetchOutcome = Unchanged | Updated | Failed


@dataclass(frozen=True)
class SourceUpdated:
    """New content was written for a source."""

    source: SourceSpec
    bytes_written: int
    additions: int = 0
    removals: int = 0


@dataclass(frozen=True)
class SourceUnchanged:
    """Nothing was written for a source this tick."""

    source: SourceSpec
    reason: str = "not modified"


@dataclass(frozen=True)
class SourceFailed:
    """A fetch or write failed for a source this tick."""

    source: SourceSpec
    reason: str


PollEvent = SourceUpdated | SourceUnchanged | SourceFailed


@dataclass
class TickState:
    """Mutable per-source loop state, owned by that source's task.

    Attributes:
        last_failed: Whether the previous tick ended in a failure; the next
            fetch is then sent without a validation token.
        ticks: Number of ticks run so far.
        skipped: Number of scheduled ticks skipped because of overruns.
    """

    last_failed: bool = False
    ticks: int = 0
    skipped: int = 0
