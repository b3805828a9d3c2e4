"""Poller library — conditional fetch, atomic write, and fixed-rate scheduling.

Public API:
    - Scheduler: one fixed-rate asyncio loop per configured source
    - fetch: single conditional HTTP GET returning a FetchOutcome
    - write_file: atomic replace of a local file
    - ValidatorCache: in-memory entity tags per source
    - PollConfig / SourceSpec: immutable source registry
"""

from knot_downloader.lib.poller.cache import ValidatorCache
from knot_downloader.lib.poller.differ import ChangeSummary, summarize_changes
from knot_downloader.lib.poller.errors import ConfigurationError, KnotDownloaderError, WriteError
from knot_downloader.lib.poller.fetcher import fetch
from knot_downloader.lib.poller.scheduler import Scheduler, format_size
from knot_downloader.lib.poller.types import (
    Failed,
    FetchOutcome,
    PollConfig,
    PollEvent,
    SourceFailed,
    SourceSpec,
    SourceUnchanged,
    SourceUpdated,
    Unchanged,
    Updated,
)
from knot_downloader.lib.poller.writer import read_current, write_file

__all__ = [
    "ChangeSummary",
    "ConfigurationError",
    "Failed",
    "FetchOutcome",
    "KnotDownloaderError",
    "PollConfig",
    "PollEvent",
    "Scheduler",
    "SourceFailed",
    "SourceSpec",
    "SourceUnchanged",
    "SourceUpdated",
    "Unchanged",
    "Updated",
    "ValidatorCache",
    "WriteError",
    "fetch",
    "format_size",
    "read_current",
    "summarize_changes",
    "write_file",
]
