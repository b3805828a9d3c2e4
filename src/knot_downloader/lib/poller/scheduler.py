"""Fixed-rate polling scheduler.

Runs one asyncio task per configured source. Each tick performs
fetch -> write -> token update strictly in order; sources never wait on
each other, and a failure in one source only affects that source's tick.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING

import httpx
from loguru import logger
from tqdm import tqdm

from knot_downloader.lib.poller.cache import ValidatorCache
from knot_downloader.lib.poller.differ import summarize_changes
from knot_downloader.lib.poller.errors import WriteError
from knot_downloader.lib.poller.fetcher import fetch
from knot_downloader.lib.poller.types import (
    Failed,
    PollConfig,
    PollEvent,
    SourceFailed,
    SourceSpec,
    SourceUnchanged,
    SourceUpdated,
    TickState,
    Unchanged,
)
from knot_downloader.lib.poller.writer import read_current, write_file

if TYPE_CHECKING:
    from knot_downloader.lib.poller.differ import ChangeSummary

DEFAULT_USER_AGENT = "knot-downloader"
DEFAULT_GRACE_PERIOD = 10.0

EventCallback = Callable[[PollEvent], None]


def format_size(num_bytes: int) -> str:
    """Human-readable byte count, e.g. ``12.3kB``."""
    return tqdm.format_sizeof(num_bytes, suffix="B")


def _persist(source: SourceSpec, content: bytes, create_dirs: bool) -> ChangeSummary | None:
    """Write ``content`` unless the file already holds exactly these bytes.

    Runs in a worker thread.

    Returns:
        The change summary of the write, or None if nothing was written.

    Raises:
        WriteError: If the write fails.
    """
    current = read_current(source.path)
    if current == content:
        return None
    summary = summarize_changes(current, content)
    write_file(source.path, content, create_dirs=create_dirs)
    return summary


class Scheduler:
    """Drives periodic conditional fetches for every configured source.

    Args:
        config: Validated polling configuration.
        client: HTTP client to use. When omitted, one is created for the
            duration of ``run()`` / ``run_once()``.
        cache: Validation token store. A fresh one is created when omitted.
        on_event: Called with every per-tick event, after it is logged.
        grace_period: Seconds to let in-flight ticks finish on shutdown
            before cancelling them.
        user_agent: ``User-Agent`` header for a client created here.
    """

    def __init__(
        self,
        config: PollConfig,
        *,
        client: httpx.AsyncClient | None = None,
        cache: ValidatorCache | None = None,
        on_event: EventCallback | None = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self.config = config
        self.cache = cache if cache is not None else ValidatorCache()
        self._client = client
        self._on_event = on_event
        self._grace_period = grace_period
        self._user_agent = user_agent
        self._states: dict[str, TickState] = {source.source_id: TickState() for source in config.sources}
        self._stop = asyncio.Event()

    def state(self, source: SourceSpec) -> TickState:
        """Return the loop state for a source."""
        return self._states[source.source_id]

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Scheduler has no HTTP client; use run() or run_once()"
            raise RuntimeError(msg)
        return self._client

    @contextlib.asynccontextmanager
    async def _client_session(self) -> AsyncIterator[None]:
        if self._client is not None:
            yield
            return
        async with httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": self._user_agent},
        ) as client:
            self._client = client
            try:
                yield
            finally:
                self._client = None

    async def run_tick(self, source: SourceSpec) -> PollEvent:
        """Run one fetch/write cycle for a source and report its event.

        Never raises for fetch or write problems; they are returned as
        ``SourceFailed`` and the loop carries on at the next tick.
        """
        state = self.state(source)
        state.ticks += 1
        try:
            event = await self._tick(source, state)
        except Exception as exc:
            logger.exception("Unexpected error polling {}", source.url)
            event = SourceFailed(source, f"Unexpected error: {exc}")

        state.last_failed = isinstance(event, SourceFailed)
        self._emit(event)
        return event

    async def _tick(self, source: SourceSpec, state: TickState) -> PollEvent:
        """Fetch, write and update the token for one source.

        The write runs in a worker thread. When it times out the thread is
        not interrupted and may still finish its rename after the tick has
        been reported as failed; the rename is atomic and the next fetch is
        unconditional, so the file converges either way.
        """
        timeout = self.config.effective_timeout

        # After any failure the next request is unconditional, so a stale
        # token can never hide content that was not written.
        token = None if state.last_failed else self.cache.get(source.source_id)
        outcome = await fetch(self.client, source.url, token, timeout=timeout)

        if isinstance(outcome, Unchanged):
            return SourceUnchanged(source, "not modified")
        if isinstance(outcome, Failed):
            return SourceFailed(source, outcome.reason)

        try:
            summary = await asyncio.wait_for(
                asyncio.to_thread(_persist, source, outcome.content, self.config.create_directories),
                timeout=timeout,
            )
        except WriteError as exc:
            return SourceFailed(source, str(exc))
        except TimeoutError:
            return SourceFailed(source, f"Write to {source.path!r} timed out after {timeout:g}s")

        self.cache.set(source.source_id, outcome.token)
        if summary is None:
            return SourceUnchanged(source, "no changes")
        return SourceUpdated(
            source,
            bytes_written=len(outcome.content),
            additions=summary.additions,
            removals=summary.removals,
        )

    def _emit(self, event: PollEvent) -> None:
        source = event.source
        if isinstance(event, SourceUpdated):
            logger.info(
                "Downloaded {} to {} ({}, +{}/-{})",
                source.url,
                source.path,
                format_size(event.bytes_written),
                event.additions,
                event.removals,
            )
        elif isinstance(event, SourceUnchanged):
            logger.debug("Skipped {} ({})", source.url, event.reason)
        else:
            logger.error("Failed to download {}: {}", source.url, event.reason)

        if self._on_event is not None:
            try:
                self._on_event(event)
            except Exception:
                logger.exception("Event callback failed for {}", source.url)

    async def _source_loop(self, source: SourceSpec) -> None:
        """Fixed-rate loop for one source on the event loop's monotonic clock."""
        loop = asyncio.get_running_loop()
        interval = self.config.interval
        state = self.state(source)
        next_tick = loop.time()

        while not self._stop.is_set():
            await self.run_tick(source)

            next_tick += interval
            now = loop.time()
            if now >= next_tick:
                # Overran: drop the missed slots instead of queueing them.
                missed = int((now - next_tick) // interval) + 1
                next_tick += missed * interval
                state.skipped += missed
                logger.warning("Polling {} overran its interval; skipped {} tick(s)", source.url, missed)

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop.wait(), timeout=next_tick - now)

    async def run(self) -> None:
        """Poll every source until ``stop()`` is called.

        On stop, in-flight ticks get ``grace_period`` seconds to finish and
        are cancelled after that. If ``stop()`` was already called, returns
        without polling.
        """
        async with self._client_session():
            logger.info(
                "Polling {} source(s) every {:g}s (timeout={:g}s)",
                len(self.config.sources),
                self.config.interval,
                self.config.effective_timeout,
            )
            tasks = [
                asyncio.create_task(self._source_loop(source), name=f"poll:{source.url}")
                for source in self.config.sources
            ]
            try:
                await self._stop.wait()
            finally:
                await self._shutdown(tasks)

    async def _shutdown(self, tasks: list[asyncio.Task[None]]) -> None:
        self._stop.set()
        done, pending = await asyncio.wait(tasks, timeout=self._grace_period)
        for task in done:
            if not task.cancelled() and (exc := task.exception()) is not None:
                logger.opt(exception=exc).error("Polling task {} crashed", task.get_name())
        if pending:
            logger.warning("Cancelling {} in-flight poll(s) after {:g}s grace period", len(pending), self._grace_period)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("Polling stopped")

    async def run_once(self) -> list[PollEvent]:
        """Run a single tick for every source concurrently.

        Returns:
            Events in source order.
        """
        async with self._client_session():
            return list(await asyncio.gather(*(self.run_tick(source) for source in self.config.sources)))

    def stop(self) -> None:
        """Request a graceful shutdown of ``run()``."""
        if not self._stop.is_set():
            logger.info("Shutdown requested")
        self._stop.set()

    def install_signal_handlers(self) -> None:
        """Stop gracefully on SIGINT and SIGTERM.

        Must be called from within the running event loop.
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.stop)
