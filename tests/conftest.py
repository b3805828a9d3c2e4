"""Shared test fixtures for HTTP clients and polling configurations."""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import httpx
import pytest

from knot_downloader.lib.poller.types import PollConfig, SourceSpec


@pytest.fixture
async def client() -> AsyncGenerator[httpx.AsyncClient]:
    """An httpx client; requests are served by ``httpx_mock`` in tests that use it."""
    async with httpx.AsyncClient() as c:
        yield c


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[..., PollConfig]:
    """Build a PollConfig whose sources write under ``tmp_path``."""

    def _make(
        *names: str,
        interval: float = 60.0,
        create_directories: bool = False,
        timeout: float | None = None,
    ) -> PollConfig:
        names = names or ("block.rpz",)
        sources = tuple(
            SourceSpec(url=f"https://zones.example.com/{name}", path=str(tmp_path / name)) for name in names
        )
        return PollConfig(
            interval=interval,
            create_directories=create_directories,
            sources=sources,
            timeout=timeout,
        )

    return _make
