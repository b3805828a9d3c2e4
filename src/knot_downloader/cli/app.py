"""Typer CLI root application.

``knot-downloader run`` mirrors the configured zone files until it receives
SIGINT/SIGTERM; ``knot-downloader check`` only validates the config file.
"""

from __future__ import annotations

import asyncio
from pathlib import Path  # noqa: TC003 - Typer needs Path at runtime

import typer
from pydantic import ValidationError

from knot_downloader.core.config import LoadedConfig, Settings, get_settings, load_config
from knot_downloader.core.logging import setup_logging
from knot_downloader.lib.poller import ConfigurationError, Scheduler, SourceFailed

app = typer.Typer(name="knot-downloader", help="Mirror Response Policy Zone files over HTTP")

_CONFIG_OPTION_HELP = "Path to the YAML config file (default: from CONFIG_PATH env var, else config.yml)"


def _fail(exc: BaseException) -> typer.Exit:
    """Print an error and its causes to stderr and build the exit."""
    typer.echo(f"Error: {exc}", err=True)
    causes = []
    cause = exc.__cause__
    while cause is not None:
        causes.append(str(cause))
        cause = cause.__cause__
    if causes:
        typer.echo("\nCaused by:", err=True)
        for text in causes:
            typer.echo(f"  {text}", err=True)
    return typer.Exit(code=1)


def _load(config: Path | None) -> tuple[Settings, LoadedConfig]:
    """Load settings and the config file, exiting non-zero on any error."""
    try:
        settings = get_settings()
        loaded = load_config(config if config is not None else settings.config_path)
    except (ConfigurationError, ValidationError) as exc:
        raise _fail(exc) from exc
    return settings, loaded


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
    once: bool = typer.Option(False, "--once", help="Poll every source once and exit"),
) -> None:
    """Poll the configured zone files and keep local copies up to date."""
    settings, loaded = _load(config)
    setup_logging(
        settings.log_level or loaded.log_level,
        log_dir=settings.log_dir,
        colorize=settings.log_colorize,
    )

    scheduler = Scheduler(
        loaded.poll,
        grace_period=settings.shutdown_grace_period,
        user_agent=settings.user_agent,
    )

    if once:
        events = asyncio.run(scheduler.run_once())
        if any(isinstance(event, SourceFailed) for event in events):
            raise typer.Exit(code=1)
        return

    asyncio.run(_serve(scheduler))


async def _serve(scheduler: Scheduler) -> None:
    scheduler.install_signal_handlers()
    await scheduler.run()


@app.command()
def check(
    config: Path | None = typer.Option(None, "--config", "-c", help=_CONFIG_OPTION_HELP),
) -> None:
    """Validate the config file and list the configured sources."""
    _settings, loaded = _load(config)
    poll = loaded.poll
    typer.echo(
        f"interval={poll.interval:g}s timeout={poll.effective_timeout:g}s "
        f"create_directories={str(poll.create_directories).lower()} log_level={loaded.log_level}"
    )
    for source in poll.sources:
        typer.echo(f"{source.url} -> {source.path}")
