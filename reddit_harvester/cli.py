"""Command-line interface for the Reddit harvester."""

import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional

import typer
import uvicorn
from typing_extensions import Annotated

from reddit_harvester.api.settings import settings
from reddit_harvester.collector.progress import LoggingProgressReporter
from reddit_harvester.config import Config
from reddit_harvester.harvester import HarvestService
from reddit_harvester.models.dtos import HarvestResponse
from reddit_harvester.monitoring.metrics import PrometheusExporter
from reddit_harvester.storage import build_sink
from reddit_harvester.utils.logging_utils import setup_logging

app = typer.Typer(help="Reddit Harvester - Collect posts and comments from research communities")

logger = logging.getLogger(__name__)


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    """Make Ctrl-C / SIGTERM cancel the job cooperatively instead of killing it."""
    loop = asyncio.get_running_loop()

    def request_cancel(signame: str) -> None:
        if not cancel_event.is_set():
            logger.warning(f"Received {signame}; finishing the current batch and stopping")
            cancel_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_cancel, sig.name)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers.
            logger.debug(f"Cannot install a handler for {sig.name} on this platform")


async def run_harvest(config: Config, payload: dict, write: bool) -> HarvestResponse:
    """
    Run one harvest with the configured adapters and sinks.

    Args:
        config: Loaded configuration
        payload: Request body
        write: Whether to persist the corpus to the configured sinks

    Returns:
        The harvest response
    """
    prometheus_exporter = None
    if config.monitoring.enable_prometheus:
        prometheus_exporter = PrometheusExporter(port=config.monitoring.prometheus_port)
        prometheus_exporter.start_server()

    sink = build_sink(config.storage) if write else None
    cancel_event = asyncio.Event()
    _install_cancel_handler(cancel_event)

    async with HarvestService(config, sink=sink, prometheus_exporter=prometheus_exporter) as service:
        return await service.harvest(payload, progress_reporter=LoggingProgressReporter(), cancel_event=cancel_event)


@app.command()
def harvest(
    community: Annotated[Optional[List[str]], typer.Option("--community", "-s", help="Community to harvest (repeatable); defaults to the configured list")] = None,
    time_range: Annotated[str, typer.Option("--time-range", "-t", help="day, 3days, week or month")] = "day",
    sort_mode: Annotated[str, typer.Option("--sort", help="top, hot or rising")] = "top",
    posts: Annotated[int, typer.Option("--posts", "-n", help="Posts per community")] = 25,
    full: Annotated[bool, typer.Option("--full", help="Use the full default community list")] = False,
    user_id: Annotated[str, typer.Option("--user", help="Owner recorded with the stored harvest")] = "cli",
    config: Annotated[str, typer.Option("--config", "-c", help="Path to configuration file")] = "config.yaml",
    output: Annotated[Optional[str], typer.Option("--output", "-o", help="Write the full JSON response to this file")] = None,
    no_store: Annotated[bool, typer.Option("--no-store", help="Do not write to the configured sinks")] = False,
    loglevel: Annotated[Optional[str], typer.Option("--loglevel", "-l", help="Logging level")] = None,
) -> None:
    """
    Harvest posts and comments and print the summary.

    Ctrl-C stops after the current batch; the partial corpus is still returned.
    """
    app_config = Config.from_files(config)
    setup_logging(loglevel or app_config.log_level)

    validation_errors = app_config.validate()
    if validation_errors:
        for error in validation_errors:
            logger.error(f"Configuration error: {error}")
        typer.echo("Invalid configuration, aborting", err=True)
        raise typer.Exit(code=1)

    payload = {
        "communities": community or None,
        "timeRange": time_range,
        "sortMode": sort_mode,
        "postsPerCommunity": posts,
        "fastMode": not full,
        "userId": user_id,
    }

    response = asyncio.run(run_harvest(app_config, payload, write=not no_store))

    if not response.success:
        typer.echo(f"Error: {response.error}", err=True)
        raise typer.Exit(code=1)

    if output:
        with open(output, "w", encoding="utf-8") as file:
            json.dump(response.model_dump(by_alias=True), file, indent=2)
        typer.echo(f"Wrote {len(response.data)} records to {output}")

    typer.echo(json.dumps(response.summary, indent=2))


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port")] = None,
    reload: Annotated[bool, typer.Option("--reload", help="Reload on code changes")] = False,
) -> None:
    """Serve the harvest API with uvicorn."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    uvicorn.run(
        "reddit_harvester.api.main:app",
        host=host or settings.API_HOST,
        port=port or settings.API_PORT,
        reload=reload,
    )


def main() -> None:
    """Entry point of the ``reddit-harvester`` console script."""
    app()


if __name__ == "__main__":
    sys.exit(main())
