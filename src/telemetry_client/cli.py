from __future__ import annotations

import asyncio
import json
import sys
from typing import Optional

import typer
from loguru import logger

from telemetry_relay.retry import JsonFileStore, TelemetryQueue

from .client import TelemetryClient
from .config import TelemetrySettings, get_settings

app = typer.Typer(help="Telemetry retry queue operational CLI")


def store_opt() -> Optional[str]:
    return typer.Option(
        None, "--store-path", envvar="TELEMETRY_STORE_PATH", help="JSON file holding the queue"
    )


def _queue(store_path: Optional[str]) -> TelemetryQueue:
    settings = get_settings()
    return TelemetryQueue(JsonFileStore(store_path or settings.STORE_PATH), settings.queue_config())


def _make_client(settings: TelemetrySettings, store_path: Optional[str]) -> TelemetryClient:
    return TelemetryClient(settings, store=JsonFileStore(store_path or settings.STORE_PATH))


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "WARNING")


@app.command("status")
def status(store_path: Optional[str] = store_opt()):
    """Print queue size, age and threshold state."""
    meta = asyncio.run(_queue(store_path).get_queue_metadata())
    typer.echo(json.dumps(meta.model_dump(), indent=2))


@app.command("events")
def events(store_path: Optional[str] = store_opt()):
    """Dump queued events as NDJSON."""
    for item in asyncio.run(_queue(store_path).get_all_events()):
        typer.echo(json.dumps(item.model_dump(mode="json")))


@app.command("clear")
def clear(
    store_path: Optional[str] = store_opt(),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Drop every queued event."""
    if not yes:
        typer.confirm("Delete all queued telemetry events?", abort=True)
    asyncio.run(_queue(store_path).clear())
    typer.echo(json.dumps({"cleared": True}))


@app.command("retry")
def retry(store_path: Optional[str] = store_opt()):
    """Run one processing cycle against the telemetry API."""
    settings = get_settings()

    async def _run():
        client = _make_client(settings, store_path)
        try:
            await client.trigger_retry()
            meta = await client.get_queue_metadata()
            return {"connected": client.get_connection_status(), "remaining": meta.size if meta else 0}
        finally:
            await client.aclose()

    typer.echo(json.dumps(asyncio.run(_run()), indent=2))


if __name__ == "__main__":
    app()
