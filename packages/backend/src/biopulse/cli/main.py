"""BioPulse CLI — browse patients, request analyses, watch live readings.

Usage:
    biopulse health                         # API status and live-update load
    biopulse patients                       # List patients
    biopulse biomarkers <patient-id>        # A patient's biomarkers
    biopulse biomarkers <id> -c hormonal    # ...one category only
    biopulse analyze <patient-id>           # AI analysis (needs biopulse-ai)
    biopulse watch <patient-id>             # Stream live biomarker updates
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import json
import os
import sys
from typing import Optional

import click
import httpx
import websockets

from biopulse.realtime.events import (
    BIOMARKER_UPDATES,
    ERROR,
    START_LIVE_UPDATES,
    STOP_LIVE_UPDATES,
)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("BIOPULSE_API_URL", DEFAULT_API_URL).rstrip("/")


def _ws_url() -> str:
    base = _api_url()
    if base.startswith("https://"):
        return "wss://" + base[len("https://"):] + "/ws"
    return "ws://" + base.removeprefix("http://") + "/ws"


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the BioPulse API."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=120.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Falls back to a worker thread when a loop is already running
    (e.g. CliRunner invoked from an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


async def _get(path: str, **params) -> dict:
    async with _client() as client:
        resp = await client.get(path, params={k: v for k, v in params.items() if v})
    return _unwrap(resp)


async def _post(path: str) -> dict:
    async with _client() as client:
        resp = await client.post(path)
    return _unwrap(resp)


def _unwrap(resp: httpx.Response) -> dict:
    """Return the JSON body or exit with the API's error message."""
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if resp.is_error:
        message = body.get("error") if isinstance(body, dict) else None
        click.secho(f"Error {resp.status_code}: {message or resp.text}", fg="red", err=True)
        sys.exit(1)
    return body


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table.

    columns: list of (header, dict_key, width)
    """
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k, "—"))[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


def _status_color(status: str) -> str:
    return {"normal": "green", "high": "red", "low": "yellow"}.get(status, "white")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="biopulse")
def main():
    """BioPulse — patient biomarkers, AI analysis, and live updates."""


@main.command()
def health():
    """Show API health and live-update load."""
    try:
        data = _run(_get("/api/health"))
    except httpx.ConnectError:
        click.secho(f"API not reachable at {_api_url()}", fg="red", err=True)
        sys.exit(1)

    click.secho(f"BioPulse {data.get('version')} — {data.get('status')}", bold=True)
    click.echo(f"  connections:   {data.get('connections', 0)}")
    click.echo(f"  live topics:   {data.get('liveTopics', 0)}")
    click.echo(f"  subscriptions: {data.get('subscriptions', 0)}")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def patients(as_json: bool):
    """List patients."""
    rows = _run(_get("/api/patients"))["data"]
    if as_json:
        click.echo(_pretty_json(rows))
        return
    _print_table(rows, [
        ("ID", "id", 36),
        ("Name", "name", 20),
        ("Born", "dateOfBirth", 10),
        ("Last visit", "lastVisit", 10),
    ])


@main.command()
@click.argument("patient_id")
@click.option("--category", "-c", type=click.Choice(["metabolic", "cardiovascular", "hormonal"]))
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
def biomarkers(patient_id: str, category: Optional[str], as_json: bool):
    """Show a patient's biomarkers."""
    data = _run(_get(f"/api/patients/{patient_id}/biomarkers", category=category))["data"]
    if as_json:
        click.echo(_pretty_json(data))
        return

    click.secho(f"{data['patientName']} ({data['category']})", bold=True)
    for bm in data["biomarkers"]:
        rng = bm["referenceRange"]
        click.echo(
            f"  {bm['name']:<18} {bm['value']:>9.2f} {bm['unit']:<7} "
            f"[{rng['min']}–{rng['max']}] ",
            nl=False,
        )
        click.secho(bm["status"], fg=_status_color(bm["status"]))


@main.command()
@click.argument("patient_id")
def analyze(patient_id: str):
    """Run AI analysis for a patient."""
    click.echo("Requesting analysis (this can take a while)...")
    data = _run(_post(f"/api/patients/{patient_id}/analyze"))["data"]
    click.secho(f"Analysis for {data['patientName']}", bold=True)
    click.echo(_pretty_json(data["analysis"]))


@main.command()
@click.argument("patient_id")
@click.option("--count", "-n", type=int, default=0, help="Stop after N updates (0 = forever)")
def watch(patient_id: str, count: int):
    """Stream live biomarker updates for a patient."""
    try:
        _run(_watch(patient_id, count))
    except KeyboardInterrupt:
        pass


async def _watch(patient_id: str, count: int) -> None:
    async with websockets.connect(_ws_url()) as ws:
        await ws.send(json.dumps({"event": START_LIVE_UPDATES, "data": patient_id}))
        click.secho(f"Watching {patient_id} (Ctrl+C to stop)", fg="cyan")
        received = 0
        try:
            while not count or received < count:
                frame = json.loads(await ws.recv())
                event, data = frame.get("event"), frame.get("data")
                if event == ERROR:
                    click.secho(f"Error: {data.get('message')}", fg="red", err=True)
                    return
                if event != BIOMARKER_UPDATES:
                    continue
                received += 1
                for update in data["updates"]:
                    click.echo(
                        f"{update['timestamp']}  {update['name']:<18} "
                        f"{update['value']:>9.2f} {update['unit']}"
                    )
        finally:
            with contextlib.suppress(websockets.exceptions.ConnectionClosed):
                await ws.send(json.dumps({"event": STOP_LIVE_UPDATES, "data": patient_id}))


if __name__ == "__main__":
    main()
