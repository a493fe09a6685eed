"""flagrelay CLI — run the relay, check it, watch its streams.

Usage:
    flagrelay serve                          # Run the relay server (uvicorn)
    flagrelay status                         # Health + per-environment readiness
    flagrelay watch flags --sdk-key sdk-123  # Print SSE frames as they arrive
    flagrelay flags --sdk-key sdk-123        # Current flag snapshot
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8030"


def _api_url() -> str:
    return os.environ.get("FLAGRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client(timeout: Optional[float] = 30.0) -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=timeout)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        # No running loop: normal CLI invocation
        return asyncio.run(coro)
    else:
        # Already inside an event loop (e.g. test runner), run in a thread
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _sdk_key_from_ctx(sdk_key: Optional[str]) -> str:
    """Resolve the SDK key from flag or FLAGRELAY_SDK_KEY env var."""
    key = sdk_key or os.environ.get("FLAGRELAY_SDK_KEY")
    if not key:
        click.secho(
            "Error: --sdk-key required (or set FLAGRELAY_SDK_KEY env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return key


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, sort_keys=True, default=str)


def _fail(resp: httpx.Response) -> None:
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    click.secho(f"Error {resp.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="flagrelay")
def main():
    """flagrelay — relay feature flag changes to streaming SDKs."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: FLAGRELAY_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: FLAGRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the relay server."""
    import uvicorn

    from flagrelay.config import settings

    uvicorn.run(
        "flagrelay.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
def status():
    """Show server health and per-environment readiness."""
    _run(_status_impl())


async def _status_impl():
    async with _client() as client:
        resp = await client.get("/api/v1/health")
    if resp.status_code != 200:
        _fail(resp)

    health = resp.json()
    color = "green" if health["status"] == "healthy" else "yellow"
    click.secho(f"flagrelay {health['version']} — {health['status']}", fg=color, bold=True)
    for name, env in sorted(health.get("environments", {}).items()):
        mark = click.style("✓", fg="green") if env.get("initialized") else click.style("✗", fg="red")
        subscribers = env.get("subscribers", {})
        click.echo(
            f"  {mark} {name:<20} all={subscribers.get('all', 0)} flags={subscribers.get('flags', 0)}"
        )


@main.command()
@click.argument("channel", type=click.Choice(["all", "flags"]))
@click.option("--sdk-key", "-k", help="SDK key (or set FLAGRELAY_SDK_KEY)")
def watch(channel: str, sdk_key: Optional[str]):
    """Stream CHANNEL and print each SSE frame as it arrives."""
    try:
        _run(_watch_impl(channel, _sdk_key_from_ctx(sdk_key)))
    except KeyboardInterrupt:
        pass


async def _watch_impl(channel: str, sdk_key: str):
    # No read timeout: heartbeats may be minutes apart
    async with _client(timeout=None) as client:
        async with client.stream("GET", f"/{channel}", headers={"Authorization": sdk_key}) as resp:
            if resp.status_code != 200:
                await resp.aread()
                _fail(resp)
            async for line in resp.aiter_lines():
                if line.startswith(":"):
                    click.secho(line, fg="bright_black")
                elif line.startswith("event:"):
                    click.secho(line, fg="cyan", bold=True)
                else:
                    click.echo(line)


@main.command()
@click.option("--sdk-key", "-k", help="SDK key (or set FLAGRELAY_SDK_KEY)")
@click.argument("key", required=False)
def flags(sdk_key: Optional[str], key: Optional[str]):
    """Print the current flags (or one flag by KEY)."""
    _run(_flags_impl(_sdk_key_from_ctx(sdk_key), key))


async def _flags_impl(sdk_key: str, key: Optional[str]):
    path = f"/sdk/latest-flags/{key}" if key else "/sdk/latest-flags"
    async with _client() as client:
        resp = await client.get(path, headers={"Authorization": sdk_key})
    if resp.status_code != 200:
        _fail(resp)
    click.echo(_pretty_json(resp.json()))


if __name__ == "__main__":
    main()
