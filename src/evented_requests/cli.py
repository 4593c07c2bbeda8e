"""evented-requests CLI.

Usage:
    evented-requests serve                       # Demo server on :4567
    evented-requests serve --port 8080 --delay 1 # Custom port and push delay
    evented-requests health                      # Check demo server health
    evented-requests create-user dummyuser       # Correlated demo request
    evented-requests create-user existinguser    # ... that fails
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import click
import httpx

from .client import create_client
from .correlator import FutureState
from .server.routes import UserEvent

DEFAULT_URL = "http://localhost:4567"


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level (logs go to stderr)",
)
def main(log_level: str) -> None:
    """Evented requests - HTTP requests answered over a push channel."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


@main.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=4567, help="Port to bind to")
@click.option("--delay", default=3.0, help="Seconds before the result is pushed")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str, port: int, delay: float, reload: bool) -> None:
    """Run the demo server."""
    import uvicorn

    # Pass the delay via environment variable for the app factory
    os.environ["EVENTED_DEMO_DELAY"] = str(delay)
    click.echo(f"Starting demo server on http://{host}:{port} (push delay {delay}s)", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "evented_requests.server.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


@main.command()
@click.option("--url", default=DEFAULT_URL, help="Server URL")
def health(url: str) -> None:
    """Check demo server health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
                if response.status_code == 200:
                    click.echo(f"Server is healthy: {response.json()}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


@main.command("create-user")
@click.argument("username")
@click.option("--base-url", default=DEFAULT_URL, help="Server URL")
@click.option(
    "--push-mode",
    type=click.Choice(["websocket", "sse"]),
    default="websocket",
    help="Push channel transport",
)
@click.option("--timeout", default=10.0, help="Seconds to wait for the pushed result")
def create_user(username: str, base_url: str, push_mode: str, timeout: float) -> None:
    """Create a user and wait for the result on the push channel."""

    async def run() -> FutureState:
        async with create_client(base_url=base_url, push_mode=push_mode) as client:
            result = await client.request(
                {"url": "/api/user/", "json": {"username": username}},
                success_kinds=[UserEvent.USER_CREATED.value],
                error_kinds=["UserCreationFailed", UserEvent.USER_EXISTS.value],
                deadline=timeout,
            )
            return result.outcome

    try:
        outcome = asyncio.run(run())
    except (ConnectionError, httpx.HTTPError) as e:
        click.echo(f"Request failed: {e}", err=True)
        sys.exit(1)

    if outcome == FutureState.SUCCEEDED:
        click.echo("User created!")
    elif outcome == FutureState.FAILED:
        click.echo("There was a problem creating the user.", err=True)
        sys.exit(1)
    elif outcome == FutureState.CANCELLED:
        click.echo("Your request was cancelled.", err=True)
        sys.exit(1)
    else:
        click.echo("Your request timed out.", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
