"""CLI commands for mocksandbox."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

import click
import httpx
from rich.console import Console

from mocksandbox.cli.output import ProgressOutput
from mocksandbox.config import DEFAULT_CONFIG_FILE, SandboxSettings, load_config
from mocksandbox.detect import detect_project
from mocksandbox.discovery import discover_apis
from mocksandbox.errors import InvalidConfigurationError, MockSandboxError, StageError
from mocksandbox.events import EventChannel
from mocksandbox.observability import configure_logging
from mocksandbox.pipeline import run_all
from mocksandbox.sandbox import read_state, stop_sandbox

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2

PROJECT_PATH = click.Path(exists=True, file_okay=False, path_type=Path)


def exit_code_for(exc: BaseException) -> int:
    """Configuration problems exit 2, everything else 1."""
    if isinstance(exc, StageError):
        exc = exc.cause or exc
    if isinstance(exc, InvalidConfigurationError):
        return EXIT_CONFIG_ERROR
    return EXIT_FAILURE


def wait_for_health(url: str, timeout: float = 60.0, interval: float = 0.5) -> bool:
    """Poll ``url`` until it answers 200 or ``timeout`` seconds pass."""
    start_time = time.monotonic()
    while time.monotonic() - start_time < timeout:
        try:
            if httpx.get(url, timeout=interval * 4).status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(interval)
    return False


def _settings(ctx: click.Context, project_path: Path, **overrides: Any) -> SandboxSettings:
    config_path = ctx.obj.get("config_path")
    if config_path is None and (project_path / DEFAULT_CONFIG_FILE).is_file():
        config_path = project_path / DEFAULT_CONFIG_FILE
    return load_config(config_path, **overrides)


def _fail(output: ProgressOutput, exc: BaseException) -> None:
    output.error(exc)
    sys.exit(exit_code_for(exc))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help=f"Path to config file (default: <project>/{DEFAULT_CONFIG_FILE})",
)
@click.option("--json-logs", is_flag=True, help="Write logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None, json_logs: bool) -> None:
    """mocksandbox - Run a frontend against synthesized mocks."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    configure_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        json_format=True if json_logs else None,
    )


@cli.command()
@click.argument("path", type=PROJECT_PATH, default=".")
@click.option("--port", "app_port", type=int, help="App dev server port (default: 5173)")
@click.option("--mock-port", type=int, help="Mock server port (default: 9000)")
@click.option("--model", help="Model used for synthesis")
@click.option("--provider", type=click.Choice(["docker", "none"]), help="Sandbox provider")
@click.option(
    "--fallback",
    "fallback_strategy",
    type=click.Choice(["rules", "schema"]),
    help="Fallback when the model runner is unavailable",
)
@click.option("--wait", is_flag=True, help="Wait for the mock server health check")
@click.option("--timeout", type=float, default=60.0, show_default=True, help="Seconds to wait with --wait")
@click.pass_context
def up(
    ctx: click.Context,
    path: Path,
    app_port: int | None,
    mock_port: int | None,
    model: str | None,
    provider: str | None,
    fallback_strategy: str | None,
    wait: bool,
    timeout: float,
) -> None:
    """Discover, synthesize mocks and start the sandbox for PATH.

    \b
    Examples:
        mocksandbox up ./my-app
        mocksandbox up ./my-app --provider none
        mocksandbox up ./my-app --port 3000 --mock-port 9100 --wait
    """
    output = ProgressOutput(Console(), verbose=ctx.obj["verbose"])
    try:
        settings = _settings(
            ctx,
            path,
            app_port=app_port,
            mock_port=mock_port,
            model=model,
            provider=provider,
            fallback_strategy=fallback_strategy,
        )
    except InvalidConfigurationError as e:
        _fail(output, e)

    events = EventChannel()
    output.attach(events)
    try:
        result = run_all(path, settings=settings, events=events)
    except MockSandboxError as e:
        _fail(output, e)
    finally:
        output.close()

    services = result.services
    if wait and services is not None and services.mock_url:
        output.console.print(f"[dim]Waiting for mock server (timeout: {timeout:.0f}s)...[/dim]")
        if not wait_for_health(f"{services.mock_url}/health", timeout=timeout):
            output.console.print("[bold yellow]Mock server did not become healthy[/bold yellow]")
            sys.exit(EXIT_FAILURE)
        output.console.print("[bold green]Mock server is healthy[/bold green]")

    if services is not None and services.provider != "none":
        output.console.print(f"[dim]Stop with: mocksandbox down {path}[/dim]")


@cli.command()
@click.argument("path", type=PROJECT_PATH, default=".")
@click.pass_context
def down(ctx: click.Context, path: Path) -> None:
    """Stop the sandbox running for PATH."""
    output = ProgressOutput(Console(), verbose=ctx.obj["verbose"])
    events = EventChannel()
    output.attach(events)
    try:
        stopped = stop_sandbox(path, settings=_settings(ctx, path), events=events)
    except MockSandboxError as e:
        _fail(output, e)

    if not stopped:
        output.console.print("No sandbox is running for this project")


@cli.command()
@click.argument("path", type=PROJECT_PATH, default=".")
@click.option("--json", "as_json", is_flag=True, help="Print the state record as JSON")
@click.pass_context
def status(ctx: click.Context, path: Path, as_json: bool) -> None:
    """Show the sandbox recorded for PATH."""
    output = ProgressOutput(Console(), verbose=ctx.obj["verbose"])
    try:
        state = read_state(path, settings=_settings(ctx, path))
    except MockSandboxError as e:
        _fail(output, e)

    if as_json:
        click.echo(json.dumps(state.to_dict() if state else None, indent=2))
    elif state is None:
        output.console.print("No sandbox is running for this project")
    else:
        output.state_panel(state)


@cli.command()
@click.argument("path", type=PROJECT_PATH, default=".")
@click.option("--json", "as_json", is_flag=True, help="Print the discovery result as JSON")
@click.pass_context
def discover(ctx: click.Context, path: Path, as_json: bool) -> None:
    """List the API calls found in PATH without synthesizing anything."""
    output = ProgressOutput(Console(), verbose=ctx.obj["verbose"])
    try:
        settings = _settings(ctx, path)
        result = discover_apis(detect_project(path), settings=settings)
    except MockSandboxError as e:
        _fail(output, e)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        output.discovery_table(result)
