"""Rich console output driven by a run's events."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TaskID, TextColumn
from rich.table import Table

from mocksandbox.errors import MockSandboxError
from mocksandbox.events import EventChannel, EventType
from mocksandbox.models import DiscoveryResult, SandboxState


class ProgressOutput:
    """Renders pipeline progress from ``EventChannel`` events.

    Attributes:
        console: Rich console that receives the output.
        verbose: Also print discovery notes and per-endpoint fallback reasons.
    """

    def __init__(self, console: Console | None = None, verbose: bool = False) -> None:
        self.console = console or Console()
        self.verbose = verbose
        self._progress: Progress | None = None
        self._task: TaskID | None = None
        self._handlers = {
            EventType.DETECTED: self._detected,
            EventType.DISCOVERED: self._discovered,
            EventType.SYNTHESIS_REQUEST: self._synthesis_request,
            EventType.SYNTHESIS_RESPONSE: self._synthesis_response,
            EventType.ARTIFACTS_WRITTEN: self._artifacts_written,
            EventType.SERVICES_UP: self._services_up,
            EventType.SERVICES_DOWN: self._services_down,
        }

    def attach(self, events: EventChannel) -> None:
        events.subscribe(self.handle)

    def handle(self, event: EventType, payload: dict[str, Any]) -> None:
        handler = self._handlers.get(event)
        if handler is not None:
            handler(payload)

    def close(self) -> None:
        """Stop a progress bar left running by an interrupted run."""
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task = None

    def _detected(self, payload: dict[str, Any]) -> None:
        project = payload["project"]
        self.console.print(
            f"[green]✓[/green] Detected [bold]{project.framework}[/bold] project "
            f"({project.package_manager}) at {project.root}"
        )

    def _discovered(self, payload: dict[str, Any]) -> None:
        result: DiscoveryResult = payload["result"]
        self.console.print(
            f"[green]✓[/green] Discovered {len(result.rest)} REST endpoint(s) and "
            f"{len(result.graphql)} GraphQL operation(s)"
        )
        if result.notes:
            if self.verbose:
                for note in result.notes:
                    self.console.print(f"  [dim]note: {note}[/dim]")
            else:
                self.console.print(f"  [dim]{len(result.notes)} note(s); use -v to show them[/dim]")

    def _synthesis_request(self, payload: dict[str, Any]) -> None:
        if self._progress is None:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                console=self.console,
                transient=True,
            )
            self._progress.start()
            self._task = self._progress.add_task("Synthesizing mocks", total=payload.get("total"))
        assert self._task is not None
        self._progress.update(self._task, description=f"Synthesizing {_label(payload)}")

    def _synthesis_response(self, payload: dict[str, Any]) -> None:
        if payload.get("fallback"):
            message = f"  [yellow]fallback[/yellow] {_label(payload)}"
            if self.verbose and payload.get("error"):
                message += f" [dim]({payload['error']})[/dim]"
            self.console.print(message)
        if self._progress is not None and self._task is not None:
            self._progress.advance(self._task)
            if payload.get("index") == payload.get("total"):
                self.close()
                self.console.print(f"[green]✓[/green] Synthesized {payload.get('total')} mock(s)")

    def _artifacts_written(self, payload: dict[str, Any]) -> None:
        self.console.print(f"[green]✓[/green] Mock server written to {payload['path']}")

    def _services_up(self, payload: dict[str, Any]) -> None:
        lines = [f"Provider: [bold]{payload['provider']}[/bold]"]
        if payload.get("app_url"):
            lines.append(f"App:      [cyan]{payload['app_url']}[/cyan]")
        if payload.get("mock_url"):
            lines.append(f"Mocks:    [cyan]{payload['mock_url']}[/cyan]")
        if len(lines) == 1:
            lines.append("[dim]Artifacts only; nothing was started[/dim]")
        self.console.print(Panel("\n".join(lines), title="Sandbox up", border_style="green"))

    def _services_down(self, payload: dict[str, Any]) -> None:
        self.console.print(f"[green]✓[/green] Sandbox stopped ({payload['provider']})")

    def discovery_table(self, result: DiscoveryResult) -> None:
        table = Table(title="Discovered APIs", show_lines=False)
        table.add_column("Kind", style="cyan")
        table.add_column("Method / Type")
        table.add_column("Path / Operation", style="bold")
        table.add_column("Query")

        for endpoint in result.rest:
            table.add_row("REST", endpoint.method, endpoint.path, ", ".join(endpoint.query))
        for operation in result.graphql:
            table.add_row(
                "GraphQL",
                operation.operation_type,
                f"{operation.operation_name} @ {operation.endpoint}",
                "",
            )
        self.console.print(table)

        if result.base_urls:
            self.console.print(f"Base URLs: {', '.join(result.base_urls)}")
        for note in result.notes:
            self.console.print(f"[dim]note: {note}[/dim]")

    def state_panel(self, state: SandboxState) -> None:
        lines = [
            f"Provider: [bold]{state.provider}[/bold]",
            f"Started:  {state.timestamp}",
            f"Work dir: {state.work_dir}",
        ]
        if state.app_url:
            lines.append(f"App:      [cyan]{state.app_url}[/cyan]")
        if state.mock_url:
            lines.append(f"Mocks:    [cyan]{state.mock_url}[/cyan]")
        self.console.print(Panel("\n".join(lines), title="Sandbox status", border_style="cyan"))

    def error(self, exc: BaseException) -> None:
        self.close()
        self.console.print(f"[bold red]Error:[/bold red] {exc}")
        if isinstance(exc, MockSandboxError):
            for suggestion in exc.suggestions:
                self.console.print(f"  [dim]- {suggestion}[/dim]")
            if self.verbose and exc.cause is not None:
                self.console.print(f"  [dim]caused by: {exc.cause!r}[/dim]")


def _label(payload: dict[str, Any]) -> str:
    if payload.get("kind") == "graphql":
        return f"{payload.get('operation_type')} {payload.get('operation_name')}"
    return f"{payload.get('method')} {payload.get('path')}"
