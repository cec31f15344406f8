"""CLI for the request dispatcher.

Commands:
- request: Send a request through the fully wired dispatcher and print the payload
- show-config: Print the effective configuration
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Annotated, Protocol

import typer
from rich import print as rprint
from rich import print_json
from rich.console import Console
from rich.table import Table

from .application.dispatcher import RequestDispatcher
from .config import DispatchConfig
from .config_file import load_dispatch_config_file
from .exceptions import (
    ConfigFileNotFoundError,
    ConfigFileParseError,
    ConfigFileValidationError,
    DispatchError,
)
from .infrastructure.monitoring import RequestMonitor
from .types import DispatchRequest, DispatchResponse, RequestMetrics, RequestOptions


class DispatcherBuilder(Protocol):
    """Protocol for constructing a dispatcher from configuration."""

    def __call__(self, config: DispatchConfig) -> RequestDispatcher:
        """Build a dispatcher for one CLI invocation."""
        ...


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: DispatchConfig
    dispatcher_builder: DispatcherBuilder


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the request-dispatch entry point.")


class InvalidBodyError(typer.BadParameter):
    """Raised when --data is not valid JSON."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"--data must be valid JSON ({reason}).")


class InvalidHeaderError(typer.BadParameter):
    """Raised when a --header value is not NAME:VALUE."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Header must look like 'Name: value', got {value!r}.")


class ConfigFileOptionError(typer.BadParameter):
    """Raised when --config-file cannot be loaded."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _parse_body(data: str | None) -> object:
    if data is None:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        raise InvalidBodyError(exc.msg) from exc


def _parse_headers(values: list[str] | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values or []:
        name, sep, content = value.partition(":")
        if not sep or not name.strip():
            raise InvalidHeaderError(value)
        headers[name.strip()] = content.strip()
    return headers


async def _run_requests(
    dispatcher: RequestDispatcher,
    request: DispatchRequest,
    repeat: int,
) -> tuple[list[DispatchResponse], list[RequestMetrics]]:
    async with dispatcher:
        responses = [await dispatcher.send(request) for _ in range(repeat)]
    monitor = dispatcher.monitor
    metrics = monitor.metrics() if isinstance(monitor, RequestMonitor) else []
    return responses, metrics


def _metrics_table(metrics: list[RequestMetrics]) -> Table:
    table = Table(title="Request metrics")
    table.add_column("Method")
    table.add_column("Endpoint")
    table.add_column("Status", justify="right")
    table.add_column("Duration (ms)", justify="right")
    for item in metrics:
        table.add_row(
            item.method,
            item.endpoint,
            str(item.status),
            f"{item.duration_seconds * 1000:.1f}",
        )
    return table


def create_app(dispatcher_builder: DispatcherBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dispatcher builder."""
    app = typer.Typer(
        add_completion=False,
        help="Resilient HTTP request dispatcher: cache → rate limit → circuit breaker → retry",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_file: Annotated[
            Path | None,
            typer.Option(
                "--config-file",
                "-c",
                help="TOML config file overriding environment settings",
            ),
        ] = None,
    ) -> None:
        """Initialise CLI context."""
        config = DispatchConfig.from_env()
        if config_file is not None:
            try:
                config = config.with_file_overrides(load_dispatch_config_file(config_file))
            except (
                ConfigFileNotFoundError,
                ConfigFileParseError,
                ConfigFileValidationError,
            ) as exc:
                raise ConfigFileOptionError(str(exc)) from exc
        ctx.obj = CliContext(config=config, dispatcher_builder=dispatcher_builder)

    @app.command()
    def request(
        ctx: typer.Context,
        method: Annotated[str, typer.Argument(help="HTTP method (GET, POST, PUT, PATCH, DELETE)")],
        path: Annotated[str, typer.Argument(help="Path relative to the base URL, or a full URL")],
        base_url: Annotated[
            str | None,
            typer.Option("--base-url", "-u", help="Base URL of the remote API"),
        ] = None,
        data: Annotated[
            str | None,
            typer.Option("--data", "-d", help="JSON request body"),
        ] = None,
        header: Annotated[
            list[str] | None,
            typer.Option("--header", "-H", help="Extra header as 'Name: value' (repeatable)"),
        ] = None,
        cache: Annotated[
            bool,
            typer.Option("--cache/--no-cache", help="Cache GET responses"),
        ] = False,
        retries: Annotated[
            int | None,
            typer.Option("--retries", min=0, help="Additional attempts after a transient failure"),
        ] = None,
        timeout: Annotated[
            float | None,
            typer.Option("--timeout", min=0.0, help="Per-attempt timeout in seconds"),
        ] = None,
        repeat: Annotated[
            int,
            typer.Option("--repeat", "-n", min=1, help="Send the request this many times"),
        ] = 1,
    ) -> None:
        """Send a request through the dispatcher and print the decoded payload."""
        state = _get_context(ctx)
        config = state.config.with_overrides(base_url=base_url)
        dispatch_request = DispatchRequest(
            method=method,
            path=path,
            headers=_parse_headers(header),
            body=_parse_body(data),
            options=RequestOptions(
                should_cache=cache,
                retries=retries,
                timeout_seconds=timeout,
            ),
        )
        dispatcher = state.dispatcher_builder(config)
        try:
            responses, metrics = asyncio.run(_run_requests(dispatcher, dispatch_request, repeat))
        except DispatchError as exc:
            rprint(f"[red]✗ {exc.code}[/red] (status {exc.status_code}): {exc.message}")
            if exc.details is not None:
                rprint(f"  Details: {exc.details}")
            raise typer.Exit(code=1) from exc

        last = responses[-1]
        print_json(data=last.data)
        cached = sum(1 for response in responses if response.from_cache)
        rprint(f"[green]✓ {method.upper()} {path}[/green] → {last.status}")
        rprint(f"  Served from cache: {cached}/{len(responses)}")
        if metrics:
            Console().print(_metrics_table(metrics))

    @app.command(name="show-config")
    def show_config(ctx: typer.Context) -> None:
        """Print the effective configuration (secrets masked)."""
        state = _get_context(ctx)
        values = asdict(state.config)
        if values.get("bearer_token"):
            values["bearer_token"] = "***"
        print_json(data=values)

    return app
