"""Typer-powered command line interface for ``space-services``.

The ``ss`` command lists the service instances of the targeted space together
with their resolved service and plan names.
"""
from __future__ import annotations

import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import requests
import typer
from rich.console import Console

from . import __version__
from .api_client import ResourceClient, build_http_session
from .config import AppConfig, ConfigError, load_config
from .exit_codes import ExitCode
from .lister import InstanceLister, ListingError, PlatformError, build_records
from .logging import OperationScope, StructuredLogger, configure_console_logging
from .presenter import records_payload, render_table
from .providers import CfCliError, CfCliSession
from .resolver import NameResolver, worker_count

console = Console()
err_console = Console(stderr=True)

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to space-services' YAML config file.",
)

DEBUG_OPTION = typer.Option(
    False,
    "--debug",
    help="Trace every step and API call (same as DEBUG=1).",
)

JSON_OPTION = typer.Option(
    False,
    "--json",
    help="Emit service instances as JSON instead of a table.",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        List the service instances of the targeted Cloud Foundry space.

        Service and plan names are resolved concurrently, one request per
        unique service and plan.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    logger: StructuredLogger
    session: CfCliSession
    http: requests.Session | None = None


def _ensure_runtime(
    ctx: typer.Context,
    config_file: Path | None,
    debug_override: bool = False,
) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    overrides: dict[str, object] = {}
    if debug_override:
        overrides["debug"] = True

    try:
        config = load_config(config_file=config_file, overrides=overrides)
    except ConfigError as exc:
        console.print(f"[red]Configuration error: {exc}[/red]")
        raise typer.Exit(code=ExitCode.VALIDATION) from exc

    runtime = RuntimeContext(
        config=config,
        logger=StructuredLogger(config.logs_dir),
        session=CfCliSession(cf_bin=config.cf_bin, cf_home=config.cf_home),
    )
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the space-services version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
    debug: bool = DEBUG_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    runtime = _ensure_runtime(ctx, config_file, debug)
    console.no_color = not runtime.config.color
    err_console.no_color = not runtime.config.color

    if version:
        with runtime.logger.operation(
            "root --version",
            args={"version": True},
            target={"kind": "meta", "scope": "version"},
        ) as op:
            console.print(f"space-services {__version__}")
            op.success("Reported CLI version.")
        raise typer.Exit(code=ExitCode.OK)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=ExitCode.OK)


def _command_failed(
    op: OperationScope,
    message: str,
    exc: Exception,
    *,
    rc: ExitCode,
) -> NoReturn:
    """Print the FAILED banner with *message* and terminate the command."""
    detail = f"{message}: {exc}"
    console.print("[bold red]FAILED[/bold red]")
    console.print()
    console.print(detail, markup=False, highlight=False, soft_wrap=True)
    op.error(detail, errors=[str(exc)], rc=int(rc))
    raise typer.Exit(code=int(rc))


@app.command("ss")
def space_services(
    ctx: typer.Context,
    json_output: bool = JSON_OPTION,
) -> None:
    """List space services."""
    runtime = _get_runtime(ctx)
    config = runtime.config
    session = runtime.session
    # Keep JSON output parseable: log records go to stderr in that mode.
    logger = configure_console_logging(
        err_console if json_output else console,
        debug=config.debug,
    )
    logger.debug("Executing command ss")

    with runtime.logger.operation(
        "ss",
        args={"json": json_output},
        target={"kind": "space"},
    ) as op:
        logger.debug("Getting current space")
        try:
            space = session.current_space()
        except CfCliError as exc:
            _command_failed(op, "Failed to get current space", exc, rc=ExitCode.ENVIRONMENT)
        op.target["space"] = space.name or space.guid

        logger.debug("Getting access token")
        try:
            token = session.access_token()
        except CfCliError as exc:
            _command_failed(op, "Failed to get access token", exc, rc=ExitCode.ENVIRONMENT)

        logger.debug("Getting api endpoint")
        try:
            endpoint = session.api_endpoint()
        except CfCliError as exc:
            _command_failed(op, "Failed to get API endpoint", exc, rc=ExitCode.ENVIRONMENT)

        lister = InstanceLister(
            session,
            api_version=config.api_version,
            results_per_page=config.results_per_page,
        )
        try:
            lines = lister.fetch_lines(space.guid)
        except CfCliError as exc:
            _command_failed(op, "Failed to fetch services", exc, rc=ExitCode.PROVIDER)
        try:
            listing = lister.decode(lines)
        except PlatformError as exc:
            _command_failed(op, "Failed to fetch services", exc, rc=ExitCode.PROVIDER)
        except ListingError as exc:
            _command_failed(op, "Failed to unmarshal services", exc, rc=ExitCode.PROVIDER)

        logger.debug("Collecting metadata")
        workers = worker_count(len(listing.instances), config.max_workers)
        if runtime.http is None:
            runtime.http = build_http_session(workers)
        client = ResourceClient(
            endpoint,
            token,
            api_version=config.api_version,
            session=runtime.http,
            timeout=config.request_timeout,
        )
        resolver = NameResolver(client.lookup_name, max_workers=workers)
        resolution = resolver.resolve(listing.instances)
        records = build_records(listing.instances, resolution)
        failures = sorted(failure.describe() for failure in resolution.failures)

        if json_output:
            console.print_json(
                data={
                    "space": {"guid": space.guid, "name": space.name},
                    "instances": records_payload(records),
                    "failures": failures,
                }
            )
        else:
            console.print("[bold green]OK[/bold green]")
            console.print()
            render_table(console, records, spacing=config.cell_spacing, hints=resolution)

        context = {
            "instances": len(records),
            "lookups": resolution.dispatched,
            "failed_lookups": len(failures),
        }
        if failures:
            op.warning(
                "Listed service instances with unresolved names.",
                warnings=failures,
                context=context,
            )
        else:
            op.success("Listed service instances.", context=context)


def main() -> None:
    """Console script entry point."""
    app()
