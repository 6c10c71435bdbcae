"""Main CLI entry point using Typer.

This module defines the root CLI application, the reconciliation commands
and the config command group.
"""

import asyncio
import json
import signal
from pathlib import Path
from typing import Any, Annotated, Mapping, Optional

import typer
import yaml
from rich.console import Console

from fwr import __version__
from fwr.core.audit import configure_audit_logger
from fwr.core.config import DEFAULT_CONFIG_PATH, get_example_config, init_config
from fwr.core.context import ExecutionContext, create_context
from fwr.core.exceptions import FWRError, ValidationError
from fwr.core.models import ReconciliationResult
from fwr.core.validation import param_str
from fwr.core.output import console as app_console
from fwr.module import run_module


# Create the main Typer app
app = typer.Typer(
    name="fwr",
    help="Declarative firewalld reconciler for ports, services and rich rules.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)

config_app = typer.Typer(
    name="config",
    help="Configuration management.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# Type aliases for common options
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        help="Check current state but do not change anything.",
        is_flag=True,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase output verbosity. Can be repeated (-v, -vv).",
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Suppress non-essential output. Only show errors.",
        is_flag=True,
    ),
]

NoColorOption = Annotated[
    bool,
    typer.Option(
        "--no-color",
        help="Disable colored output.",
        is_flag=True,
    ),
]

JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Print the result as JSON (implies --quiet).",
        is_flag=True,
    ),
]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help=f"Path to configuration file. Default: {DEFAULT_CONFIG_PATH}",
        exists=False,
        file_okay=True,
        dir_okay=False,
    ),
]

ForceOption = Annotated[
    bool,
    typer.Option(
        "--force",
        "-f",
        help="Overwrite existing files.",
        is_flag=True,
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console = Console()
        console.print(f"fwr version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Declarative firewalld reconciler.

    Makes sure a port, service or rich rule is present or absent, checking
    the current state first so repeated runs change nothing.

    [bold]Examples:[/bold]
        fwr apply --state present --port 8080/tcp --zone public --permanent
        fwr apply --state absent --service telnet --dry-run
        fwr run params.yaml --json
    """


def handle_error(error: FWRError) -> None:
    """Handle an FWRError by printing formatted error and exiting."""
    app_console.error(error.message)

    if error.details:
        for detail in error.details:
            app_console.print(f"  [dim]{detail}[/dim]")

    if error.hint:
        app_console.hint(error.hint)

    raise typer.Exit(error.exit_code)


def load_params_file(path: Path) -> dict[str, Optional[str]]:
    """Load module parameters from a YAML or JSON file.

    Raises:
        ValidationError: If the file is not a mapping
    """
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ValidationError(
            f"Invalid parameter file: {path}",
            details=[str(e)],
        ) from e

    if not isinstance(data, dict):
        raise ValidationError(
            f"Parameter file must contain a mapping: {path}",
            hint="Example: {state: present, port: 8080/tcp}",
        )

    return {str(key): param_str(value) for key, value in data.items()}


async def _reconcile(params: Mapping[str, Any], ctx: ExecutionContext) -> ReconciliationResult:
    """Run the module with SIGINT/SIGTERM wired to the context's token."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, ctx.token.cancel, f"Interrupted by {sig.name}")
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            ctx.console.debug(f"Cannot install handler for {sig.name}")

    try:
        return await run_module(params, ctx)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def _report(result: ReconciliationResult, ctx: ExecutionContext, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return

    # Failures are shown even in quiet mode
    if result.success and ctx.is_quiet:
        return

    details: dict[str, Any] = {
        "Message": result.message,
        "Changed": result.changed,
    }
    details.update(result.facts)
    ctx.console.operation_summary("firewalld", result.success, details)


def execute(params: Mapping[str, Any], ctx: ExecutionContext, as_json: bool) -> None:
    """Reconcile, report, and exit non-zero on a failed result."""
    try:
        configure_audit_logger(ctx.config.audit)
        result = asyncio.run(_reconcile(params, ctx))
    except FWRError as e:
        handle_error(e)
        return

    _report(result, ctx, as_json)

    if not result.success:
        raise typer.Exit(1)


# ============================================================================
# Reconciliation commands
# ============================================================================

@app.command("apply")
def apply_cmd(
    state: Annotated[
        str,
        typer.Option(
            "--state",
            "-s",
            help="present/enabled or absent/disabled.",
        ),
    ],
    port: Annotated[
        Optional[str],
        typer.Option("--port", "-p", help="Port spec, e.g. 8080/tcp."),
    ] = None,
    service: Annotated[
        Optional[str],
        typer.Option("--service", help="firewalld service name, e.g. ssh."),
    ] = None,
    rich_rule: Annotated[
        Optional[str],
        typer.Option("--rich-rule", help="Full rich rule text, in firewalld's canonical form."),
    ] = None,
    zone: Annotated[
        Optional[str],
        typer.Option("--zone", "-z", help="Zone to manage (default: daemon default zone)."),
    ] = None,
    permanent: Annotated[
        bool,
        typer.Option("--permanent", help="Change the permanent configuration.", is_flag=True),
    ] = False,
    immediate: Annotated[
        bool,
        typer.Option("--immediate", help="Also apply a permanent change at runtime.", is_flag=True),
    ] = False,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    as_json: JsonOption = False,
    config: ConfigOption = None,
) -> None:
    """Make one port, service or rich rule present or absent.

    Exactly one of --port, --service or --rich-rule must be given.

    [bold]Examples:[/bold]

        # Open 8080/tcp in the public zone, permanently
        sudo fwr apply -s present -p 8080/tcp -z public --permanent

        # Make sure telnet is not allowed
        sudo fwr apply -s absent --service telnet

        # Preview a rich rule change
        fwr apply -s present --rich-rule 'rule family="ipv4" source address="10.0.0.0/8" accept' --dry-run
    """
    ctx = create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet or as_json,
        no_color=no_color,
        config=config,
    )
    params = {
        "state": state,
        "port": port,
        "service": service,
        "rich_rule": rich_rule,
        "zone": zone,
        "permanent": param_str(permanent),
        "immediate": param_str(immediate),
    }
    execute(params, ctx, as_json)


@app.command("run")
def run_cmd(
    params_file: Annotated[
        Path,
        typer.Argument(
            help="YAML or JSON file with module parameters.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    dry_run: DryRunOption = False,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
    as_json: JsonOption = False,
    config: ConfigOption = None,
) -> None:
    """Run the module with parameters read from a file.

    Keys: state, port, service, rich_rule, zone, permanent, immediate.

    [bold]Example params.yaml:[/bold]

        state: present
        service: https
        zone: public
        permanent: true
    """
    ctx = create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet or as_json,
        no_color=no_color,
        config=config,
    )

    try:
        params = load_params_file(params_file)
    except FWRError as e:
        handle_error(e)
        return

    execute(params, ctx, as_json)


# ============================================================================
# Config commands
# ============================================================================

@config_app.command("show")
def config_show(
    config: ConfigOption = None,
    verbose: VerboseOption = 0,
    no_color: NoColorOption = False,
) -> None:
    """Show current configuration, including environment overrides."""
    ctx = create_context(verbose=verbose, no_color=no_color, config=config)

    try:
        app_config = ctx.config

        ctx.console.print()
        ctx.console.print(f"[bold]Configuration file:[/bold] {ctx.config_path}")
        ctx.console.print(f"[bold]File exists:[/bold] {ctx.config_path.exists()}")
        ctx.console.print()

        ctx.console.yaml(app_config.config.to_yaml(), title="Configuration")

    except FWRError as e:
        handle_error(e)


@config_app.command("init")
def config_init(
    config: ConfigOption = None,
    force: ForceOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Initialize a new configuration file with defaults and comments."""
    ctx = create_context(no_color=no_color, config=config)
    config_path = ctx.config_path

    try:
        init_config(config_path, force=force)
        ctx.console.success(f"Configuration file created: {config_path}")
    except FWRError as e:
        handle_error(e)


@config_app.command("example")
def config_example() -> None:
    """Print example configuration file."""
    typer.echo(get_example_config())
