"""CLI entry points for commandgate.

Implements click-based CLI
"""

import asyncio
import json
import sys
from pathlib import Path

import click
import pyfiglet
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from commandgate import __version__
from commandgate.cli.prompt import ConsoleDecisionSource
from commandgate.core.command_executor import ExecutionOptions
from commandgate.core.config import GatewayConfig, load_config
from commandgate.core.events import GatewayEvent
from commandgate.core.exceptions import (
    CommandGateException,
    ConfigurationError,
    DeniedByConfirmationError,
    ExecutionTerminatedError,
    ExecutionTimeoutError,
    ProcessNonZeroExitError,
    ProcessSpawnError,
    RejectedBySecurityThresholdError,
    SandboxRestrictionError,
    format_error_for_user,
)
from commandgate.core.gateway import CommandGateway
from commandgate.core.logger import configure_logging
from commandgate.security.categorizer import CommandCategorizer
from commandgate.security.command_validator import SecurityValidator
from commandgate.security.confirmation import StaticDecisionSource, UserResponse

# Load .env file from current directory or parent directories
load_dotenv()

console = Console()

# Exit statuses for outcomes that have no child exit code
EXIT_REJECTED = 2
EXIT_TIMEOUT = 124
EXIT_NOT_RUNNABLE = 127
EXIT_TERMINATED = 143

_RISK_STYLES = {"low": "green", "medium": "yellow", "high": "red", "critical": "bold red"}


def print_logo() -> None:
    """Print the commandgate banner."""
    logo_text = pyfiglet.figlet_format("COMMANDGATE", font="small")
    console.print(logo_text, style="bold cyan")


def exit_status_for(error: CommandGateException) -> int:
    """Map a gateway error to the CLI exit status."""
    if isinstance(
        error,
        RejectedBySecurityThresholdError | SandboxRestrictionError | DeniedByConfirmationError,
    ):
        return EXIT_REJECTED
    if isinstance(error, ExecutionTimeoutError):
        return EXIT_TIMEOUT
    if isinstance(error, ProcessNonZeroExitError):
        return error.exit_code if error.exit_code > 0 else 1
    if isinstance(error, ProcessSpawnError):
        return EXIT_NOT_RUNNABLE
    if isinstance(error, ExecutionTerminatedError):
        return EXIT_TERMINATED
    return 1


def _load_gateway_config(
    profile: str, threshold: int | None, timeout_ms: int | None, sandbox: bool | None
) -> GatewayConfig:
    gateway_config = load_config(profile, Path.cwd())
    overrides: dict[str, object] = {}
    if threshold is not None:
        overrides["security_threshold"] = threshold
    if timeout_ms is not None:
        overrides["execution_timeout_ms"] = timeout_ms
    if sandbox is not None:
        overrides["enable_sandbox"] = sandbox
    return gateway_config.merged(**overrides) if overrides else gateway_config


def stream_output(event: GatewayEvent) -> None:
    """Forward child output chunks to our own stdout/stderr."""
    click.echo(event.data["chunk"], nl=False, err=event.type == "stderr")


def display_event(event: GatewayEvent) -> None:
    """Display pipeline events (verbose mode)."""
    data = event.data
    if event.type == "command_analyzed":
        console.print(
            f"[dim]○ category {data['category']} "
            f"(risk {data['risk_level']}, confidence {data['confidence']:.2f})[/dim]",
            highlight=False,
        )
    elif event.type == "security_validated":
        failed = ", ".join(data["failed_checks"]) or "none"
        console.print(
            f"[dim]○ security score {data['score']}/100, failed checks: {failed}[/dim]",
            highlight=False,
        )
    elif event.type == "confirmation_resolved":
        console.print(f"[dim]○ confirmation: {data['response']}[/dim]", highlight=False)
    elif event.type == "execution_completed":
        execution = data["execution"]
        console.print(
            f"[green]✓ {execution['id']}[/green] [dim]({execution['duration_ms']:.0f}ms)[/dim]",
            highlight=False,
        )


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="commandgate")
@click.option("--log-level", default=None, help="Log level (default: COMMANDGATE_LOG_LEVEL or WARNING)")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """commandgate.

    Categorize, score, confirm and supervise shell commands before they run.
    """
    configure_logging(level=log_level)

    # Show logo if no subcommand provided
    if ctx.invoked_subcommand is None:
        print_logo()
        console.print("[bold]Available Commands:[/bold]\n")
        console.print("  [cyan]commandgate run[/cyan]        - Run a command through the gateway")
        console.print("  [cyan]commandgate analyze[/cyan]    - Categorize and score without running")
        console.print("  [cyan]commandgate categories[/cyan] - List command categories")
        console.print("  [cyan]commandgate config[/cyan]     - Inspect configuration\n")
        console.print("[dim]Run 'commandgate --help' for more information[/dim]\n")


@cli.command(context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True})
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--profile", "-p", default="default", help="Configuration profile")
@click.option("--yes", "-y", is_flag=True, help="Approve confirmations without prompting")
@click.option("--timeout-ms", type=int, default=None, help="Override execution timeout")
@click.option("--threshold", type=int, default=None, help="Override security threshold (0-100)")
@click.option("--sandbox/--no-sandbox", default=None, help="Override sandbox mode")
@click.option("--workdir", "-C", default=None, help="Working directory for the command")
@click.option("--verbose", "-v", is_flag=True, help="Show pipeline events")
def run(
    command: str,
    args: tuple[str, ...],
    profile: str,
    yes: bool,
    timeout_ms: int | None,
    threshold: int | None,
    sandbox: bool | None,
    workdir: str | None,
    verbose: bool,
) -> None:
    """Run COMMAND with ARGS through the gateway.

    Options go before the command; everything after it is passed through.

    Examples:
        commandgate run ls -la
        commandgate run --yes mkdir build
        commandgate run --timeout-ms 5000 -- make test
    """
    try:
        gateway_config = _load_gateway_config(profile, threshold, timeout_ms, sandbox)
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)

    decision_source = (
        StaticDecisionSource(UserResponse.APPROVED) if yes else ConsoleDecisionSource(console)
    )
    gateway = CommandGateway(gateway_config, decision_source=decision_source)
    gateway.event_bus.subscribe(stream_output, ["stdout", "stderr"])
    if verbose:
        gateway.event_bus.subscribe(display_event)

    try:
        asyncio.run(gateway.execute(command, args, ExecutionOptions(working_directory=workdir)))
    except CommandGateException as e:
        console.print(f"[bold red]Error:[/bold red] {format_error_for_user(e)}", highlight=False)
        sys.exit(exit_status_for(e))
    finally:
        gateway.event_bus.close()


@cli.command(context_settings={"allow_interspersed_args": False, "ignore_unknown_options": True})
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.option("--json", "as_json", is_flag=True, help="Print the analysis as JSON")
def analyze(command: str, args: tuple[str, ...], as_json: bool) -> None:
    """Categorize and score COMMAND without running it.

    Examples:
        commandgate analyze rm -rf /tmp/build
        commandgate analyze --json curl http://example.com
    """
    analysis = CommandCategorizer().analyze(command, args)
    result = SecurityValidator().validate(command, args, analysis)
    category = analysis.category

    if as_json:
        payload = {
            "command": " ".join([command, *args]),
            "category": category.name.value,
            "risk_level": category.risk_level.value,
            "confidence": analysis.confidence,
            "requires_confirmation": category.requires_confirmation,
            "allowed_in_sandbox": category.allowed_in_sandbox,
            "score": result.score,
            "is_valid": result.is_valid,
            "checks": [
                {
                    "name": check.name,
                    "severity": check.severity.value,
                    "passed": check.passed,
                    "message": check.message,
                }
                for check in result.checks
            ],
            "recommendations": [*analysis.recommendations, *result.recommendations],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    risk = category.risk_level.value
    verdict = "[green]valid[/green]" if result.is_valid else "[red]invalid[/red]"
    console.print(f"\n[bold]Category:[/bold] {category.name.value}", highlight=False)
    console.print(f"[bold]Risk:[/bold] [{_RISK_STYLES[risk]}]{risk}[/{_RISK_STYLES[risk]}]")
    console.print(f"[bold]Confidence:[/bold] {analysis.confidence:.2f}", highlight=False)
    console.print(f"[bold]Score:[/bold] {result.score}/100 ({verdict})\n", highlight=False)

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Check")
    table.add_column("Severity")
    table.add_column("Result")
    table.add_column("Message", style="dim")
    for check in result.checks:
        table.add_row(
            check.name,
            check.severity.value,
            "[green]pass[/green]" if check.passed else "[red]fail[/red]",
            check.message,
        )
    console.print(table)

    recommendations = [*analysis.recommendations, *result.recommendations]
    if recommendations:
        console.print("\n[bold]Recommendations:[/bold]")
        for text in recommendations:
            console.print(f"  • {text}", highlight=False)
    console.print()


@cli.command()
def categories() -> None:
    """List the command categories and their risk posture."""
    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Category", style="green")
    table.add_column("Risk")
    table.add_column("Confirm")
    table.add_column("Sandbox")
    table.add_column("Description", style="dim")

    for category in CommandCategorizer().categories():
        risk = category.risk_level.value
        table.add_row(
            category.name.value,
            f"[{_RISK_STYLES[risk]}]{risk}[/{_RISK_STYLES[risk]}]",
            "yes" if category.requires_confirmation else "no",
            "yes" if category.allowed_in_sandbox else "no",
            category.description,
        )

    console.print("\n[bold]Command Categories[/bold]\n")
    console.print(table)
    console.print()


@cli.group()
def config() -> None:
    """Inspect configuration."""
    pass


@config.command("show")
@click.argument("profile_name", default="default")
def config_show(profile_name: str) -> None:
    """Show the effective configuration for a profile.

    Args:
        profile_name: Profile name to display
    """
    try:
        config_data = load_config(profile_name, Path.cwd())
    except ConfigurationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    console.print(f"[bold]Profile: {profile_name}[/bold]\n")
    console.print(f"Require Confirmation: {config_data.require_confirmation}")
    console.print(f"Sandbox: {config_data.enable_sandbox}")
    console.print(f"Security Threshold: {config_data.security_threshold}")
    console.print(f"Execution Timeout: {config_data.execution_timeout_ms}ms")
    console.print(f"Max Concurrent Executions: {config_data.max_concurrent_executions}")
    console.print(f"Confirmation Timeout: {config_data.confirmation_timeout_ms}ms")


if __name__ == "__main__":
    cli()
