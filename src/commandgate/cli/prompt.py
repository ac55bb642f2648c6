"""Interactive console decision source for the CLI."""

import asyncio

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from commandgate.security.confirmation import ConfirmationRequest, UserResponse

_CHOICES = {
    "y": UserResponse.APPROVED,
    "n": UserResponse.DENIED,
    "s": UserResponse.SKIP,
}

_RISK_STYLES = {
    "low": "green",
    "medium": "yellow",
    "high": "red",
    "critical": "bold red",
}


class ConsoleDecisionSource:
    """Asks the user at the terminal.

    The prompt blocks a worker thread; when the gate's timeout fires first the
    request resolves to ``timeout`` and the pending answer is ignored.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def decide(self, request: ConfirmationRequest) -> UserResponse:
        self.render(request)
        answer = await asyncio.to_thread(
            Prompt.ask,
            "Execute? [y]es / [n]o / [s]kip future confirmations",
            console=self.console,
            choices=list(_CHOICES),
            default="n",
            show_choices=False,
        )
        return _CHOICES[answer]

    def render(self, request: ConfirmationRequest) -> None:
        category = request.analysis.category
        risk = category.risk_level.value
        lines = [
            f"[bold]Command:[/bold] {request.command_line}",
            f"[bold]Category:[/bold] {category.name.value} ({category.description})",
            f"[bold]Risk:[/bold] [{_RISK_STYLES[risk]}]{risk}[/{_RISK_STYLES[risk]}]",
            f"[bold]Security score:[/bold] {request.security_result.score}/100",
        ]
        if request.show_details:
            failed = request.security_result.failed_checks
            if failed:
                lines.append("")
                lines.append("[bold]Failed checks:[/bold]")
                lines.extend(f"  [red]✗[/red] {check.name}: {check.message}" for check in failed)
            recommendations = [
                *request.analysis.recommendations,
                *request.security_result.recommendations,
            ]
            if recommendations:
                lines.append("")
                lines.append("[bold]Recommendations:[/bold]")
                lines.extend(f"  • {text}" for text in recommendations)

        self.console.print(
            Panel("\n".join(lines), title="[bold yellow]Confirmation required[/bold yellow]", expand=False)
        )
