"""Contextual next-step suggestions after command completion."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel

console = Console()

NEXT_STEPS: dict[str, list[str]] = {
    "sync": [
        "[cyan]modex index[/cyan]                         Build the search index",
        "[cyan]modex registry list[/cyan]                 Review registered modules",
        "[cyan]modex metrics reusability[/cyan]           Find exports missing examples",
    ],
    "index": [
        "[cyan]modex task[/cyan] 'description'            Reuse, extend or create?",
        "[cyan]modex suggest[/cyan] 'context'             Rank matching modules (JSON)",
        "[cyan]modex discover search[/cyan] 'query'       Fast substring search",
    ],
    "task:reuse": [
        "[cyan]modex discover examples[/cyan] <module>    See how to use it",
        "[cyan]modex installed add[/cyan] <module>        Record it as installed",
    ],
    "task:extend": [
        "[cyan]modex discover examples[/cyan] <module>    Check what it already covers",
        "[cyan]modex registry info[/cyan] <module>        Inspect its manifest",
    ],
    "task:create": [
        "[cyan]modex registry register[/cyan] <file>      Register the new module's manifest",
        "[cyan]modex registry sync[/cyan]                 Or rescan the modules tree",
    ],
}


def show_next_steps(command_name: str) -> None:
    """Show contextual next steps after command completion.

    Args:
        command_name: The name of the command that just completed.
    """
    steps = NEXT_STEPS.get(command_name)
    if not steps:
        return

    console.print()
    console.print(
        Panel(
            "\n".join([f"  {step}" for step in steps]),
            title="[bold cyan]💡 Next steps:[/bold cyan]",
            border_style="cyan",
            padding=(0, 1),
        )
    )
