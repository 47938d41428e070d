"""
CLI-specific implementation of the prompt interface.
"""

from __future__ import annotations

from typing import Dict, List, Optional

import click
from rich.console import Console
from rich.panel import Panel

from .prompt_interface import UserPrompt


class CliPrompt(UserPrompt):
    """CLI implementation of the prompt interface using click and rich."""

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def confirm_fold(self, branch: str, downstream: str) -> bool:
        panel = Panel(
            f"Merge [green]{branch}[/green] into [cyan]{downstream}[/cyan]\n"
            f"and remove [green]{branch}[/green] from its stack.\n"
            "The Git branch itself is kept.",
            title="Fold Branch",
            border_style="yellow",
        )
        self.console.print(panel)
        return click.confirm(f"Fold {branch} into {downstream}?", default=False)

    def choose_base_branches(self, available: List[str], suggested: List[str]) -> List[str]:
        """Prompt for a comma separated list of base branches."""
        self.console.print("\n🌳 **Configure Base Branches**", style="bold blue")
        if available:
            self.console.print(f"Local branches: {', '.join(available)}")

        while True:
            answer = click.prompt(
                "Base branches (comma separated)",
                default=", ".join(suggested),
                show_default=True,
            )
            chosen = [name.strip() for name in answer.split(",") if name.strip()]
            unknown = [name for name in chosen if available and name not in available]
            if chosen and not unknown:
                return chosen
            if unknown:
                self.console.print(f"Unknown branch(es): {', '.join(unknown)}", style="yellow")
            else:
                self.console.print("Enter at least one branch.", style="yellow")

    def confirm_delete_stacks(self, stack_names: List[str]) -> bool:
        self.console.print("\n🗑️  **Stacks to delete:**", style="bold red")
        for name in stack_names:
            self.console.print(f"  • {name}")
        return click.confirm("Delete these stacks? Git branches are kept.", default=False)

    def choose_branch(
        self, stacks: Dict[str, List[str]], base_branches: List[str], current: Optional[str]
    ) -> Optional[str]:
        """Show tracked branches (top of each stack first) and base branches as a numbered list."""
        choices: List[str] = []
        self.console.print("\n🔀 **Checkout Branch**", style="bold blue")
        for stack_name, names in stacks.items():
            self.console.print(f"[bold blue]{stack_name}[/bold blue]")
            for name in reversed(names):
                choices.append(name)
                self._print_choice(len(choices), name, current)
        if base_branches:
            self.console.print("[bold blue]base branches[/bold blue]")
            for name in base_branches:
                choices.append(name)
                self._print_choice(len(choices), name, current)
        if not choices:
            self.console.print("No branches to choose from.", style="yellow")
            return None

        default = choices.index(current) + 1 if current in choices else 0
        number = click.prompt(
            "Branch number (0 to cancel)",
            type=click.IntRange(0, len(choices)),
            default=default,
            show_default=True,
        )
        return choices[number - 1] if number else None

    def _print_choice(self, number: int, name: str, current: Optional[str]) -> None:
        marker = " [bold yellow]← current[/bold yellow]" if name == current else ""
        self.console.print(f"  {number:>2}. [green]{name}[/green]{marker}")
