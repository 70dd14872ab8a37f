"""Rich-powered console output for notectx."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from notectx import __version__
from notectx.context.models import ContextItem


class Console:
    """Terminal output for the notectx CLI using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]notectx[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Budgeted context assembly for note graphs[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def show_stats(self, stats: dict) -> None:
        """Display note graph statistics in a table."""
        table = Table(title="Note Graph Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Count", justify="right", style="cyan")

        table.add_row("Pages", str(stats.get("pages", 0)))
        table.add_row("Blocks", str(stats.get("blocks", 0)))
        table.add_row("References", str(stats.get("references", 0)))
        table.add_row("Total Nodes", str(stats.get("total_nodes", 0)))
        table.add_row("Total Edges", str(stats.get("total_edges", 0)))
        table.add_row("Dangling Refs", str(stats.get("dangling_refs", 0)))

        edge_types = stats.get("edge_types", {})
        if edge_types:
            table.add_section()
            for kind, count in sorted(edge_types.items(), key=lambda x: -x[1]):
                table.add_row(f"  {kind} edges", str(count))

        self.console.print(table)

    def show_items(self, items: list[ContextItem]) -> None:
        """One row per context item, in ranked order."""
        table = Table(title=f"Context Items ({len(items)})", border_style="cyan")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Kind")
        table.add_column("Source")
        table.add_column("Level", justify="right")
        table.add_column("Priority", justify="right", style="cyan")
        table.add_column("Item")

        for index, item in enumerate(items, 1):
            first_line = item.content.strip().splitlines()[0] if item.content.strip() else ""
            label = item.title or first_line or item.id
            if len(label) > 60:
                label = label[:57] + "..."
            table.add_row(
                str(index),
                item.kind.value,
                item.source.value,
                str(item.level),
                str(item.priority),
                escape(label),
            )

        self.console.print(table)

    def show_context(self, text: str) -> None:
        """Print composed context verbatim; ``[[...]]`` must not be read as markup."""
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)
