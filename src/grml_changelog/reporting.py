"""
Console output for changelog runs, using Rich.
"""

from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .changelog import ChangelogOutcome
from .differ import ClassificationResult


def classification_to_dict(classification: ClassificationResult) -> Dict[str, Any]:
    """Convert a classification to plain data for JSON output."""
    return {
        "tracked_changes": [
            {
                "package": change.package_name,
                "old_version": change.old_version,
                "new_version": change.new_version,
                "revision_range": change.version_range.token,
            }
            for change in classification.tracked_changes
        ],
        "tracked_removals": list(classification.tracked_removals),
        "generic": {
            "added": list(classification.generic_added),
            "changed": list(classification.generic_changed),
            "removed": list(classification.generic_removed),
        },
    }


class ChangelogReporter:
    """Formats and displays classification summaries."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def print_classification(self, classification: ClassificationResult) -> None:
        if classification.is_empty:
            self.console.print("✅ Package lists are identical.", style="green")
            return

        self._print_tracked(classification)
        self._print_generic_summary(classification)

    def _print_tracked(self, classification: ClassificationResult) -> None:
        if not classification.tracked_count:
            return

        table = Table(title="📦 Tracked Packages", box=box.ROUNDED, title_style="bold cyan")
        table.add_column("Package", style="bold")
        table.add_column("Old", justify="right")
        table.add_column("New", justify="right")
        table.add_column("Revision Range")

        for package_name in classification.tracked_removals:
            table.add_row(package_name, "", "", "[red]Removed[/red]")
        for change in classification.tracked_changes:
            table.add_row(
                change.package_name,
                change.old_version or "[dim]-[/dim]",
                change.new_version,
                change.version_range.token,
            )

        self.console.print(table)

    def _print_generic_summary(self, classification: ClassificationResult) -> None:
        table = Table(
            title="📋 Debian Package List Changes", box=box.ROUNDED, title_style="bold cyan"
        )
        table.add_column("Change", style="bold")
        table.add_column("Count", justify="center")

        table.add_row("[green]Added[/green]", str(len(classification.generic_added)))
        table.add_row("[yellow]Changed[/yellow]", str(len(classification.generic_changed)))
        table.add_row("[red]Removed[/red]", str(len(classification.generic_removed)))

        self.console.print(table)

    def print_outcome(self, outcome: ChangelogOutcome) -> None:
        classification = outcome.classification
        self.console.print(
            Panel(
                f"✅ Changelog written to {outcome.output_path}\n"
                f"   Tracked packages: {classification.tracked_count}  "
                f"Debian package changes: {classification.generic_count}  "
                f"Duration: {outcome.duration_ms}ms",
                border_style="green",
            )
        )
