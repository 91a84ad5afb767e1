"""Migration reporter: structured summaries of a docmigrate run."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table


@dataclass
class FileChange:
    """A source file that was (or would be) rewritten."""

    path: str
    action: str  # "rewritten", "restored"


@dataclass
class MigrationReport:
    """Structured report of one migration or restore run."""

    source: str = ""
    docs_root: str = ""
    dry_run: bool = False

    files_processed: int = 0
    docs_extracted: int = 0
    files_written: int = 0
    files_skipped: int = 0
    files_touched: int = 0
    files_rewritten: int = 0
    files_restored: int = 0

    changes: list[FileChange] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_json(self) -> str:
        """Serialize report to JSON for CI/CD integration."""
        return json.dumps(
            {
                "source": self.source,
                "docs_root": self.docs_root,
                "dry_run": self.dry_run,
                "summary": {
                    "files_processed": self.files_processed,
                    "docs_extracted": self.docs_extracted,
                    "files_written": self.files_written,
                    "files_skipped": self.files_skipped,
                    "files_touched": self.files_touched,
                    "files_rewritten": self.files_rewritten,
                    "files_restored": self.files_restored,
                },
                "changes": [{"path": c.path, "action": c.action} for c in self.changes],
                "errors": self.errors,
            },
            indent=2,
        )

    def save_json(self, path: Path) -> None:
        """Write report JSON to file."""
        path.write_text(self.to_json(), encoding="utf-8")

    def print_summary(self, console: Console | None = None) -> None:
        """Print a rich summary to the console."""
        console = console or Console()

        if self.changes:
            title = "Sources (dry run)" if self.dry_run else "Sources"
            table = Table(title=title, show_lines=False)
            table.add_column("Action", style="bold", width=12)
            table.add_column("File")

            action_colors = {"rewritten": "green", "restored": "cyan"}
            for c in self.changes:
                color = action_colors.get(c.action, "white")
                table.add_row(f"[{color}]{c.action}[/{color}]", c.path)
            console.print(table)

        written = "would be written" if self.dry_run else "written"
        lines = [
            f"[bold]Files:[/bold] {self.files_processed} processed",
            f"[bold]Docs:[/bold] {self.docs_extracted} extracted | "
            f"[green]{self.files_written} {written}[/green] | "
            f"[dim]{self.files_skipped} unchanged[/dim]",
        ]
        if self.files_touched:
            lines.append(f"[bold]Placeholders:[/bold] {self.files_touched} touched")
        if self.files_rewritten:
            lines.append(f"[bold]Rewritten:[/bold] {self.files_rewritten} source file(s)")
        if self.files_restored:
            lines.append(f"[bold]Restored:[/bold] {self.files_restored} source file(s)")
        if self.errors:
            lines.append(f"[bold red]Errors:[/bold red] {len(self.errors)}")
            for error in self.errors:
                lines.append(f"  [red]-[/red] {error}")

        console.print(
            Panel(
                "\n".join(lines),
                title="[bold cyan]Migration Report[/bold cyan]",
                border_style="cyan",
            )
        )
