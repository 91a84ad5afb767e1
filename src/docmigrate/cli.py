"""docmigrate CLI: move inline Rust documentation into markdown files."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from docmigrate import __version__
from docmigrate.config import (
    DEFAULT_CONFIG_FILENAME,
    Config,
    Settings,
    find_manifest,
    load_config,
    read_cfg_attr,
    resolve_output_root,
)
from docmigrate.discover import discover
from docmigrate.errors import ConfigError
from docmigrate.pipeline import MigrationOptions, run_migration
from docmigrate.reporter import MigrationReport

app = typer.Typer(
    name="docmigrate",
    help="Move inline Rust documentation into external markdown files.",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()

# -- Helpers -------------------------------------------------------------------


def _resolve_config(
    src: Path,
    docs: str | None,
    inline_paths: bool,
    dry_run: bool,
) -> Config:
    """Pick the docs location: explicit path, inline mode, or Cargo.toml."""
    manifest = find_manifest(src)
    if manifest is None:
        console.print(
            "[yellow]Warning:[/yellow] No Cargo.toml found; docs paths will be written inline."
        )
        return Config.inline(docs or "docs")

    if docs is not None or inline_paths:
        docs_path = docs or resolve_output_root(manifest, dry_run=True)
        return Config.inline(docs_path, manifest=manifest, cfg_attr=read_cfg_attr(manifest))
    return load_config(manifest, dry_run=dry_run)


def _resolve_source(source: str | None, settings: Settings) -> Path:
    src = Path(source or settings.source).resolve()
    if not src.exists():
        console.print(f"[red]Error:[/red] Source not found: {src}")
        raise typer.Exit(1)
    return src


def _finish(report: MigrationReport, report_path: str | None) -> None:
    if report_path:
        report.save_json(Path(report_path))
        console.print(f"[dim]Report written to {report_path}[/dim]")
    report.print_summary(console)


# -- Commands ------------------------------------------------------------------


@app.command()
def sync(
    source: str = typer.Argument(None, help="Crate directory or .rs file"),
    docs: str = typer.Option(None, "--docs", "-d", help="Docs directory, written inline"),
    migrate: bool = typer.Option(False, "--migrate", "-m", help="Same as --cut --add --touch"),
    cut: bool = typer.Option(False, "--cut", "-c", help="Strip inline docs from the sources"),
    add: bool = typer.Option(False, "--add", "-a", help="Add #[syncdoc::omnidoc] to items"),
    touch: bool = typer.Option(
        False, "--touch", "-t", help="Create empty files for undocumented items"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview without writing"),
    inline_paths: bool = typer.Option(
        False, "--inline-paths", help="Write the docs path into each attribute"
    ),
    report: str = typer.Option(None, "--report", help="Write a JSON report to this path"),
    config: str = typer.Option(None, "--config", help=f"Path to {DEFAULT_CONFIG_FILENAME}"),
    workers: int = typer.Option(None, "--workers", "-w", help="Files processed in parallel"),
) -> None:
    """Extract documentation into markdown files, optionally rewriting the sources."""
    settings = Settings.load(config)
    src = _resolve_source(source, settings)

    options = MigrationOptions(
        strip=cut or migrate,
        annotate=add or migrate,
        touch=touch or migrate,
        dry_run=dry_run,
        workers=workers or settings.workers,
    )

    try:
        cfg = _resolve_config(
            src, docs or settings.docs, inline_paths or settings.inline_paths, dry_run
        )
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    mode_parts = [
        name
        for name, enabled in (
            ("cut", options.strip),
            ("add", options.annotate),
            ("touch", options.touch),
            ("dry-run", options.dry_run),
        )
        if enabled
    ]
    mode_str = " | ".join(mode_parts) if mode_parts else "extract"

    console.print(
        Panel(
            f"[bold]Source:[/bold] {src}\n"
            f"[bold]Docs:[/bold] {cfg.output_dir}\n"
            f"[bold]Paths:[/bold] {'Cargo.toml' if cfg.from_manifest else 'inline'}\n"
            f"[bold]Mode:[/bold] {mode_str}",
            title="[bold cyan]docmigrate sync[/bold cyan]",
            border_style="cyan",
        )
    )

    files = discover(src, settings.exclude)
    if not files:
        console.print("[dim]No Rust files found.[/dim]")
        return

    result = run_migration(files, options, cfg, source=src)
    _finish(result, report)


@app.command()
def restore(
    source: str = typer.Argument(None, help="Crate directory or .rs file"),
    docs: str = typer.Option(None, "--docs", "-d", help="Docs directory to read from"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview without writing"),
    report: str = typer.Option(None, "--report", help="Write a JSON report to this path"),
    config: str = typer.Option(None, "--config", help=f"Path to {DEFAULT_CONFIG_FILENAME}"),
) -> None:
    """Put documentation from the markdown files back inline."""
    settings = Settings.load(config)
    src = _resolve_source(source, settings)

    try:
        # Restoring never adds a docs-path to Cargo.toml.
        cfg = _resolve_config(src, docs or settings.docs, False, dry_run=True)
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"[bold]Source:[/bold] {src}\n"
            f"[bold]Docs:[/bold] {cfg.output_dir}\n"
            f"[bold]Mode:[/bold] {'dry-run (preview)' if dry_run else 'write'}",
            title="[bold cyan]docmigrate restore[/bold cyan]",
            border_style="cyan",
        )
    )

    options = MigrationOptions(restore=True, dry_run=dry_run, workers=settings.workers)
    result = run_migration(discover(src, settings.exclude), options, cfg, source=src)
    _finish(result, report)


@app.command()
def init(
    path: str = typer.Option(".", "--path", help="Directory to create settings in"),
) -> None:
    """Create a default docmigrate.yaml settings file."""
    settings = Settings()
    settings_path = settings.save(Path(path) / DEFAULT_CONFIG_FILENAME)
    console.print(f"[green]✓[/green] Created settings at [cyan]{settings_path}[/cyan]")


@app.command()
def version() -> None:
    """Show docmigrate version."""
    console.print(f"[bold cyan]docmigrate[/bold cyan] v{__version__}")


# -- Logging setup -------------------------------------------------------------


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """docmigrate: move inline Rust docs into markdown files."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


if __name__ == "__main__":
    app()
