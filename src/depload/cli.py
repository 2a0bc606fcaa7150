"""depload CLI entry point."""

import asyncio
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from depload.config import LoaderSettings
from depload.lifecycle.controller import LoadController
from depload.loader.errors import ConfigurationError, DependencyLoadError, StalledLoadError
from depload.loader.resolver import resolve_paths
from depload.reload.watcher import FileChange

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def _settings(root: str | None) -> LoaderSettings:
    try:
        return LoaderSettings.from_pyproject(root)
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1) from e


def _report_failure(error: DependencyLoadError) -> None:
    console.print(f"[bold red]{escape(str(error))}[/bold red]")
    if isinstance(error, StalledLoadError):
        for unit in error.pending:
            console.print(f"  [yellow]pending[/yellow] {escape(str(unit))}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """depload - load interdependent source files in any order."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
def paths(root: str | None) -> None:
    """List the units the dependency globs resolve to."""
    settings = _settings(root)
    units = resolve_paths(settings.resolved_dependency_paths())

    if not units:
        console.print("[yellow]No units matched the dependency globs[/yellow]")
        return

    for unit in units:
        console.print(str(unit))


@cli.command()
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
def load(root: str | None) -> None:
    """Load every unit of a project and report the result."""
    controller = LoadController(_settings(root))

    try:
        controller.load()
    except DependencyLoadError as e:
        _report_failure(e)
        raise SystemExit(1) from e

    result = controller.last_result
    table = Table(title="Loaded Units")
    table.add_column("Unit", style="cyan")
    table.add_column("Module", style="green")
    table.add_column("Status")

    for outcome in result.loaded:
        table.add_row(str(outcome.unit), outcome.module_name or "-", outcome.status.value)

    console.print(table)
    console.print(
        f"[green]{len(result.loaded)} units loaded in {result.passes} passes "
        f"({result.attempts} attempts)[/green]"
    )


@cli.command()
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
@click.option("--poll-interval", type=float, default=None, help="Seconds between scans")
@click.option("--debounce", type=float, default=None, help="Seconds to wait for changes to settle")
def watch(root: str | None, poll_interval: float | None, debounce: float | None) -> None:
    """Load a project, then reload it whenever its units change."""
    settings = _settings(root)
    controller = LoadController(settings)

    try:
        controller.load()
    except DependencyLoadError as e:
        _report_failure(e)
        raise SystemExit(1) from e

    def on_changes(changes: list[FileChange]) -> None:
        try:
            result = controller.reload()
        except DependencyLoadError as e:
            _report_failure(e)
            return
        console.print(
            f"[green]Reloaded {len(result.reloaded_units)} units, "
            f"removed {len(result.removed_units)}[/green]"
        )

    console.print(f"[bold green]Watching {settings.root} for changes...[/bold green]")
    try:
        asyncio.run(
            controller.tracker.watch_loop(
                on_changes,
                poll_interval=poll_interval or settings.watch_interval,
                debounce_seconds=settings.debounce_seconds if debounce is None else debounce,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Watcher stopped[/yellow]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
