"""Cherryplan CLI - plan safe cherry-picks between two branches."""

from pathlib import Path
from typing import List, Optional

import typer
from rich import print
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress

from . import __version__
from .analysis import AnalysisReport, high_priority_orphans, run_analysis
from .config import (
    AnalysisSettings,
    get_analysis_settings,
    set_prefixes_command,
    show_config_command,
)
from .empty_commits import DetectionProgress
from .exceptions import CherryPlanError
from .plan import build_plan
from .snapshot import Snapshot
from .tables import (
    create_empty_commits_table,
    create_merge_table,
    create_orphan_table,
    create_plan_table,
    create_reason_summary_table,
    create_recommendations_table,
    create_statistics_table,
    display_report,
    display_warnings,
    print_json,
)

app = typer.Typer(
    name="cherryplan",
    help="Plan safe cherry-picks: empty commits, merge payloads and ticket-less commits",
    no_args_is_help=True,
)

console = Console()
# Status lines go to stderr so JSON on stdout stays parseable
err_console = Console(stderr=True)

SNAPSHOT_HELP = "YAML snapshot of the source range and the target branch"


def _settings(
    parallel: Optional[int],
    max_empty: Optional[int],
    ignore_whitespace: Optional[bool],
    verbose: bool,
) -> AnalysisSettings:
    """Configured settings with command-line overrides applied."""
    try:
        settings = get_analysis_settings()
    except CherryPlanError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    if parallel is not None:
        settings.parallelism = max(1, parallel)
    if max_empty is not None:
        settings.max_empty_commits = max_empty
    if ignore_whitespace is not None:
        settings.ignore_whitespace = ignore_whitespace
    settings.verbose = verbose
    return settings


def _run(snapshot_path: Path, settings: AnalysisSettings, show_progress: bool) -> AnalysisReport:
    """Load a snapshot and analyze it, exiting with an error message on failure."""
    try:
        snapshot = Snapshot.from_yaml(snapshot_path)

        if not show_progress:
            return run_analysis(
                snapshot.commits,
                snapshot.target_commits,
                snapshot.target_tree,
                snapshot.provider_factory,
                source_branch=snapshot.source_branch,
                target_branch=snapshot.target_branch,
                settings=settings,
                console=err_console,
            )

        with Progress(console=console, transient=True) as progress:
            task = progress.add_task("Checking commits...", total=len(snapshot.commits))

            def on_progress(update: DetectionProgress) -> None:
                progress.update(task, completed=update.processed_commits)

            return run_analysis(
                snapshot.commits,
                snapshot.target_commits,
                snapshot.target_tree,
                snapshot.provider_factory,
                source_branch=snapshot.source_branch,
                target_branch=snapshot.target_branch,
                settings=settings,
                progress=on_progress,
                console=console,
            )
    except CherryPlanError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _check_format(format_type: str) -> None:
    if format_type not in ("table", "json"):
        console.print(f"[red]Error: Unknown format '{format_type}', use table or json[/red]")
        raise typer.Exit(1)


@app.command("analyze")
def analyze(
    snapshot: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
    parallel: Optional[int] = typer.Option(
        None, "--parallel", "-p", help="Worker threads (default from config)"
    ),
    max_empty: Optional[int] = typer.Option(
        None, "--max-empty", min=1, help="Stop after this many empty commits"
    ),
    ignore_whitespace: Optional[bool] = typer.Option(
        None,
        "--ignore-whitespace/--no-ignore-whitespace",
        help="Treat files differing only in line endings or surrounding whitespace as equal",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show analysis steps"),
) -> None:
    """Run the full analysis: empty commits, merges and orphan commits."""
    _check_format(format_type)
    settings = _settings(parallel, max_empty, ignore_whitespace, verbose)
    report = _run(snapshot, settings, show_progress=format_type == "table")

    if format_type == "json":
        print_json(console, report.to_dict())
        return
    display_report(report, console)


@app.command("empty")
def empty(
    snapshot: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
    parallel: Optional[int] = typer.Option(
        None, "--parallel", "-p", help="Worker threads (default from config)"
    ),
    max_empty: Optional[int] = typer.Option(
        None, "--max-empty", min=1, help="Stop after this many empty commits"
    ),
    ignore_whitespace: Optional[bool] = typer.Option(
        None,
        "--ignore-whitespace/--no-ignore-whitespace",
        help="Treat files differing only in line endings or surrounding whitespace as equal",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show analysis steps"),
) -> None:
    """List commits that would produce an empty cherry-pick."""
    _check_format(format_type)
    settings = _settings(parallel, max_empty, ignore_whitespace, verbose)
    report = _run(snapshot, settings, show_progress=format_type == "table")
    result = report.empty_result

    if format_type == "json":
        print_json(console, result.to_dict())
        return

    console.print(f"[bold]{result.summary_message()}[/bold]")
    if result.empty_commits:
        console.print(create_reason_summary_table(result))
        console.print(create_empty_commits_table(result, report.graph))
    if result.skipped:
        console.print(f"[dim]{len(result.skipped)} commits not checked[/dim]")
    display_warnings(console, result.warnings)


@app.command("merges")
def merges(
    snapshot: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show analysis steps"),
) -> None:
    """Show what each merge brings in and how to cherry-pick it."""
    _check_format(format_type)
    settings = _settings(None, None, None, verbose)
    report = _run(snapshot, settings, show_progress=False)

    if format_type == "json":
        print_json(
            console,
            {
                "merges": [analysis.to_dict() for analysis in report.merge_analyses],
                "recommendations": report.to_dict()["recommendations"],
            },
        )
        return

    if not report.merge_analyses:
        console.print("[yellow]No merge commits in range[/yellow]")
        return
    console.print(create_merge_table(report.merge_analyses))
    if report.recommendations:
        console.print()
        console.print(create_recommendations_table(report.recommendations))


@app.command("orphans")
def orphans(
    snapshot: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
    high_only: bool = typer.Option(
        False, "--high-only", help="Only show orphans with High or Critical severity"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show analysis steps"),
) -> None:
    """List commits without a ticket reference and suggest tickets for them."""
    _check_format(format_type)
    settings = _settings(None, None, None, verbose)
    report = _run(snapshot, settings, show_progress=False)
    found = high_priority_orphans(report) if high_only else report.orphans

    if format_type == "json":
        print_json(console, {"orphans": [orphan.to_dict() for orphan in found]})
        return

    if not found:
        console.print("[green]✅ Every commit references a ticket[/green]")
        return
    console.print(create_orphan_table(found))
    console.print()
    console.print(create_statistics_table(report.statistics))


@app.command("plan")
def plan(
    snapshot: Path = typer.Argument(..., help=SNAPSHOT_HELP),
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
    tickets: Optional[List[str]] = typer.Option(
        None, "--ticket", "-t", help="Only plan commits for this ticket (repeatable)"
    ),
    min_confidence: float = typer.Option(
        0.0,
        "--min-confidence",
        min=0.0,
        help="Lowest suggestion confidence used to place ticket-less commits",
    ),
    parallel: Optional[int] = typer.Option(
        None, "--parallel", "-p", help="Worker threads (default from config)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show analysis steps"),
) -> None:
    """Build an ordered list of git cherry-pick commands."""
    _check_format(format_type)
    settings = _settings(parallel, None, None, verbose)
    report = _run(snapshot, settings, show_progress=format_type == "table")
    cherry_plan = build_plan(report, tickets=tickets, min_confidence=min_confidence)

    if format_type == "json":
        print_json(console, cherry_plan.to_dict())
        return

    if not cherry_plan.steps:
        console.print("[yellow]Nothing to cherry-pick[/yellow]")
    else:
        console.print(create_plan_table(cherry_plan))
        console.print(
            f"\n[bold]{len(cherry_plan.steps)} steps covering "
            f"{cherry_plan.commit_count} commits[/bold]"
        )
    if cherry_plan.skipped:
        console.print(
            f"[dim]{len(cherry_plan.skipped)} empty commits left out "
            "(already applied or no-op)[/dim]"
        )
    if cherry_plan.steps:
        console.print("[dim]Run the commands in order on the target branch[/dim]")
    display_warnings(console, report.warnings)


# Create config subcommand group
config_app = typer.Typer(name="config", help="Manage cherryplan configuration")
app.add_typer(config_app)


@config_app.command("set-prefixes")
def set_prefixes(
    prefixes: List[str] = typer.Argument(..., help="Valid ticket prefixes (e.g., HSAMED PROJ)"),
) -> None:
    """Set the ticket prefixes recognized in commit messages."""
    set_prefixes_command(prefixes)


@config_app.command("show")
def show(
    format_type: str = typer.Option("table", "--format", help="Output format: table or json"),
) -> None:
    """Show current configuration."""
    show_config_command(format_type)


@app.command()
def version() -> None:
    """Show version information."""
    print(f"Cherryplan version: [bold]{__version__}[/bold]")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
