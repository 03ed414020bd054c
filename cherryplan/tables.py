"""Rich tables and JSON output for analysis reports."""

import json
from typing import Any, Dict, List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .analysis import AnalysisReport, AnalysisStatistics
from .commit_graph import CommitGraph
from .empty_commits import EmptyCommitDetectionResult
from .formatting import format_confidence, format_short_sha
from .merge_analysis import CherryPickRecommendation, MergeAnalysis, MergeStrategy
from .orphans import OrphanCommit, OrphanSeverity
from .plan import CherryPickPlan, StepType

SEVERITY_STYLES = {
    OrphanSeverity.CRITICAL: "bold red",
    OrphanSeverity.HIGH: "red",
    OrphanSeverity.MEDIUM: "yellow",
    OrphanSeverity.LOW: "dim",
}

STRATEGY_STYLES = {
    MergeStrategy.ALREADY_APPLIED: "green",
    MergeStrategy.CHERRY_PICK_MERGE_COMMIT: "cyan",
    MergeStrategy.PARTIAL_CHERRY_PICK: "yellow",
    MergeStrategy.CHERRY_PICK_INDIVIDUALLY: "yellow",
    MergeStrategy.CONFLICT_RISK: "red",
}


def print_json(console: Console, data: Dict[str, Any]) -> None:
    """Print a dictionary as JSON, untouched by rich markup or wrapping."""
    console.print(json.dumps(data, indent=2), markup=False, highlight=False, soft_wrap=True)


def create_statistics_table(stats: AnalysisStatistics, title: str = "Analysis Summary") -> Table:
    """Two-column table with the headline numbers of a run."""
    table = Table(title=f"[bold]{title}[/bold]", show_header=False)
    table.add_column("Metric", style="bold cyan")
    table.add_column("Value", justify="right")

    table.add_row("Commits analyzed", str(stats.total_commits))
    table.add_row(
        "With tickets",
        f"{stats.commits_with_tickets} ({format_confidence(stats.ticket_coverage * 100)})",
    )
    table.add_row("Distinct tickets", str(stats.total_tickets))
    table.add_row("Empty cherry-picks", str(stats.empty_commits))
    table.add_row("Merge commits", str(stats.merge_commits))
    table.add_row("Incomplete merges", str(stats.incomplete_merges))
    table.add_row("Orphan commits", str(stats.orphan_commits))
    table.add_row("  with suggestions", str(stats.orphans_with_suggestions))
    table.add_row("  high priority", str(stats.high_priority_orphans))
    table.add_row("Duration", f"{stats.duration:.2f}s")
    return table


def create_empty_commits_table(result: EmptyCommitDetectionResult, graph: CommitGraph) -> Table:
    """One row per empty commit, in commit order."""
    table = Table(title="[bold]Empty Cherry-Picks[/bold]", expand=True)
    table.add_column("SHA", style="green", width=10)
    table.add_column("Date", style="dim", width=12, justify="center")
    table.add_column("Title", style="white", overflow="ellipsis", min_width=30)
    table.add_column("Reason", style="cyan")
    table.add_column("Skip", justify="center", width=5)
    table.add_column("Details", style="dim", overflow="fold")

    for sha, info in result.empty_commits.items():
        commit = graph.get(sha)
        table.add_row(
            format_short_sha(sha),
            commit.short_date if commit else "",
            escape(commit.short_message()) if commit else "",
            info.description,
            "[green]yes[/green]" if info.should_auto_skip else "[yellow]review[/yellow]",
            escape(info.details),
        )

    return table


def create_reason_summary_table(result: EmptyCommitDetectionResult) -> Table:
    """Count of empty commits per reason."""
    table = Table(title="[bold]Empty Commits by Reason[/bold]")
    table.add_column("Reason", style="cyan")
    table.add_column("Count", justify="right")

    for reason, count in sorted(result.reason_counts.items(), key=lambda item: -item[1]):
        table.add_row(reason.value, str(count))

    return table


def create_merge_table(analyses: Sequence[MergeAnalysis]) -> Table:
    """Merge commits with their introduced/missing counts and strategy."""
    table = Table(title="[bold]Merge Commits[/bold]", expand=True)
    table.add_column("Merge", style="green", width=10)
    table.add_column("Title", style="white", overflow="ellipsis", min_width=30)
    table.add_column("Introduced", justify="center")
    table.add_column("Missing", justify="center")
    table.add_column("Strategy")
    table.add_column("Reason", style="dim", overflow="fold")

    for analysis in analyses:
        style = STRATEGY_STYLES.get(analysis.strategy, "")
        missing = len(analysis.missing_commits)
        table.add_row(
            analysis.short_sha,
            escape(analysis.message.strip().split("\n")[0]),
            str(len(analysis.introduced_commits)),
            f"[red]{missing}[/red]" if missing else "[green]0[/green]",
            f"[{style}]{analysis.strategy.value}[/{style}]" if style else analysis.strategy.value,
            escape(analysis.strategy_reason),
        )

    return table


def create_recommendations_table(recommendations: Sequence[CherryPickRecommendation]) -> Table:
    table = Table(title="[bold]Recommended Steps[/bold]", expand=True)
    table.add_column("Priority", justify="center", width=8)
    table.add_column("Command", style="bold")
    table.add_column("Description", style="dim")

    priority_labels = {1: "[red]high[/red]", 2: "[yellow]medium[/yellow]", 3: "[dim]low[/dim]"}
    for recommendation in recommendations:
        table.add_row(
            priority_labels.get(recommendation.priority, str(recommendation.priority)),
            escape(recommendation.command),
            recommendation.description,
        )

    return table


def create_plan_table(plan: CherryPickPlan) -> Table:
    """Numbered plan steps with the git command to run for each."""
    table = Table(
        title=f"[bold]Cherry-pick Plan: {plan.target_branch}..{plan.source_branch}[/bold]",
        expand=True,
    )
    table.add_column("#", justify="right", width=4)
    table.add_column("Type", width=8)
    table.add_column("Description", style="white", overflow="ellipsis", min_width=30)
    table.add_column("Git Command", style="cyan")

    for number, step in enumerate(plan.steps, start=1):
        icon = "🔀 merge" if step.step_type == StepType.MERGE_COMMIT else "🍒 pick"
        description = escape(step.description)
        if step.is_empty:
            description += f" [yellow]({escape(step.empty_reason or 'empty')})[/yellow]"
        table.add_row(str(number), icon, description, escape(step.git_command))

    return table


def create_orphan_table(orphans: Sequence[OrphanCommit], title: str = "Orphan Commits") -> Table:
    """Orphans with severity, reason and the best ticket suggestion."""
    table = Table(title=f"[bold]{title}[/bold]", expand=True)
    table.add_column("SHA", style="green", width=10)
    table.add_column("Author", style="dim", width=15)
    table.add_column("Title", style="white", overflow="ellipsis", min_width=30)
    table.add_column("Severity", width=9)
    table.add_column("Reason", style="dim")
    table.add_column("Suggested", style="cyan")
    table.add_column("Confidence", justify="right")

    for orphan in orphans:
        style = SEVERITY_STYLES.get(orphan.severity, "")
        best = orphan.best_suggestion
        table.add_row(
            orphan.commit.short_sha,
            orphan.commit.author,
            escape(orphan.commit.short_message()),
            f"[{style}]{orphan.severity.label}[/{style}]",
            orphan.reason,
            best.ticket_key if best else "",
            format_confidence(best.confidence) if best else "",
        )

    return table


def display_warnings(console: Console, warnings: List[str], limit: Optional[int] = 10) -> None:
    if not warnings:
        return
    shown = warnings if limit is None else warnings[:limit]
    for warning in shown:
        console.print(f"[yellow]⚠️  {escape(warning)}[/yellow]")
    if limit is not None and len(warnings) > limit:
        console.print(f"[dim]... and {len(warnings) - limit} more warnings[/dim]")


def display_report(report: AnalysisReport, console: Console) -> None:
    """Full table output of the ``analyze`` command."""
    console.print(
        f"[bold]Cherry-pick analysis: {report.target_branch}..{report.source_branch}[/bold]"
    )
    console.print()
    console.print(create_statistics_table(report.statistics))

    if report.empty_result.empty_commits:
        console.print()
        console.print(create_empty_commits_table(report.empty_result, report.graph))

    if report.merge_analyses:
        console.print()
        console.print(create_merge_table(report.merge_analyses))

    if report.recommendations:
        console.print()
        console.print(create_recommendations_table(report.recommendations))

    if report.orphans:
        console.print()
        console.print(create_orphan_table(report.orphans))

    console.print()
    display_warnings(console, report.warnings)
