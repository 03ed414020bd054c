"""End-to-end cherry-pick analysis between two branches."""

import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from rich.console import Console

from .commit import CommitRecord
from .commit_graph import CommitGraph
from .config import AnalysisSettings
from .empty_commits import (
    EmptyCommitDetectionResult,
    EmptyCommitDetector,
    EmptyCommitDetectorOptions,
    ProgressCallback,
    TargetContext,
)
from .exceptions import InvalidReferenceError
from .inference import InferenceContext, TicketInferenceEngine
from .merge_analysis import CherryPickRecommendation, MergeAnalysis, MergeCommitAnalyzer
from .orphans import OrphanCommit, OrphanCommitDetector, OrphanSeverity, OrphanStatistics
from .tickets import PatternSet, TicketExtractor
from .tree import ProviderFactory, TreeSnapshot


@dataclass
class AnalysisStatistics:
    """Headline numbers of an analysis run."""

    total_commits: int = 0
    commits_with_tickets: int = 0
    orphan_commits: int = 0
    orphans_with_suggestions: int = 0
    high_priority_orphans: int = 0
    merge_commits: int = 0
    incomplete_merges: int = 0
    total_tickets: int = 0
    empty_commits: int = 0
    duration: float = 0.0

    @property
    def ticket_coverage(self) -> float:
        if not self.total_commits:
            return 0.0
        return self.commits_with_tickets / self.total_commits

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_commits": self.total_commits,
            "commits_with_tickets": self.commits_with_tickets,
            "ticket_coverage": round(self.ticket_coverage, 4),
            "orphan_commits": self.orphan_commits,
            "orphans_with_suggestions": self.orphans_with_suggestions,
            "high_priority_orphans": self.high_priority_orphans,
            "merge_commits": self.merge_commits,
            "incomplete_merges": self.incomplete_merges,
            "total_tickets": self.total_tickets,
            "empty_commits": self.empty_commits,
            "duration": round(self.duration, 3),
        }


@dataclass
class AnalysisReport:
    """Everything an analysis run produced, ready for tables or JSON."""

    source_branch: str
    target_branch: str
    graph: CommitGraph
    ticket_map: Dict[str, List[CommitRecord]] = field(default_factory=dict)
    merge_analyses: List[MergeAnalysis] = field(default_factory=list)
    recommendations: List[CherryPickRecommendation] = field(default_factory=list)
    empty_result: EmptyCommitDetectionResult = field(default_factory=EmptyCommitDetectionResult)
    orphans: List[OrphanCommit] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    statistics: AnalysisStatistics = field(default_factory=AnalysisStatistics)

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "source_branch": self.source_branch,
            "target_branch": self.target_branch,
            "statistics": self.statistics.to_dict(),
            "tickets": {
                ticket: [commit.sha for commit in commits]
                for ticket, commits in sorted(self.ticket_map.items())
            },
            "merges": [analysis.to_dict() for analysis in self.merge_analyses],
            "recommendations": [
                {
                    "kind": rec.kind,
                    "command": rec.command,
                    "description": rec.description,
                    "reason": rec.reason,
                    "priority": rec.priority,
                }
                for rec in self.recommendations
            ],
            "empty_commits": self.empty_result.to_dict(),
            "orphans": [orphan.to_dict() for orphan in self.orphans],
            "warnings": list(self.warnings),
        }


def validate_inputs(
    source_branch: str,
    target_branch: str,
    target_commits: Optional[Iterable[str]],
    target_tree: Optional[TreeSnapshot],
) -> None:
    """Reject missing branch references before any analysis starts."""
    if not source_branch:
        raise InvalidReferenceError("Source branch is not set")
    if not target_branch:
        raise InvalidReferenceError("Target branch is not set")
    if source_branch == target_branch:
        raise InvalidReferenceError(f"Source and target branch are both '{source_branch}'")
    if target_commits is None:
        raise InvalidReferenceError(f"No commits known for target branch '{target_branch}'")
    if target_tree is None:
        raise InvalidReferenceError(f"No tree known for the tip of '{target_branch}'")


def run_analysis(
    commits: Sequence[CommitRecord],
    target_commits: Iterable[str],
    target_tree: TreeSnapshot,
    provider_factory: ProviderFactory,
    source_branch: str,
    target_branch: str,
    settings: Optional[AnalysisSettings] = None,
    cancel_event: Optional[threading.Event] = None,
    progress: Optional[ProgressCallback] = None,
    console: Optional[Console] = None,
) -> AnalysisReport:
    """
    Analyze the commits of ``target..source``.

    ``commits`` must be oldest-first. Graph, target commit set and target tree
    are built once and treated as read-only by every later step.

    Raises:
        InvalidReferenceError: for missing branch or tree references
        InvalidCommitError: for malformed commit records
        AnalysisCancelledError: when ``cancel_event`` is set during the run
    """
    settings = settings or AnalysisSettings()
    console = console or Console()
    started = time.perf_counter()

    validate_inputs(source_branch, target_branch, target_commits, target_tree)

    def status(message: str) -> None:
        if settings.verbose:
            console.print(f"[dim]{message}[/dim]")

    status("📊 Building commit graph...")
    graph = CommitGraph.build(commits, source_branch=source_branch, target_branch=target_branch)
    target = TargetContext.create(target_branch, target_commits, target_tree)

    status("🎫 Extracting tickets from commit messages...")
    extractor = TicketExtractor(settings.ticket_prefixes, PatternSet())
    ticket_map = extractor.build_ticket_commit_map(graph)

    status("🔀 Analyzing merge commits...")
    merge_analyzer = MergeCommitAnalyzer(console=console, verbose=settings.verbose)
    merge_analyses = merge_analyzer.analyze_merges(graph, target.commit_shas)

    status("🔍 Checking commits for empty cherry-picks...")
    detector = EmptyCommitDetector(
        provider_factory,
        EmptyCommitDetectorOptions(
            ignore_whitespace=settings.ignore_whitespace,
            ignore_paths=list(settings.ignore_paths),
            parallelism=settings.parallelism,
            max_empty_commits=settings.max_empty_commits,
            verbose=settings.verbose,
        ),
        console=console,
    )
    ordered_commits = list(graph.commits.values())
    if settings.parallelism > 1:
        empty_result = detector.detect_parallel(ordered_commits, target, progress, cancel_event)
    else:
        empty_result = detector.detect(ordered_commits, target, progress, cancel_event)

    status("🏴 Detecting orphan commits...")
    orphan_detector = OrphanCommitDetector(settings.ticket_prefixes)
    orphans = orphan_detector.find_orphans(graph)

    context = InferenceContext.create(
        graph,
        ticket_map,
        merge_analyses,
        malformed_pattern=orphan_detector.malformed_pattern,
        temporal_window=timedelta(hours=settings.temporal_window_hours),
    )
    engine = TicketInferenceEngine(
        max_suggestions=settings.max_suggestions, console=console, verbose=settings.verbose
    )
    inference_warnings = engine.suggest_all(orphans, context, settings.parallelism, cancel_event)

    report = AnalysisReport(
        source_branch=source_branch,
        target_branch=target_branch,
        graph=graph,
        ticket_map=ticket_map,
        merge_analyses=merge_analyses,
        recommendations=MergeCommitAnalyzer.recommendations(merge_analyses),
        empty_result=empty_result,
        orphans=orphans,
        warnings=list(merge_analyzer.warnings) + list(empty_result.warnings) + inference_warnings,
    )
    report.statistics = build_statistics(report, time.perf_counter() - started)

    status(f"✅ Analysis finished in {report.statistics.duration:.2f}s")
    return report


def build_statistics(report: AnalysisReport, duration: float = 0.0) -> AnalysisStatistics:
    """Compute headline numbers for a report."""
    orphan_stats = OrphanStatistics.from_orphans(report.orphans)
    commits_with_tickets = {
        commit.sha for commits in report.ticket_map.values() for commit in commits
    }

    return AnalysisStatistics(
        total_commits=len(report.graph),
        commits_with_tickets=len(commits_with_tickets),
        orphan_commits=orphan_stats.total_orphans,
        orphans_with_suggestions=orphan_stats.orphans_with_suggestions,
        high_priority_orphans=orphan_stats.high_priority_orphans,
        merge_commits=len(report.graph.merge_commits()),
        incomplete_merges=sum(1 for a in report.merge_analyses if not a.is_complete_in_target),
        total_tickets=len(report.ticket_map),
        empty_commits=len(report.empty_result.empty_commits),
        duration=duration,
    )


def high_priority_orphans(report: AnalysisReport) -> List[OrphanCommit]:
    """Orphans with severity High or Critical, most severe first."""
    return sorted(
        (orphan for orphan in report.orphans if orphan.severity >= OrphanSeverity.HIGH),
        key=lambda orphan: -orphan.severity,
    )
