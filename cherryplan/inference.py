"""Ticket inference for orphan commits.

Each scorer is a plain function ``(orphan, context) -> [TicketSuggestion]``.
Scorers know nothing about each other; ``rank_suggestions`` merges their
output by taking the strongest signal per ticket, so correlated heuristics
never add up.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Set, Tuple

from rich.console import Console

from .commit import CommitRecord
from .commit_graph import CommitGraph
from .exceptions import AnalysisCancelledError
from .merge_analysis import MergeAnalysis
from .orphans import OrphanCommit, TicketSuggestion, find_malformed_references

MAX_SUGGESTIONS = 5
DEFAULT_TEMPORAL_WINDOW = timedelta(hours=4)

MALFORMED_FIX_CONFIDENCE = 95.0
FILE_OVERLAP_CAP = 95.0
TEMPORAL_CAP = 70.0
TEMPORAL_WEIGHT_FACTOR = 40.0
MERGE_CONTEXT_BASE = 20.0
MERGE_CONTEXT_CAP = 95.0


@dataclass
class InferenceContext:
    """Read-only data shared by every scorer during one run."""

    graph: CommitGraph
    ticket_map: Dict[str, List[CommitRecord]]
    merge_analyses: List[MergeAnalysis] = field(default_factory=list)
    malformed_pattern: Optional[Pattern[str]] = None
    temporal_window: timedelta = DEFAULT_TEMPORAL_WINDOW
    ticket_files: Dict[str, Set[str]] = field(default_factory=dict)
    merges_by_commit: Dict[str, List[MergeAnalysis]] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        graph: CommitGraph,
        ticket_map: Dict[str, List[CommitRecord]],
        merge_analyses: Optional[List[MergeAnalysis]] = None,
        malformed_pattern: Optional[Pattern[str]] = None,
        temporal_window: timedelta = DEFAULT_TEMPORAL_WINDOW,
    ) -> "InferenceContext":
        """Build the context and its lookup indexes."""
        ticket_files = {
            ticket: {path for commit in commits for path in commit.modified_files}
            for ticket, commits in ticket_map.items()
        }

        merges_by_commit: Dict[str, List[MergeAnalysis]] = {}
        for analysis in merge_analyses or []:
            for sha in analysis.introduced_commits:
                merges_by_commit.setdefault(sha, []).append(analysis)

        return cls(
            graph=graph,
            ticket_map=ticket_map,
            merge_analyses=list(merge_analyses or []),
            malformed_pattern=malformed_pattern,
            temporal_window=temporal_window,
            ticket_files=ticket_files,
            merges_by_commit=merges_by_commit,
        )


Scorer = Callable[[OrphanCommit, InferenceContext], List[TicketSuggestion]]


def _clamp(confidence: float) -> float:
    return max(0.0, min(100.0, confidence))


def score_malformed_reference(
    orphan: OrphanCommit, context: InferenceContext
) -> List[TicketSuggestion]:
    """Propose the canonical form of a mistyped ticket reference."""
    return [
        TicketSuggestion(
            ticket_key=ticket,
            confidence=MALFORMED_FIX_CONFIDENCE,
            reasons=["malformed_reference", f"fix_reference_to_{ticket}"],
        )
        for ticket in find_malformed_references(orphan.commit.message, context.malformed_pattern)
    ]


def score_file_overlap(orphan: OrphanCommit, context: InferenceContext) -> List[TicketSuggestion]:
    """Tickets whose commits touched the same files as the orphan."""
    orphan_files = set(orphan.commit.modified_files)
    if not orphan_files:
        return []

    overlaps = []
    for ticket, files in context.ticket_files.items():
        common = orphan_files & files
        if common:
            overlaps.append((ticket, len(common)))

    suggestions = []
    for ticket, common_count in sorted(overlaps, key=lambda item: (-item[1], item[0]))[:3]:
        confidence = min(FILE_OVERLAP_CAP, 100.0 * common_count / len(orphan_files))
        suggestions.append(
            TicketSuggestion(
                ticket_key=ticket,
                confidence=_clamp(confidence),
                reasons=["file_overlap", f"{common_count}_common_files"],
            )
        )
    return suggestions


def score_temporal_clustering(
    orphan: OrphanCommit, context: InferenceContext
) -> List[TicketSuggestion]:
    """Tickets the same author referenced shortly before or after the orphan."""
    commit = orphan.commit
    weights: Dict[str, float] = {}

    for other in context.graph.commits.values():
        if other.sha == commit.sha or other.author != commit.author or not other.extracted_tickets:
            continue
        distance = abs(other.timestamp - commit.timestamp)
        if distance > context.temporal_window:
            continue

        weight = 1.0 / (1.0 + distance.total_seconds() / 60.0 / 60.0)
        for ticket in other.extracted_tickets:
            weights[ticket] = weights.get(ticket, 0.0) + weight

    ranked = sorted(weights.items(), key=lambda item: (-item[1], item[0]))[:3]
    return [
        TicketSuggestion(
            ticket_key=ticket,
            confidence=_clamp(min(TEMPORAL_CAP, weight * TEMPORAL_WEIGHT_FACTOR)),
            reasons=["temporal_clustering", f"by_{commit.author}"],
        )
        for ticket, weight in ranked
    ]


def score_merge_context(orphan: OrphanCommit, context: InferenceContext) -> List[TicketSuggestion]:
    """The dominant ticket among the other commits brought in by the same merge."""
    suggestions = []

    for analysis in context.merges_by_commit.get(orphan.commit.sha, []):
        counts: Dict[str, int] = {}
        for sha in analysis.introduced_commits:
            introduced = context.graph.get(sha)
            if introduced is None:
                continue
            for ticket in introduced.extracted_tickets:
                counts[ticket] = counts.get(ticket, 0) + 1

        if not counts:
            continue

        ticket, count = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[0]
        total = len(analysis.introduced_commits)
        confidence = min(MERGE_CONTEXT_CAP, MERGE_CONTEXT_BASE + 100.0 * count / total)
        suggestions.append(
            TicketSuggestion(
                ticket_key=ticket,
                confidence=_clamp(confidence),
                reasons=["merge_context", f"part_of_merge_{analysis.short_sha}"],
            )
        )

    return suggestions


DEFAULT_SCORERS: List[Tuple[str, Scorer]] = [
    ("malformed_fix", score_malformed_reference),
    ("file_overlap", score_file_overlap),
    ("temporal_clustering", score_temporal_clustering),
    ("merge_context", score_merge_context),
]


def rank_suggestions(
    tagged: Sequence[Tuple[str, TicketSuggestion]], limit: int = MAX_SUGGESTIONS
) -> List[TicketSuggestion]:
    """
    Merge suggestions from all scorers into one ranked list.

    Per ticket the confidence is the maximum across scorers and reasons are
    concatenated without duplicates. Sorted by confidence (descending, ties
    by ticket key) and cut to ``limit`` entries.
    """
    merged: Dict[str, TicketSuggestion] = {}

    for _, suggestion in tagged:
        key = suggestion.ticket_key.upper()
        existing = merged.get(key)
        if existing is None:
            merged[key] = TicketSuggestion(
                ticket_key=key,
                confidence=_clamp(suggestion.confidence),
                reasons=list(dict.fromkeys(suggestion.reasons)),
            )
            continue

        existing.confidence = max(existing.confidence, _clamp(suggestion.confidence))
        for reason in suggestion.reasons:
            if reason not in existing.reasons:
                existing.reasons.append(reason)

    ranked = sorted(merged.values(), key=lambda s: (-s.confidence, s.ticket_key))
    return ranked[: max(0, limit)]


class TicketInferenceEngine:
    """Runs every scorer for orphan commits and ranks the combined output."""

    def __init__(
        self,
        scorers: Optional[List[Tuple[str, Scorer]]] = None,
        max_suggestions: int = MAX_SUGGESTIONS,
        console: Optional[Console] = None,
        verbose: bool = False,
    ):
        self.scorers = list(scorers) if scorers is not None else list(DEFAULT_SCORERS)
        self.max_suggestions = max_suggestions
        self.console = console or Console()
        self.verbose = verbose

    def generate_suggestions(
        self,
        orphan: OrphanCommit,
        context: InferenceContext,
        warnings: Optional[List[str]] = None,
    ) -> List[TicketSuggestion]:
        """Ranked suggestions for one orphan; a failing scorer is skipped."""
        tagged: List[Tuple[str, TicketSuggestion]] = []

        for name, scorer in self.scorers:
            try:
                tagged.extend((name, suggestion) for suggestion in scorer(orphan, context))
            except Exception as e:
                message = f"Scorer {name} failed for {orphan.commit.short_sha}: {e}"
                if warnings is not None:
                    warnings.append(message)
                if self.verbose:
                    self.console.print(f"[yellow]Warning: {message}[/yellow]")

        return rank_suggestions(tagged, self.max_suggestions)

    def suggest_all(
        self,
        orphans: Sequence[OrphanCommit],
        context: InferenceContext,
        parallelism: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[str]:
        """
        Fill ``suggestions`` for every orphan.

        Scoring runs on ``parallelism`` threads; results are assigned after all
        workers finished. Returns the warnings collected along the way.

        Raises:
            AnalysisCancelledError: if ``cancel_event`` is set; orphans scored so far
                keep their suggestions
        """
        warnings: List[str] = []
        lock = threading.Lock()
        results: Dict[str, List[TicketSuggestion]] = {}

        def work(orphan: OrphanCommit) -> None:
            if cancel_event is not None and cancel_event.is_set():
                return
            local_warnings: List[str] = []
            suggestions = self.generate_suggestions(orphan, context, local_warnings)
            with lock:
                results[orphan.commit.sha] = suggestions
                warnings.extend(local_warnings)

        if parallelism <= 1:
            for orphan in orphans:
                work(orphan)
        else:
            with ThreadPoolExecutor(max_workers=parallelism) as executor:
                for future in [executor.submit(work, orphan) for orphan in orphans]:
                    future.result()

        for orphan in orphans:
            if orphan.commit.sha in results:
                orphan.suggestions = results[orphan.commit.sha]

        if self.verbose:
            with_suggestions = sum(1 for orphan in orphans if orphan.suggestions)
            self.console.print(
                f"[dim]Suggested tickets for {with_suggestions}/{len(orphans)} orphan commits[/dim]"
            )

        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("Ticket inference cancelled", list(orphans))
        return warnings
