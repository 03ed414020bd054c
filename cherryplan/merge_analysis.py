"""Analysis of the commits introduced by merge commits."""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import AbstractSet, Dict, List, Optional, Set

from rich.console import Console

from .commit import CommitRecord
from .commit_graph import CommitGraph, ancestors
from .formatting import format_short_sha

EQUIVALENCE_WINDOW = timedelta(hours=24)


class MergeStrategy(str, Enum):
    """Recommended way to bring a merge onto the target branch."""

    CHERRY_PICK_MERGE_COMMIT = "CherryPickMergeCommit"
    CHERRY_PICK_INDIVIDUALLY = "CherryPickIndividually"
    PARTIAL_CHERRY_PICK = "PartialCherryPick"
    ALREADY_APPLIED = "AlreadyApplied"
    CONFLICT_RISK = "ConflictRisk"


@dataclass
class MergeAnalysis:
    """What a merge commit brings in and how much of it the target already has."""

    merge_sha: str
    message: str
    first_parent: str
    other_parents: List[str]
    introduced_commits: Set[str] = field(default_factory=set)
    missing_commits: List[str] = field(default_factory=list)
    strategy: MergeStrategy = MergeStrategy.ALREADY_APPLIED
    strategy_reason: str = ""

    @property
    def is_complete_in_target(self) -> bool:
        """Every introduced commit is already on the target branch."""
        return not self.missing_commits

    @property
    def second_parent(self) -> str:
        return self.other_parents[0] if self.other_parents else ""

    @property
    def can_cherry_pick_merge(self) -> bool:
        return self.strategy in (
            MergeStrategy.CHERRY_PICK_MERGE_COMMIT,
            MergeStrategy.PARTIAL_CHERRY_PICK,
        )

    @property
    def should_cherry_pick_individually(self) -> bool:
        return self.strategy in (
            MergeStrategy.PARTIAL_CHERRY_PICK,
            MergeStrategy.CHERRY_PICK_INDIVIDUALLY,
            MergeStrategy.CONFLICT_RISK,
        )

    @property
    def short_sha(self) -> str:
        return format_short_sha(self.merge_sha)

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "merge_sha": self.merge_sha,
            "message": self.message.split("\n")[0],
            "first_parent": self.first_parent,
            "other_parents": list(self.other_parents),
            "introduced_commits": sorted(self.introduced_commits),
            "missing_commits": list(self.missing_commits),
            "is_complete_in_target": self.is_complete_in_target,
            "strategy": self.strategy.value,
            "strategy_reason": self.strategy_reason,
        }


@dataclass
class CherryPickRecommendation:
    """One actionable step derived from a merge analysis."""

    kind: str  # "merge", "individual" or "manual"
    command: str
    description: str
    reason: str
    priority: int  # 1 = high, 2 = medium, 3 = low


def introduced_by_merge(graph: CommitGraph, merge: CommitRecord) -> Set[str]:
    """
    Commits a merge brings in from its non-first parents.

    Equivalent to ``git rev-list p1 [p2 ...] ^p0``: everything reachable from
    the merged parents that is not already an ancestor of the first parent.
    """
    if not merge.is_merge_commit:
        return set()

    mainline = ancestors(graph, merge.parent_shas[0])
    introduced: Set[str] = set()
    for parent in merge.parent_shas[1:]:
        introduced |= ancestors(graph, parent) - mainline
    return introduced


class MergeCommitAnalyzer:
    """Computes MergeAnalysis records for every merge in a commit graph."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose
        self.warnings: List[str] = []

    def analyze_merges(
        self, graph: CommitGraph, target_commits: AbstractSet[str]
    ) -> List[MergeAnalysis]:
        """
        Analyze each merge commit in the graph against the target branch.

        A merge that cannot be analyzed is left out of the result and its
        error is recorded in ``self.warnings``.
        """
        analyses = []
        self.warnings = []

        for merge in graph.merge_commits():
            try:
                analyses.append(self.analyze_merge(graph, merge, target_commits))
            except Exception as e:
                message = f"Failed to analyze merge {merge.short_sha}: {e}"
                self.warnings.append(message)
                if self.verbose:
                    self.console.print(f"[yellow]Warning: {message}[/yellow]")

        if self.verbose:
            incomplete = sum(1 for analysis in analyses if not analysis.is_complete_in_target)
            self.console.print(
                f"[dim]Analyzed {len(analyses)} merges, {incomplete} not fully in target[/dim]"
            )
        return analyses

    def analyze_merge(
        self, graph: CommitGraph, merge: CommitRecord, target_commits: AbstractSet[str]
    ) -> MergeAnalysis:
        """Analyze a single merge commit."""
        introduced = introduced_by_merge(graph, merge)
        # Oldest first for range commits, then anything from before the range
        missing = [sha for sha in graph.commits if sha in introduced and sha not in target_commits]
        missing += sorted(
            sha for sha in introduced if sha not in graph.commits and sha not in target_commits
        )
        first_parent = merge.parent_shas[0]
        strategy, reason = self._determine_strategy(
            graph, first_parent, introduced, missing, target_commits
        )

        return MergeAnalysis(
            merge_sha=merge.sha,
            message=merge.message,
            first_parent=first_parent,
            other_parents=list(merge.parent_shas[1:]),
            introduced_commits=introduced,
            missing_commits=missing,
            strategy=strategy,
            strategy_reason=reason,
        )

    def _determine_strategy(
        self,
        graph: CommitGraph,
        first_parent: str,
        introduced: Set[str],
        missing: List[str],
        target_commits: AbstractSet[str],
    ):
        if not missing:
            return (
                MergeStrategy.ALREADY_APPLIED,
                "All commits from this merge already exist in target",
            )

        if first_parent not in target_commits and not self.has_equivalent_in_target(
            graph, first_parent, target_commits
        ):
            return (
                MergeStrategy.CONFLICT_RISK,
                f"First parent {format_short_sha(first_parent)} not found in target - "
                "merge cherry-pick not possible",
            )

        existing = len(introduced) - len(missing)
        if existing == 0:
            return (
                MergeStrategy.CHERRY_PICK_MERGE_COMMIT,
                "All introduced commits are missing - merge cherry-pick is ideal",
            )

        if len(missing) < len(introduced) * 0.5:
            return (
                MergeStrategy.PARTIAL_CHERRY_PICK,
                f"{existing} commits already exist, {len(missing)} missing - "
                "consider individual cherry-pick",
            )

        return (
            MergeStrategy.CHERRY_PICK_MERGE_COMMIT,
            f"Most commits missing ({len(missing)}/{len(introduced)}) - "
            "merge cherry-pick recommended",
        )

    @staticmethod
    def has_equivalent_in_target(
        graph: CommitGraph, commit_sha: str, target_commits: AbstractSet[str]
    ) -> bool:
        """Whether a target commit in the graph matches by message, author and day."""
        commit = graph.get(commit_sha)
        if commit is None:
            return False

        for target_sha in target_commits:
            other = graph.get(target_sha)
            if other is None or other.sha == commit.sha:
                continue
            if (
                other.message == commit.message
                and other.author == commit.author
                and abs(other.timestamp - commit.timestamp) < EQUIVALENCE_WINDOW
            ):
                return True
        return False

    @staticmethod
    def recommendations(analyses: List[MergeAnalysis]) -> List[CherryPickRecommendation]:
        """Actionable cherry-pick steps, highest priority first."""
        recommendations = []

        for analysis in analyses:
            if analysis.strategy == MergeStrategy.CHERRY_PICK_MERGE_COMMIT:
                recommendations.append(
                    CherryPickRecommendation(
                        kind="merge",
                        command=f"git cherry-pick -m 1 {analysis.merge_sha}",
                        description=(
                            f"Cherry-pick merge commit {analysis.short_sha} as single operation"
                        ),
                        reason=analysis.strategy_reason,
                        priority=1,
                    )
                )
            elif analysis.strategy in (
                MergeStrategy.CHERRY_PICK_INDIVIDUALLY,
                MergeStrategy.PARTIAL_CHERRY_PICK,
            ):
                for sha in analysis.missing_commits:
                    recommendations.append(
                        CherryPickRecommendation(
                            kind="individual",
                            command=f"git cherry-pick {sha}",
                            description=f"Cherry-pick individual commit {format_short_sha(sha)}",
                            reason=analysis.strategy_reason,
                            priority=2,
                        )
                    )
            elif analysis.strategy == MergeStrategy.CONFLICT_RISK:
                recommendations.append(
                    CherryPickRecommendation(
                        kind="manual",
                        command=f"# Manual intervention needed for {analysis.short_sha}",
                        description=f"Manual review required for merge {analysis.short_sha}",
                        reason=analysis.strategy_reason,
                        priority=3,
                    )
                )

        return sorted(recommendations, key=lambda recommendation: recommendation.priority)

