"""Ordered cherry-pick plans built from an analysis report."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set

from .analysis import AnalysisReport
from .commit import CommitRecord
from .empty_commits import EmptyCommitInfo
from .merge_analysis import MergeStrategy
from .orphans import OrphanCommit

NO_TICKET = "NO_TICKET"


class StepType(str, Enum):
    """How a plan step is applied."""

    SINGLE_COMMIT = "SingleCommit"
    MERGE_COMMIT = "MergeCommit"


@dataclass
class CherryPickStep:
    """One git command of a cherry-pick plan."""

    step_type: StepType
    commit_shas: List[str]
    description: str
    git_command: str
    ticket: str = ""
    is_empty: bool = False
    empty_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "type": self.step_type.value,
            "commits": list(self.commit_shas),
            "description": self.description,
            "command": self.git_command,
            "ticket": self.ticket,
            "is_empty": self.is_empty,
            "empty_reason": self.empty_reason,
        }


@dataclass
class CherryPickPlan:
    """Steps to run in order, plus the empty commits left out of them."""

    source_branch: str
    target_branch: str
    steps: List[CherryPickStep] = field(default_factory=list)
    skipped: List[EmptyCommitInfo] = field(default_factory=list)

    @property
    def commit_count(self) -> int:
        return sum(len(step.commit_shas) for step in self.steps)

    @property
    def tickets(self) -> List[str]:
        return sorted({step.ticket for step in self.steps if step.ticket not in ("", NO_TICKET)})

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "source_branch": self.source_branch,
            "target_branch": self.target_branch,
            "steps": [step.to_dict() for step in self.steps],
            "skipped": [info.to_dict() for info in self.skipped],
            "commit_count": self.commit_count,
            "tickets": self.tickets,
        }


def resolve_ticket(
    commit: CommitRecord,
    orphans_by_sha: Dict[str, OrphanCommit],
    min_confidence: float = 0.0,
) -> str:
    """Ticket a commit is planned under: its own, the best suggestion, or NO_TICKET."""
    if commit.extracted_tickets:
        return commit.extracted_tickets[0]

    orphan = orphans_by_sha.get(commit.sha)
    if orphan is not None:
        best = orphan.best_suggestion
        if best is not None and best.confidence >= min_confidence:
            return best.ticket_key
    return NO_TICKET


def _ticket_order(ticket: str):
    # NO_TICKET goes last so ticketed work is applied first
    return (ticket == NO_TICKET, ticket)


def _commit_step(
    commit: CommitRecord, ticket: str, empty: Optional[EmptyCommitInfo]
) -> CherryPickStep:
    command = f"git cherry-pick {commit.short_sha}"
    step = CherryPickStep(
        step_type=StepType.SINGLE_COMMIT,
        commit_shas=[commit.sha],
        description=f"{ticket}: {commit.title}",
        git_command=command,
        ticket=ticket,
    )
    if empty is not None:
        step.is_empty = True
        step.empty_reason = empty.description
        step.git_command = empty.git_command(command)
    return step


def build_plan(
    report: AnalysisReport,
    tickets: Optional[Iterable[str]] = None,
    min_confidence: float = 0.0,
) -> CherryPickPlan:
    """
    Order the commits of a report into cherry-pick steps.

    Merges recommended for a single ``-m 1`` pick come first, in history
    order, and absorb every commit they introduce. The remaining non-merge
    commits are grouped by ticket (extracted, else the best suggestion at or
    above ``min_confidence``, else NO_TICKET), groups sorted by key with
    NO_TICKET last, commits in a group sorted by timestamp.

    Empty commits that can be skipped without review are left out of the
    steps and listed in ``skipped``; other empty commits keep a step with an
    annotated ``--allow-empty`` command. A skipped merge still covers the
    commits it introduces.

    Args:
        report: Output of ``run_analysis``
        tickets: Only plan commits resolved to one of these tickets
        min_confidence: Lowest suggestion confidence accepted for orphan commits
    """
    graph = report.graph
    empty = report.empty_result.empty_commits
    orphans_by_sha = {orphan.sha: orphan for orphan in report.orphans}
    wanted = {ticket.upper() for ticket in tickets} if tickets else None

    resolved = {
        commit.sha: resolve_ticket(commit, orphans_by_sha, min_confidence) for commit in graph
    }
    selected = [
        commit for commit in graph if wanted is None or resolved[commit.sha].upper() in wanted
    ]
    selected_shas = {commit.sha for commit in selected}

    plan = CherryPickPlan(source_branch=report.source_branch, target_branch=report.target_branch)
    skipped_shas: Set[str] = set()
    processed: Set[str] = set()

    def skip(sha: str) -> bool:
        info = empty.get(sha)
        if info is None or not info.should_auto_skip:
            return False
        if sha not in skipped_shas:
            skipped_shas.add(sha)
            plan.skipped.append(info)
        return True

    for analysis in report.merge_analyses:
        if analysis.merge_sha in processed:
            continue
        if analysis.strategy != MergeStrategy.CHERRY_PICK_MERGE_COMMIT:
            continue
        brought_in = [sha for sha in analysis.introduced_commits if sha in selected_shas]
        if not brought_in:
            continue

        processed.update(brought_in)
        processed.add(analysis.merge_sha)
        if skip(analysis.merge_sha):
            continue

        merge = graph.get(analysis.merge_sha)
        title = merge.title if merge is not None else analysis.message.split("\n")[0]
        ticket = merge.extracted_tickets[0] if merge is not None and merge.extracted_tickets else ""
        command = f"git cherry-pick -m 1 {analysis.short_sha}"
        step = CherryPickStep(
            step_type=StepType.MERGE_COMMIT,
            commit_shas=[analysis.merge_sha],
            description=f"Preserve merge {title}",
            git_command=command,
            ticket=ticket,
        )
        info = empty.get(analysis.merge_sha)
        if info is not None:
            step.is_empty = True
            step.empty_reason = info.description
            # empty merge is kept in history, conflicts resolve toward the target
            step.git_command = (
                f"git cherry-pick -m 1 --strategy recursive -X ours {analysis.short_sha} "
                f"--allow-empty # {info.reason.value}"
            )
        plan.steps.append(step)

    groups: Dict[str, List[CommitRecord]] = {}
    for commit in selected:
        if commit.sha in processed or commit.is_merge_commit:
            continue
        if skip(commit.sha):
            continue
        groups.setdefault(resolved[commit.sha], []).append(commit)

    for ticket in sorted(groups, key=_ticket_order):
        # sorted() is stable, so equal timestamps keep history order
        for commit in sorted(groups[ticket], key=lambda c: c.timestamp):
            plan.steps.append(_commit_step(commit, ticket, empty.get(commit.sha)))

    return plan
