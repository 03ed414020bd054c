"""Detection of commits that would produce an empty cherry-pick."""

import fnmatch
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from rich.console import Console

from .commit import CommitRecord
from .exceptions import AnalysisCancelledError, CommitAnalysisError, ConfigError
from .formatting import format_short_sha
from .tree import (
    ChangeKind,
    ProviderFactory,
    TreeChange,
    TreeProvider,
    TreeSnapshot,
    is_binary_content,
    normalize_text,
)

REVERT_COMMIT_PATTERN = re.compile(r"This reverts commit ([a-f0-9]{40})", re.IGNORECASE)

DEFAULT_IGNORE_PATHS = ["packages.lock.json"]


class EmptyReason(str, Enum):
    """Why a cherry-pick would be empty."""

    UNKNOWN = "Unknown"
    CHANGES_ALREADY_APPLIED = "ChangesAlreadyApplied"
    NO_OP_MERGE = "NoOpMerge"
    MERGED_CHANGES_ALREADY_PRESENT = "MergedChangesAlreadyPresent"
    REVERT_OF_NON_EXISTENT_CHANGES = "RevertOfNonExistentChanges"


REASON_DESCRIPTIONS = {
    EmptyReason.CHANGES_ALREADY_APPLIED: "✓ Changes already in target",
    EmptyReason.NO_OP_MERGE: "⊘ No-op merge (no changes)",
    EmptyReason.MERGED_CHANGES_ALREADY_PRESENT: "🔀 Merge already applied",
    EmptyReason.REVERT_OF_NON_EXISTENT_CHANGES: "↩ Reverting non-existent changes",
}

AUTO_SKIP_REASONS = {
    EmptyReason.CHANGES_ALREADY_APPLIED,
    EmptyReason.NO_OP_MERGE,
    EmptyReason.MERGED_CHANGES_ALREADY_PRESENT,
}


@dataclass(frozen=True)
class EmptyCommitInfo:
    """Classification attached to a commit judged empty."""

    commit_sha: str
    reason: EmptyReason
    details: str = ""

    @property
    def description(self) -> str:
        """User-friendly label for the reason."""
        return REASON_DESCRIPTIONS.get(self.reason, "? Unknown reason")

    @property
    def should_auto_skip(self) -> bool:
        """Whether the commit can be dropped from a cherry-pick plan without review."""
        return self.reason in AUTO_SKIP_REASONS

    def git_command(self, original_command: str) -> str:
        """Annotate a cherry-pick command according to the reason."""
        if self.reason == EmptyReason.NO_OP_MERGE:
            return f"{original_command} --allow-empty # No-op merge"
        if self.reason == EmptyReason.CHANGES_ALREADY_APPLIED:
            return f"# Skip: {original_command} # Changes already applied"
        return f"{original_command} --allow-empty # {self.reason.value}"

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON output."""
        return {"sha": self.commit_sha, "reason": self.reason.value, "details": self.details}


@dataclass
class EmptyCommitDetectorOptions:
    """Knobs for empty-commit detection."""

    ignore_whitespace: bool = True
    ignore_paths: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATHS))
    parallelism: int = 4
    max_empty_commits: Optional[int] = None
    verbose: bool = False

    def __post_init__(self):
        if self.max_empty_commits is not None and self.max_empty_commits < 1:
            raise ConfigError(
                f"max_empty_commits must be at least 1, got {self.max_empty_commits}"
            )


@dataclass(frozen=True)
class TargetContext:
    """Read-only view of the target branch shared by every per-commit check."""

    branch: str
    commit_shas: FrozenSet[str]
    tree: TreeSnapshot

    @classmethod
    def create(cls, branch: str, commit_shas: Iterable[str], tree: TreeSnapshot) -> "TargetContext":
        return cls(branch=branch, commit_shas=frozenset(commit_shas), tree=tree)


@dataclass
class DetectionProgress:
    """Progress snapshot handed to progress callbacks."""

    processed_commits: int
    total_commits: int
    empty_commits: int
    current_commit: str = ""

    @property
    def percent_complete(self) -> float:
        if not self.total_commits:
            return 100.0
        return self.processed_commits * 100.0 / self.total_commits


ProgressCallback = Callable[[DetectionProgress], None]


@dataclass
class EmptyCommitDetectionResult:
    """Outcome of a detection run over a list of commits."""

    empty_commits: Dict[str, EmptyCommitInfo] = field(default_factory=dict)
    reason_counts: Dict[EmptyReason, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    total_commits_analyzed: int = 0
    detection_time: float = 0.0
    stopped_early: bool = False

    def add(self, info: EmptyCommitInfo) -> None:
        self.empty_commits[info.commit_sha] = info
        self.reason_counts[info.reason] = self.reason_counts.get(info.reason, 0) + 1

    def summary_message(self) -> str:
        if not self.empty_commits:
            return "No empty commits detected"

        parts = [
            f"{count} {reason.value}"
            for reason, count in sorted(self.reason_counts.items(), key=lambda item: -item[1])
        ]
        return f"Found {len(self.empty_commits)} empty commits: {', '.join(parts)}"

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "summary": self.summary_message(),
            "total_commits_analyzed": self.total_commits_analyzed,
            "detection_time": round(self.detection_time, 3),
            "stopped_early": self.stopped_early,
            "reason_counts": {reason.value: count for reason, count in self.reason_counts.items()},
            "empty_commits": [info.to_dict() for info in self.empty_commits.values()],
            "warnings": list(self.warnings),
            "skipped": list(self.skipped),
        }


class EmptyCommitDetector:
    """
    Classifies commits that would produce no changes when cherry-picked.

    The target context is built once per run and only read afterwards, so
    commits can be checked in parallel. Every worker gets its own provider
    from ``provider_factory``; providers are never shared across threads.
    """

    def __init__(
        self,
        provider_factory: ProviderFactory,
        options: Optional[EmptyCommitDetectorOptions] = None,
        console: Optional[Console] = None,
    ):
        self.provider_factory = provider_factory
        self.options = options or EmptyCommitDetectorOptions()
        self.console = console or Console()
        self._local = threading.local()

    def _provider(self) -> TreeProvider:
        """Provider owned by the calling thread."""
        provider = getattr(self._local, "provider", None)
        if provider is None:
            provider = self.provider_factory()
            self._local.provider = provider
        return provider

    # Batch detection
    def detect(
        self,
        commits: Sequence[CommitRecord],
        target: TargetContext,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> EmptyCommitDetectionResult:
        """
        Check commits one after another.

        Raises:
            AnalysisCancelledError: if ``cancel_event`` is set; carries the partial result
        """
        started = time.perf_counter()
        result = EmptyCommitDetectionResult()
        reporter = _ProgressReporter(progress, len(commits), result)
        limit = self.options.max_empty_commits

        for index, commit in enumerate(commits):
            if cancel_event is not None and cancel_event.is_set():
                result.detection_time = time.perf_counter() - started
                raise AnalysisCancelledError("Empty commit detection cancelled", result)

            if limit is not None and len(result.empty_commits) >= limit:
                result.skipped.extend(c.sha for c in commits[index:])
                self._mark_stopped_early(result)
                break

            info = self._check_isolated(commit, target, result)
            result.total_commits_analyzed += 1
            if info is not None:
                result.add(info)
            reporter.report(commit.sha, len(result.empty_commits))

        result.detection_time = time.perf_counter() - started
        return result

    def detect_parallel(
        self,
        commits: Sequence[CommitRecord],
        target: TargetContext,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> EmptyCommitDetectionResult:
        """
        Check commits on a thread pool of ``options.parallelism`` workers.

        Results are merged under a lock, insert-only. The returned map is
        ordered like ``commits`` regardless of completion order.

        Raises:
            AnalysisCancelledError: if ``cancel_event`` is set; carries the partial result
        """
        started = time.perf_counter()
        result = EmptyCommitDetectionResult()
        reporter = _ProgressReporter(progress, len(commits), result)
        limit = self.options.max_empty_commits
        cancel_event = cancel_event or threading.Event()
        lock = threading.Lock()
        found: Dict[str, EmptyCommitInfo] = {}
        skipped = set()

        def work(commit: CommitRecord) -> None:
            if cancel_event.is_set():
                return
            with lock:
                limit_reached = limit is not None and len(found) >= limit
            if limit_reached:
                with lock:
                    skipped.add(commit.sha)
                return

            info = self._check_isolated(commit, target, result, lock)

            with lock:
                # an empty result that lands after the limit counts as skipped, not analyzed
                if info is not None and limit is not None and len(found) >= limit:
                    skipped.add(commit.sha)
                else:
                    result.total_commits_analyzed += 1
                    if info is not None:
                        found[commit.sha] = info
                empty_count = len(found)
            reporter.report(commit.sha, empty_count, lock)

        workers = max(1, self.options.parallelism)
        if self.options.verbose:
            self.console.print(
                f"[dim]Checking {len(commits)} commits for emptiness with {workers} workers[/dim]"
            )

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(work, commit) for commit in commits]
            for future in futures:
                future.result()

        for commit in commits:
            if commit.sha in found:
                result.add(found[commit.sha])
            elif commit.sha in skipped:
                result.skipped.append(commit.sha)

        if result.skipped:
            self._mark_stopped_early(result)

        result.detection_time = time.perf_counter() - started
        if cancel_event.is_set():
            raise AnalysisCancelledError("Empty commit detection cancelled", result)
        return result

    def _mark_stopped_early(self, result: EmptyCommitDetectionResult) -> None:
        result.stopped_early = True
        result.warnings.append(
            f"Stopped early after detecting {len(result.empty_commits)} empty commits"
        )

    def _check_isolated(
        self,
        commit: CommitRecord,
        target: TargetContext,
        result: EmptyCommitDetectionResult,
        lock: Optional[threading.Lock] = None,
    ) -> Optional[EmptyCommitInfo]:
        """Run ``check_commit`` treating any failure as "not determined empty"."""
        try:
            return self.check_commit(commit, target, self._provider())
        except Exception as e:
            error = e if isinstance(e, CommitAnalysisError) else CommitAnalysisError(
                str(e), commit.sha, "check_commit", e
            )
            message = f"Failed to analyze commit {commit.short_sha}: {error}"
            if lock is not None:
                with lock:
                    result.warnings.append(message)
            else:
                result.warnings.append(message)
            if self.options.verbose:
                self.console.print(f"[yellow]Warning: {message}[/yellow]")
            return None

    # Per-commit classification
    def check_commit(
        self, commit: CommitRecord, target: TargetContext, provider: TreeProvider
    ) -> Optional[EmptyCommitInfo]:
        """Classify one commit; returns None when it is not empty."""
        if commit.sha in target.commit_shas:
            return EmptyCommitInfo(
                commit.sha,
                EmptyReason.CHANGES_ALREADY_APPLIED,
                "Commit already exists in target branch",
            )

        if commit.is_merge_commit:
            return self._check_merge_commit(commit, target, provider)
        if commit.is_root_commit:
            return self._check_root_commit(commit, target, provider)
        return self._check_regular_commit(commit, target, provider)

    def _check_root_commit(
        self, commit: CommitRecord, target: TargetContext, provider: TreeProvider
    ) -> Optional[EmptyCommitInfo]:
        tree = provider.get_tree(commit.sha)

        for path in tree:
            if self.is_ignored(path):
                continue
            target_entry = target.tree.get(path)
            if target_entry is None or target_entry.sha != tree.entries[path].sha:
                return None

        return EmptyCommitInfo(
            commit.sha,
            EmptyReason.CHANGES_ALREADY_APPLIED,
            "All files from root commit already exist in target with same content",
        )

    def _check_regular_commit(
        self, commit: CommitRecord, target: TargetContext, provider: TreeProvider
    ) -> Optional[EmptyCommitInfo]:
        tree = provider.get_tree(commit.sha)
        changes = self._relevant_changes(provider.diff(target.tree, tree))

        satisfied_paths = []
        all_satisfied = True
        for change in changes:
            if not self.is_change_satisfied(change, tree, target.tree, provider):
                all_satisfied = False
                break
            satisfied_paths.append(change.path)

        if all_satisfied:
            details = "All changes already exist in target branch"
            if satisfied_paths:
                shown = ", ".join(
                    f"{path} already has these changes" for path in satisfied_paths[:3]
                )
                more = len(satisfied_paths) - 3
                details = f"{details}: {shown}" + (f" and {more} more files" if more > 0 else "")
            return EmptyCommitInfo(commit.sha, EmptyReason.CHANGES_ALREADY_APPLIED, details)

        reverted_sha = self.reverted_commit(commit)
        if reverted_sha is not None and reverted_sha not in target.commit_shas:
            return EmptyCommitInfo(
                commit.sha,
                EmptyReason.REVERT_OF_NON_EXISTENT_CHANGES,
                f"Reverts {format_short_sha(reverted_sha)}, "
                "which does not exist in the target branch",
            )

        return None

    def _check_merge_commit(
        self, commit: CommitRecord, target: TargetContext, provider: TreeProvider
    ) -> Optional[EmptyCommitInfo]:
        if all(parent in target.commit_shas for parent in commit.parent_shas):
            return EmptyCommitInfo(
                commit.sha,
                EmptyReason.MERGED_CHANGES_ALREADY_PRESENT,
                "All parent commits already exist in target branch",
            )

        tree = provider.get_tree(commit.sha)
        changes = self._relevant_changes(provider.diff(target.tree, tree))

        if not changes:
            return EmptyCommitInfo(
                commit.sha,
                EmptyReason.NO_OP_MERGE,
                "Merge commit contains no actual file changes",
            )

        if all(self.is_change_satisfied(change, tree, target.tree, provider) for change in changes):
            return EmptyCommitInfo(
                commit.sha,
                EmptyReason.MERGED_CHANGES_ALREADY_PRESENT,
                "All changes from this merge already exist in the target branch",
            )

        return None

    # Per-entry rules
    def is_ignored(self, path: str) -> bool:
        """Whether ``path`` matches the ignore list (full path or basename)."""
        basename = path.rsplit("/", 1)[-1]
        return any(
            fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(basename, pattern)
            for pattern in self.options.ignore_paths
        )

    def _relevant_changes(self, changes: Iterable[TreeChange]) -> List[TreeChange]:
        return [
            change
            for change in changes
            if not self.is_ignored(change.path)
            and not (change.old_path and self.is_ignored(change.old_path))
        ]

    def is_change_satisfied(
        self,
        change: TreeChange,
        source_tree: TreeSnapshot,
        target_tree: TreeSnapshot,
        provider: TreeProvider,
    ) -> bool:
        """Whether the target already reflects one changed entry."""
        if self.is_ignored(change.path):
            return True

        if change.kind == ChangeKind.DELETED:
            return change.path not in target_tree

        if change.kind == ChangeKind.RENAMED:
            source_entry = source_tree.get(change.path)
            target_entry = target_tree.get(change.path)
            return (
                target_tree.get(change.old_path) is None
                and target_entry is not None
                and source_entry is not None
                and source_entry.sha == target_entry.sha
            )

        if change.kind in (ChangeKind.ADDED, ChangeKind.MODIFIED):
            source_entry = source_tree.get(change.path)
            target_entry = target_tree.get(change.path)
            if source_entry is None or target_entry is None:
                return False
            if source_entry.sha == target_entry.sha:
                return True
            if not self.options.ignore_whitespace:
                return False

            source_content = provider.read_blob(source_entry.sha)
            binary = source_entry.is_binary
            if binary is None:
                binary = is_binary_content(source_content)
            if binary:
                return False
            target_content = provider.read_blob(target_entry.sha)
            return normalize_text(source_content) == normalize_text(target_content)

        # TypeChanged and anything unrecognized count as real changes
        return False

    @staticmethod
    def reverted_commit(commit: CommitRecord) -> Optional[str]:
        """Sha named by a "This reverts commit <sha>" line of a revert commit."""
        if not commit.message.lstrip().lower().startswith("revert"):
            return None
        match = REVERT_COMMIT_PATTERN.search(commit.message)
        return match.group(1).lower() if match else None


class _ProgressReporter:
    """Best-effort progress channel; a failing callback is disabled, never fatal."""

    def __init__(
        self,
        callback: Optional[ProgressCallback],
        total: int,
        result: EmptyCommitDetectionResult,
    ):
        self.callback = callback
        self.total = total
        self.result = result
        self.processed = 0

    def report(self, sha: str, empty_count: int, lock: Optional[threading.Lock] = None) -> None:
        if lock is not None:
            with lock:
                self.processed += 1
                processed = self.processed
        else:
            self.processed += 1
            processed = self.processed

        callback = self.callback
        if callback is None:
            return
        try:
            callback(DetectionProgress(processed, self.total, empty_count, sha))
        except Exception as e:
            self.callback = None
            message = f"Progress reporting disabled: {e}"
            if lock is not None:
                with lock:
                    self.result.warnings.append(message)
            else:
                self.result.warnings.append(message)
