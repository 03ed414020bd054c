"""In-memory commit DAG for the range target..source."""

from collections import deque
from typing import Dict, Iterable, Iterator, List, Optional, Set

from .commit import CommitRecord
from .exceptions import InvalidCommitError


class CommitGraph:
    """
    Commit DAG stored as flat maps keyed by sha.

    ``commits`` maps sha -> CommitRecord. ``children_map`` maps a parent sha to
    the ordered list of child shas. Parents that precede the analyzed range
    show up as keys of ``children_map`` without a matching commit, so callers
    must tolerate dangling parent references.
    """

    def __init__(
        self,
        commits: Optional[Dict[str, CommitRecord]] = None,
        children_map: Optional[Dict[str, List[str]]] = None,
        source_branch: str = "",
        target_branch: str = "",
    ):
        """Initialize CommitGraph; prefer ``CommitGraph.build`` for new graphs."""
        self.commits: Dict[str, CommitRecord] = commits or {}
        self.children_map: Dict[str, List[str]] = children_map or {}
        self.source_branch = source_branch
        self.target_branch = target_branch

    @classmethod
    def build(
        cls,
        commits: Iterable[CommitRecord],
        source_branch: str = "",
        target_branch: str = "",
    ) -> "CommitGraph":
        """Build a graph from commits supplied oldest-first.

        Raises:
            InvalidCommitError: if a record has an empty sha
        """
        graph = cls(source_branch=source_branch, target_branch=target_branch)

        for commit in commits:
            if not isinstance(commit, CommitRecord) or not commit.sha:
                raise InvalidCommitError(f"Malformed commit record: {commit!r}")

            if commit.sha in graph.commits:
                # Same commit listed twice; keep the first record and its edges
                continue

            graph.commits[commit.sha] = commit
            for parent in commit.parent_shas:
                graph.children_map.setdefault(parent, []).append(commit.sha)

        return graph

    def get(self, sha: str) -> Optional[CommitRecord]:
        """Look up a commit in the range by sha."""
        return self.commits.get(sha)

    def children(self, sha: str) -> List[str]:
        """Child shas of ``sha`` (empty when it has none)."""
        return list(self.children_map.get(sha, []))

    def merge_commits(self) -> List[CommitRecord]:
        """All merge commits in the range, in insertion order."""
        return [commit for commit in self.commits.values() if commit.is_merge_commit]

    def __contains__(self, sha: object) -> bool:
        return sha in self.commits

    def __len__(self) -> int:
        return len(self.commits)

    def __iter__(self) -> Iterator[CommitRecord]:
        return iter(self.commits.values())

    def __repr__(self) -> str:
        return (
            f"CommitGraph({self.target_branch or '?'}..{self.source_branch or '?'}, "
            f"{len(self.commits)} commits)"
        )


def descendants(graph: CommitGraph, start_sha: str, first_parent_only: bool = False) -> List[str]:
    """
    Breadth-first walk over ``children_map`` starting at ``start_sha``.

    The start node is included. In first-parent mode only the mainline
    continuation is followed: the first child whose first parent is the
    current node. A visited set bounds the walk even on cyclic input.

    Returns:
        Descendant shas in visit order, without duplicates
    """
    visited: Set[str] = {start_sha}
    order: List[str] = [start_sha]
    queue = deque([start_sha])

    while queue:
        current = queue.popleft()

        for child_sha in graph.children_map.get(current, []):
            if first_parent_only:
                child = graph.commits.get(child_sha)
                if child is None or not child.parent_shas or child.parent_shas[0] != current:
                    continue

            if child_sha not in visited:
                visited.add(child_sha)
                order.append(child_sha)
                queue.append(child_sha)

            if first_parent_only:
                break

    return order


def ancestors(graph: CommitGraph, start_sha: str) -> Set[str]:
    """
    All shas reachable from ``start_sha`` by following parent links.

    The start node is included. Parents outside the analyzed range are
    included but not expanded further.
    """
    found: Set[str] = set()
    queue = deque([start_sha])

    while queue:
        current = queue.popleft()
        if current in found:
            continue
        found.add(current)

        commit = graph.commits.get(current)
        if commit is not None:
            queue.extend(parent for parent in commit.parent_shas if parent not in found)

    return found
