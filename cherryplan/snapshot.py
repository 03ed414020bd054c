"""Snapshot files: the branch data the git collaborator exports for analysis."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

from .commit import CommitRecord
from .exceptions import InvalidCommitError, InvalidReferenceError, SnapshotError
from .tree import DEFAULT_FILE_MODE, InMemoryTreeProvider, TreeProvider, TreeSnapshot


class Snapshot:
    """
    Commits of ``target..source`` plus the target branch state.

    Attributes match the YAML structure:

        source_branch: deploy/dev
        target_branch: deploy/uat
        commits:            # oldest first
          - sha: ...
            parents: [...]
            author: ...
            date: "2025-08-18 14:04:26 -0700"
            message: ...
            files: [...]
            tree: {path: blob_sha}
        target_commits: [...]
        target_tree: {path: blob_sha | {sha, mode, binary}}
        blobs: {blob_sha: text}
    """

    def __init__(
        self,
        source_branch: str,
        target_branch: str,
        commits: Optional[List[CommitRecord]] = None,
        target_commits: Optional[Set[str]] = None,
        target_tree: Optional[TreeSnapshot] = None,
        trees: Optional[Dict[str, TreeSnapshot]] = None,
        blobs: Optional[Dict[str, Any]] = None,
    ):
        self.source_branch = source_branch
        self.target_branch = target_branch
        self.commits = commits or []
        self.target_commits = target_commits or set()
        self.target_tree = target_tree
        self.trees = trees or {}
        self.blobs = blobs or {}

    @classmethod
    def from_yaml(cls, path: Path) -> "Snapshot":
        """Load a snapshot from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise SnapshotError(f"Snapshot file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise SnapshotError(f"Could not parse snapshot {path}: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot {path} does not contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """Create a Snapshot from a dictionary (e.g., from YAML data)."""
        source_branch = data.get("source_branch") or ""
        target_branch = data.get("target_branch") or ""
        if not source_branch or not target_branch:
            raise InvalidReferenceError("Snapshot must name both source_branch and target_branch")

        if "target_tree" not in data:
            raise InvalidReferenceError(f"Snapshot has no target_tree for '{target_branch}'")

        for key in ("target_tree", "blobs"):
            if data.get(key) is not None and not isinstance(data[key], dict):
                raise SnapshotError(f"Snapshot '{key}' must be a mapping")
        for key in ("commits", "target_commits"):
            if data.get(key) is not None and not isinstance(data[key], list):
                raise SnapshotError(f"Snapshot '{key}' must be a list")

        commits = []
        trees = {}
        for index, commit_data in enumerate(data.get("commits") or []):
            if not isinstance(commit_data, dict):
                raise SnapshotError(f"Commit #{index} in snapshot is not a mapping")
            label = commit_data.get("sha") or f"#{index}"
            try:
                commit = CommitRecord.from_dict(commit_data)
                tree_data = commit_data.get("tree")
                if tree_data is not None:
                    trees[commit.sha] = TreeSnapshot.from_dict(tree_data, sha=commit.sha)
            except InvalidCommitError as e:
                raise InvalidCommitError(f"Commit {label}: {e}") from e
            except (ValueError, TypeError, AttributeError) as e:
                raise SnapshotError(f"Invalid commit {label} in snapshot: {e}") from e
            commits.append(commit)

        try:
            target_tree = TreeSnapshot.from_dict(data.get("target_tree"))
        except (ValueError, TypeError, AttributeError) as e:
            raise SnapshotError(f"Invalid target_tree in snapshot: {e}") from e

        return cls(
            source_branch=source_branch,
            target_branch=target_branch,
            commits=commits,
            target_commits={str(sha) for sha in data.get("target_commits") or []},
            target_tree=target_tree,
            trees=trees,
            blobs={str(sha): content for sha, content in (data.get("blobs") or {}).items()},
        )

    def provider_factory(self) -> TreeProvider:
        """New provider over this snapshot's trees and blobs (one per worker)."""
        return InMemoryTreeProvider(trees=self.trees, blobs=self.blobs)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary matching the YAML structure."""
        commits = []
        for commit in self.commits:
            commit_data = commit.to_dict()
            commit_data.pop("tickets", None)
            tree = self.trees.get(commit.sha)
            if tree is not None:
                commit_data["tree"] = _tree_to_dict(tree)
            commits.append(commit_data)

        return {
            "source_branch": self.source_branch,
            "target_branch": self.target_branch,
            "commits": commits,
            "target_commits": sorted(self.target_commits),
            "target_tree": _tree_to_dict(self.target_tree) if self.target_tree else {},
            "blobs": dict(self.blobs),
        }

    def to_yaml(self, path: Path) -> Path:
        """Save this snapshot to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        return path


def _tree_to_dict(tree: TreeSnapshot) -> Dict[str, Any]:
    entries: Dict[str, Any] = {}
    for path, entry in tree.entries.items():
        if entry.mode == DEFAULT_FILE_MODE and entry.is_binary is None:
            entries[path] = entry.sha
        else:
            entries[path] = {"sha": entry.sha, "mode": entry.mode, "binary": entry.is_binary}
    return entries
