"""Tree snapshots, tree diffs and the provider contract used by the classifier."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional

from .exceptions import InvalidReferenceError

DEFAULT_FILE_MODE = "100644"

# git treats a blob as binary when a NUL byte shows up in its first 8000 bytes
BINARY_SNIFF_LENGTH = 8000


class ChangeKind(str, Enum):
    """Kind of path-level change between two trees."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    TYPE_CHANGED = "type_changed"


@dataclass(frozen=True)
class TreeEntry:
    """A blob in a tree: content hash, file mode and (if known) binary flag."""

    sha: str
    mode: str = DEFAULT_FILE_MODE
    is_binary: Optional[bool] = None

    @classmethod
    def from_value(cls, value: Any) -> "TreeEntry":
        """Create an entry from a bare blob sha or a ``{sha, mode, binary}`` mapping."""
        if isinstance(value, TreeEntry):
            return value
        if isinstance(value, dict):
            return cls(
                sha=str(value.get("sha", "")),
                mode=str(value.get("mode", DEFAULT_FILE_MODE)),
                is_binary=value.get("binary"),
            )
        return cls(sha=str(value))


@dataclass(frozen=True)
class TreeChange:
    """One entry of a tree diff; ``old_path`` is set for renames."""

    path: str
    kind: ChangeKind
    old_path: Optional[str] = None


@dataclass
class TreeSnapshot:
    """Queryable path -> TreeEntry mapping for one tree."""

    entries: Dict[str, TreeEntry] = field(default_factory=dict)
    sha: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], sha: str = "") -> "TreeSnapshot":
        """Create a snapshot from ``{path: blob_sha | {sha, mode, binary}}``."""
        entries = {str(path): TreeEntry.from_value(value) for path, value in (data or {}).items()}
        return cls(entries=entries, sha=sha)

    def get(self, path: Optional[str]) -> Optional[TreeEntry]:
        """Entry at ``path`` or None."""
        if path is None:
            return None
        return self.entries.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


class TreeProvider:
    """
    Contract for the git collaborator that supplies trees, diffs and blobs.

    Implementations backed by native git libraries are usually not safe for
    concurrent use; parallel detection asks a factory for one provider per
    worker instead of sharing a single instance.
    """

    def get_tree(self, commit_sha: str) -> TreeSnapshot:
        """Tree of ``commit_sha``."""
        raise NotImplementedError

    def diff(self, old_tree: TreeSnapshot, new_tree: TreeSnapshot) -> List[TreeChange]:
        """Path-level changes turning ``old_tree`` into ``new_tree``."""
        raise NotImplementedError

    def read_blob(self, blob_sha: str) -> bytes:
        """Raw content of a blob."""
        raise NotImplementedError


ProviderFactory = Callable[[], TreeProvider]


class InMemoryTreeProvider(TreeProvider):
    """TreeProvider over plain dictionaries (snapshot files and tests)."""

    def __init__(
        self,
        trees: Optional[Dict[str, TreeSnapshot]] = None,
        blobs: Optional[Dict[str, Any]] = None,
        detect_renames: bool = True,
    ):
        self.trees: Dict[str, TreeSnapshot] = trees or {}
        self.blobs: Dict[str, Any] = blobs or {}
        self.detect_renames = detect_renames

    def get_tree(self, commit_sha: str) -> TreeSnapshot:
        tree = self.trees.get(commit_sha)
        if tree is None:
            raise InvalidReferenceError(f"No tree recorded for commit {commit_sha[:8]}")
        return tree

    def read_blob(self, blob_sha: str) -> bytes:
        if blob_sha not in self.blobs:
            raise InvalidReferenceError(f"Blob {blob_sha[:8]} is not available")
        content = self.blobs[blob_sha]
        if isinstance(content, bytes):
            return content
        return str(content).encode("utf-8")

    def diff(self, old_tree: TreeSnapshot, new_tree: TreeSnapshot) -> List[TreeChange]:
        changes: List[TreeChange] = []
        deleted: List[str] = []
        added: List[str] = []

        for path in sorted(set(old_tree.entries) | set(new_tree.entries)):
            old_entry = old_tree.get(path)
            new_entry = new_tree.get(path)

            if new_entry is None:
                deleted.append(path)
            elif old_entry is None:
                added.append(path)
            elif old_entry.mode != new_entry.mode:
                changes.append(TreeChange(path, ChangeKind.TYPE_CHANGED))
            elif old_entry.sha != new_entry.sha:
                changes.append(TreeChange(path, ChangeKind.MODIFIED))

        if self.detect_renames:
            # Exact renames only: a deleted and an added path with the same blob
            deleted_by_sha: Dict[str, List[str]] = {}
            for path in deleted:
                deleted_by_sha.setdefault(old_tree.entries[path].sha, []).append(path)

            remaining_added = []
            for path in added:
                candidates = deleted_by_sha.get(new_tree.entries[path].sha)
                if candidates:
                    old_path = candidates.pop(0)
                    deleted.remove(old_path)
                    changes.append(TreeChange(path, ChangeKind.RENAMED, old_path=old_path))
                else:
                    remaining_added.append(path)
            added = remaining_added

        changes.extend(TreeChange(path, ChangeKind.DELETED) for path in deleted)
        changes.extend(TreeChange(path, ChangeKind.ADDED) for path in added)
        return sorted(changes, key=lambda change: change.path)


def is_binary_content(content: bytes) -> bool:
    """Whether blob content looks binary."""
    return b"\0" in content[:BINARY_SNIFF_LENGTH]


def normalize_text(content: bytes) -> str:
    """Decode blob content, unify line endings and trim surrounding whitespace."""
    text = content.decode("utf-8", errors="replace")
    return text.replace("\r\n", "\n").replace("\r", "\n").strip()
