"""CommitRecord class for type-safe commit handling."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from .exceptions import InvalidCommitError
from .formatting import format_short_date, format_short_sha, parse_commit_date


class CommitRecord:
    """
    Represents one commit in the analyzed range.

    Everything except ``extracted_tickets`` is fixed at construction time.
    The ticket list is filled exactly once by the ticket extractor.
    """

    def __init__(
        self,
        sha: str,
        parent_shas: Optional[Iterable[str]] = None,
        author: str = "",
        timestamp: Union[str, datetime, None] = None,
        message: str = "",
        modified_files: Optional[Iterable[str]] = None,
    ):
        """Initialize CommitRecord, rejecting records without a sha."""
        if not sha or not str(sha).strip():
            raise InvalidCommitError("Commit record has an empty sha")

        self.sha = str(sha).strip()
        self.parent_shas: List[str] = [str(p) for p in (parent_shas or [])]
        self.author = author or ""
        self.timestamp = parse_commit_date(timestamp)
        self.message = message or ""
        self.modified_files: List[str] = list(dict.fromkeys(modified_files or []))
        self._extracted_tickets: List[str] = []
        self._tickets_recorded = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CommitRecord":
        """Create a CommitRecord from a dictionary (e.g., from YAML data)."""
        return cls(
            sha=data.get("sha", ""),
            parent_shas=data.get("parents", []),
            author=data.get("author", ""),
            timestamp=data.get("date"),
            message=data.get("message", ""),
            modified_files=data.get("files", []),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML serialization."""
        return {
            "sha": self.sha,
            "parents": list(self.parent_shas),
            "author": self.author,
            "date": self.timestamp.isoformat(),
            "message": self.message,
            "files": list(self.modified_files),
            "tickets": list(self._extracted_tickets),
        }

    @property
    def extracted_tickets(self) -> List[str]:
        """Tickets found in the commit message (empty until extraction ran)."""
        return list(self._extracted_tickets)

    @property
    def tickets_recorded(self) -> bool:
        """Whether ticket extraction has already been applied to this commit."""
        return self._tickets_recorded

    def record_tickets(self, tickets: Iterable[str]) -> List[str]:
        """Record extracted tickets once; later calls return the first result."""
        if not self._tickets_recorded:
            self._extracted_tickets.extend(tickets)
            self._tickets_recorded = True
        return self.extracted_tickets

    @property
    def is_merge_commit(self) -> bool:
        """Whether this commit has more than one parent."""
        return len(self.parent_shas) > 1

    @property
    def is_root_commit(self) -> bool:
        """Whether this commit has no parents."""
        return not self.parent_shas

    @property
    def short_sha(self) -> str:
        """8-character abbreviated SHA for display."""
        return format_short_sha(self.sha)

    @property
    def short_date(self) -> str:
        """Short date format (YYYY-MM-DD) for table display."""
        return format_short_date(self.timestamp)

    @property
    def title(self) -> str:
        """First line of the commit message."""
        return self.message.strip().split("\n")[0] if self.message else ""

    def short_message(self, max_length: int = 50) -> str:
        """Truncated commit title for display."""
        if len(self.title) > max_length:
            return self.title[: max_length - 3] + "..."
        return self.title

    def __repr__(self) -> str:
        """String representation."""
        kind = ", merge" if self.is_merge_commit else ""
        return f"CommitRecord('{self.short_sha}', '{self.title[:30]}'{kind})"

    def __str__(self) -> str:
        """Human-readable string representation."""
        return f"{self.short_sha}: {self.title}"

    def __eq__(self, other: object) -> bool:
        """Check equality with another CommitRecord instance."""
        if not isinstance(other, CommitRecord):
            return False
        return self.sha == other.sha

    def __hash__(self) -> int:
        """Hash based on SHA for use in sets and dicts."""
        return hash(self.sha)
