"""Detection of commits that carry no ticket reference."""

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Pattern, Sequence

from .commit import CommitRecord
from .commit_graph import CommitGraph
from .tickets import DEFAULT_TICKET_PREFIXES, normalize_ticket

DEFAULT_AUTOMATED_PATTERNS = [
    r"^merge branch",
    r"^merge pull request",
    r"^merge remote-tracking branch",
    r"bump version",
    r"^ci:",
    r"^chore\(release\)",
    r"^\[skip ci\]",
    r"^auto-generated",
]

DEFAULT_BUSINESS_LOGIC_PATTERNS = [
    "/controllers/",
    "/services/",
    "/models/",
    "/handlers/",
    "/domain/",
    "/api/",
    "/core/",
    "/repositories/",
]

DEFAULT_NON_BUSINESS_MARKERS = [
    "/test/",
    "/tests/",
    "/spec/",
    "test_",
    "_test.",
    ".test.",
    ".spec.",
    "/docs/",
    "/doc/",
    "/config/",
    "/configuration/",
    ".md",
]

GENERIC_TICKET_PATTERN = re.compile(r"\b[A-Z]{2,10}\d+\b")

SHORT_MESSAGE_LENGTH = 10
TERSE_MESSAGE_LENGTH = 30


class OrphanSeverity(IntEnum):
    """How urgently an orphan commit needs a ticket."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


@dataclass
class TicketSuggestion:
    """A candidate ticket for an orphan commit."""

    ticket_key: str
    confidence: float
    reasons: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "ticket": self.ticket_key,
            "confidence": round(self.confidence, 1),
            "reasons": list(self.reasons),
        }


@dataclass
class OrphanCommit:
    """A ticket-less commit, its severity and ranked ticket suggestions."""

    commit: CommitRecord
    severity: OrphanSeverity
    reason: str
    suggestions: List[TicketSuggestion] = field(default_factory=list)

    @property
    def sha(self) -> str:
        return self.commit.sha

    @property
    def best_suggestion(self) -> Optional[TicketSuggestion]:
        return self.suggestions[0] if self.suggestions else None

    def to_dict(self) -> Dict[str, object]:
        return {
            "sha": self.commit.sha,
            "message": self.commit.title,
            "author": self.commit.author,
            "severity": self.severity.label,
            "reason": self.reason,
            "suggestions": [suggestion.to_dict() for suggestion in self.suggestions],
        }


@dataclass
class OrphanStatistics:
    total_orphans: int = 0
    orphans_with_suggestions: int = 0
    high_priority_orphans: int = 0

    @classmethod
    def from_orphans(cls, orphans: Sequence[OrphanCommit]) -> "OrphanStatistics":
        return cls(
            total_orphans=len(orphans),
            orphans_with_suggestions=sum(1 for orphan in orphans if orphan.suggestions),
            high_priority_orphans=sum(
                1 for orphan in orphans if orphan.severity >= OrphanSeverity.HIGH
            ),
        )


def build_malformed_pattern(prefixes: Iterable[str]) -> Optional[Pattern[str]]:
    """
    Regex for ticket references written with a wrong separator.

    Matches ``HSAMED12``, ``HSAMED_12``, ``HSAMED.12`` or ``HSAMED--12`` for the
    given prefixes; correctly written forms are left to the ticket extractor.
    """
    escaped = [re.escape(prefix) for prefix in prefixes if prefix]
    if not escaped:
        return None
    alternatives = "|".join(sorted(escaped, key=len, reverse=True))
    return re.compile(
        rf"(?<![A-Za-z0-9])({alternatives})(?:[_./\\=]|-{{2,}})?(\d{{1,6}})\b",
        re.IGNORECASE,
    )


def find_malformed_references(message: str, pattern: Optional[Pattern[str]]) -> List[str]:
    """Canonical tickets for every malformed reference in ``message``."""
    if pattern is None or not message:
        return []

    found = []
    for match in pattern.finditer(message):
        ticket = normalize_ticket(match.group(1), match.group(2))
        if ticket and ticket not in found:
            found.append(ticket)
    return found


class OrphanCommitDetector:
    """Finds orphan commits and grades how much each one matters."""

    def __init__(
        self,
        valid_prefixes: Optional[Iterable[str]] = None,
        automated_patterns: Optional[Iterable[str]] = None,
        business_logic_patterns: Optional[Iterable[str]] = None,
        non_business_markers: Optional[Iterable[str]] = None,
    ):
        prefixes = list(valid_prefixes) if valid_prefixes is not None else DEFAULT_TICKET_PREFIXES
        self.malformed_pattern = build_malformed_pattern(prefixes)
        if automated_patterns is None:
            automated_patterns = DEFAULT_AUTOMATED_PATTERNS
        self.automated_patterns = [
            re.compile(pattern, re.IGNORECASE) for pattern in automated_patterns
        ]
        self.business_logic_patterns = [
            pattern.lower()
            for pattern in (business_logic_patterns or DEFAULT_BUSINESS_LOGIC_PATTERNS)
        ]
        self.non_business_markers = [
            marker.lower() for marker in (non_business_markers or DEFAULT_NON_BUSINESS_MARKERS)
        ]

    def is_automated(self, commit: CommitRecord) -> bool:
        """Whether the message looks machine-generated (merges, version bumps, CI)."""
        message = commit.message.strip()
        return any(pattern.search(message) for pattern in self.automated_patterns)

    def is_candidate(self, commit: CommitRecord) -> bool:
        """Ticket-less, not a merge, and not an automated commit."""
        return (
            not commit.extracted_tickets
            and not commit.is_merge_commit
            and not self.is_automated(commit)
        )

    def find_orphans(self, graph: CommitGraph) -> List[OrphanCommit]:
        """Orphan commits of the graph, in graph order. Run ticket extraction first."""
        orphans = []
        for commit in graph.commits.values():
            if self.is_candidate(commit):
                severity, reason = self.classify(commit)
                orphans.append(OrphanCommit(commit=commit, severity=severity, reason=reason))
        return orphans

    def classify(self, commit: CommitRecord):
        """Severity and reason for an orphan; the first matching rule wins."""
        message = commit.message.strip()

        if find_malformed_references(message, self.malformed_pattern):
            return OrphanSeverity.CRITICAL, "Malformed ticket reference detected"
        if GENERIC_TICKET_PATTERN.search(message):
            return OrphanSeverity.HIGH, "Ticket-like token with unknown prefix"
        if len(message) < SHORT_MESSAGE_LENGTH:
            return OrphanSeverity.HIGH, "Commit message too short"
        if len(message) < TERSE_MESSAGE_LENGTH:
            return OrphanSeverity.MEDIUM, "Commit message lacks detail"
        if any(self.is_business_logic_path(path) for path in commit.modified_files):
            return OrphanSeverity.HIGH, "Modifies business logic without a ticket"
        return OrphanSeverity.MEDIUM, "No ticket reference found"

    def is_business_logic_path(self, path: str) -> bool:
        normalized = "/" + path.replace("\\", "/").lstrip("/").lower()
        if any(marker in normalized for marker in self.non_business_markers):
            return False
        return any(pattern in normalized for pattern in self.business_logic_patterns)
