"""Ticket reference extraction from commit messages."""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from .commit import CommitRecord
from .commit_graph import CommitGraph

DEFAULT_TICKET_PREFIXES = ["HSAMED"]

MAX_TICKET_NUMBER = 999999


@dataclass(frozen=True)
class TicketPattern:
    """A named regex whose groups 1 and 2 capture the prefix and the number."""

    name: str
    regex: Pattern[str]


# (name, pattern) pairs, applied in this order
TICKET_PATTERN_SOURCES: Sequence[Tuple[str, str]] = (
    ("standard", r"\b([A-Za-z]{2,10})-(\d{1,6})\b"),  # HSAMED-1234
    ("space_separated", r"\b([A-Za-z]{2,10})\s+(\d{1,6})\b"),  # hsamed 1234
    ("bracketed", r"\[\s*([A-Za-z]{2,10})[\s_-]?(\d{1,6})\s*\]"),  # [HSAMED 1234]
    ("hashtag", r"#([A-Za-z]{2,10})-?(\d{1,6})\b"),  # #HSAMED-1234
    (
        "branch",
        r"\b(?:feature|bugfix|hotfix|fix|release|task)/([A-Za-z]{2,10})[-_](\d{1,6})\b",
    ),  # feature/HSAMED-1234
    ("colon", r"\b([A-Za-z]{2,10})\s?:\s?(\d{1,6})\b"),  # HSAMED:1234
    ("parenthesized", r"\(\s*([A-Za-z]{2,10})[\s_-]?(\d{1,6})\s*\)"),  # (HSAMED 1234)
)


class PatternSet:
    """
    Ticket regexes compiled once and shared by every extraction call.

    Construct one per engine run and pass it to ``TicketExtractor`` rather
    than relying on module-level compiled patterns.
    """

    def __init__(self, sources: Optional[Sequence[Tuple[str, str]]] = None):
        self.patterns: List[TicketPattern] = [
            TicketPattern(name, re.compile(regex, re.IGNORECASE))
            for name, regex in (sources or TICKET_PATTERN_SOURCES)
        ]

    def __iter__(self):
        return iter(self.patterns)

    def __len__(self) -> int:
        return len(self.patterns)


def normalize_ticket(prefix: str, number: str) -> Optional[str]:
    """Canonical ``PREFIX-NUMBER`` form, or None if the number is out of range."""
    try:
        value = int(number)
    except ValueError:
        return None
    if value <= 0 or value > MAX_TICKET_NUMBER:
        return None
    return f"{prefix.upper()}-{value}"


class TicketExtractor:
    """Finds ticket keys for the configured prefixes in free text."""

    def __init__(
        self,
        valid_prefixes: Optional[Iterable[str]] = None,
        pattern_set: Optional[PatternSet] = None,
    ):
        prefixes = list(valid_prefixes) if valid_prefixes is not None else DEFAULT_TICKET_PREFIXES
        self.valid_prefixes = [prefix.upper() for prefix in prefixes if prefix]
        self._prefix_set = set(self.valid_prefixes)
        self.pattern_set = pattern_set or PatternSet()

    def is_valid_prefix(self, prefix: str) -> bool:
        return prefix.upper() in self._prefix_set

    def extract_tickets(self, text: str) -> List[str]:
        """Sorted, de-duplicated ticket keys found in ``text``."""
        if not text:
            return []

        tickets = set()
        for pattern in self.pattern_set:
            for match in pattern.regex.finditer(text):
                prefix, number = match.group(1), match.group(2)
                if not self.is_valid_prefix(prefix):
                    continue
                ticket = normalize_ticket(prefix, number)
                if ticket:
                    tickets.add(ticket)

        return sorted(tickets)

    def build_ticket_commit_map(self, graph: CommitGraph) -> Dict[str, List[CommitRecord]]:
        """
        Extract tickets for every commit and group commits by ticket.

        Each commit's ``extracted_tickets`` is recorded on first extraction;
        running this twice yields the same map without duplicating tickets.
        """
        ticket_to_commits: Dict[str, List[CommitRecord]] = {}

        for commit in graph.commits.values():
            if commit.tickets_recorded:
                tickets = commit.extracted_tickets
            else:
                tickets = commit.record_tickets(self.extract_tickets(commit.message))

            for ticket in tickets:
                ticket_to_commits.setdefault(ticket.upper(), []).append(commit)

        return ticket_to_commits
