"""Test orphan commit detection and severity grading."""

import unittest

from builders import make_commit

from cherryplan.commit_graph import CommitGraph
from cherryplan.orphans import (
    OrphanCommitDetector,
    OrphanSeverity,
    OrphanStatistics,
    build_malformed_pattern,
    find_malformed_references,
)
from cherryplan.tickets import TicketExtractor

LONG_TAIL = " in the payment flow for clinics"


def find_orphans(*commits):
    graph = CommitGraph.build(commits)
    TicketExtractor(["HSAMED"]).build_ticket_commit_map(graph)
    return OrphanCommitDetector(["HSAMED"]).find_orphans(graph)


class TestOrphanCandidates(unittest.TestCase):
    """Test which commits count as orphans."""

    def test_ticketed_merge_and_automated_commits_excluded(self):
        ticketed = make_commit("t", message="HSAMED-3 add audit log" + LONG_TAIL)
        merge = make_commit("m", parents=["t", "x"], message="Integrate payment changes")
        merge_message = make_commit("mb", parents=["t"], message="Merge branch 'main' into dev")
        bump = make_commit("b", parents=["t"], message="Bump version to 1.4.2")
        ci = make_commit("ci", parents=["t"], message="ci: cache node modules")
        orphan = make_commit("o", parents=["t"], message="Adjust rounding" + LONG_TAIL)

        orphans = find_orphans(ticketed, merge, merge_message, bump, ci, orphan)

        self.assertEqual([o.sha for o in orphans], [orphan.sha])

    def test_custom_automated_patterns(self):
        commit = make_commit("c", message="release: publish artifacts" + LONG_TAIL)
        graph = CommitGraph.build([commit])
        detector = OrphanCommitDetector(["HSAMED"], automated_patterns=[r"^release:"])

        self.assertEqual(detector.find_orphans(graph), [])


class TestOrphanSeverity(unittest.TestCase):
    """Test severity rules; the first matching rule wins."""

    def severity_of(self, message, files=()):
        orphans = find_orphans(make_commit("c", message=message, files=files))
        self.assertEqual(len(orphans), 1)
        return orphans[0].severity, orphans[0].reason

    def test_malformed_reference_is_critical(self):
        messages = ("Fix HSAMED12 validation", "HSAMED_12 fix", "see hsamed.7", "HSAMED--4 fix")
        for message in messages:
            with self.subTest(message=message):
                severity, reason = self.severity_of(message + LONG_TAIL)
                self.assertEqual(severity, OrphanSeverity.CRITICAL)
                self.assertEqual(reason, "Malformed ticket reference detected")

    def test_unknown_prefix_is_high(self):
        severity, reason = self.severity_of("Fix JIRA123 validation" + LONG_TAIL)

        self.assertEqual(severity, OrphanSeverity.HIGH)
        self.assertIn("unknown prefix", reason)

    def test_short_message_is_high(self):
        self.assertEqual(self.severity_of("wip"), (OrphanSeverity.HIGH, "Commit message too short"))

    def test_terse_message_is_medium(self):
        self.assertEqual(
            self.severity_of("Fix typo in readme"),
            (OrphanSeverity.MEDIUM, "Commit message lacks detail"),
        )

    def test_business_logic_path_is_high(self):
        severity, reason = self.severity_of(
            "Change discount calculation" + LONG_TAIL, files=["src/services/pricing.py"]
        )

        self.assertEqual(severity, OrphanSeverity.HIGH)
        self.assertEqual(reason, "Modifies business logic without a ticket")

    def test_test_paths_are_not_business_logic(self):
        severity, reason = self.severity_of(
            "Change discount calculation" + LONG_TAIL,
            files=["tests/services/test_pricing.py", "docs/api/pricing.md"],
        )

        self.assertEqual(severity, OrphanSeverity.MEDIUM)
        self.assertEqual(reason, "No ticket reference found")

    def test_statistics(self):
        orphans = find_orphans(
            make_commit("a", message="wip"),
            make_commit("b", parents=["a"], message="Fix typo in readme"),
        )
        stats = OrphanStatistics.from_orphans(orphans)

        self.assertEqual(stats.total_orphans, 2)
        self.assertEqual(stats.high_priority_orphans, 1)
        self.assertEqual(stats.orphans_with_suggestions, 0)


class TestMalformedReferences(unittest.TestCase):
    """Test detection of mistyped ticket references."""

    def setUp(self):
        """Compile the pattern for two prefixes."""
        self.pattern = build_malformed_pattern(["HSAMED", "PROJ"])

    def test_canonical_forms_returned(self):
        self.assertEqual(
            find_malformed_references("HSAMED12 and proj_0034", self.pattern),
            ["HSAMED-12", "PROJ-34"],
        )

    def test_correct_reference_not_malformed(self):
        self.assertEqual(find_malformed_references("HSAMED-12 done", self.pattern), [])

    def test_prefix_inside_word_ignored(self):
        self.assertEqual(find_malformed_references("XHSAMED12", self.pattern), [])

    def test_no_prefixes(self):
        self.assertIsNone(build_malformed_pattern([]))
        self.assertEqual(find_malformed_references("HSAMED12", None), [])


if __name__ == "__main__":
    unittest.main()
