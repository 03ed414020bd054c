"""Test ticket extraction from commit messages."""

import unittest

from builders import make_commit

from cherryplan.commit_graph import CommitGraph
from cherryplan.tickets import PatternSet, TicketExtractor, normalize_ticket


class TestTicketExtraction(unittest.TestCase):
    """Test the individual ticket patterns."""

    def setUp(self):
        """Set up an extractor for the HSAMED prefix."""
        self.extractor = TicketExtractor(["HSAMED"], PatternSet())

    def test_same_ticket_in_two_forms(self):
        """Different spellings of one ticket collapse to the canonical key."""
        self.assertEqual(self.extractor.extract_tickets("HSAMED-12 and hsamed 12"), ["HSAMED-12"])

    def test_pattern_variants(self):
        cases = {
            "HSAMED-1234 fix login": ["HSAMED-1234"],
            "hsamed 1234 fix login": ["HSAMED-1234"],
            "[HSAMED 77] cleanup": ["HSAMED-77"],
            "[HSAMED_77] cleanup": ["HSAMED-77"],
            "Fixes #HSAMED-9": ["HSAMED-9"],
            "Merge feature/HSAMED_321 into dev": ["HSAMED-321"],
            "HSAMED:55 typo in colon form": ["HSAMED-55"],
            "Update validation (HSAMED 8)": ["HSAMED-8"],
        }
        for message, expected in cases.items():
            with self.subTest(message=message):
                self.assertEqual(self.extractor.extract_tickets(message), expected)

    def test_leading_zeros_normalized(self):
        self.assertEqual(self.extractor.extract_tickets("HSAMED-0042"), ["HSAMED-42"])

    def test_unknown_prefix_ignored(self):
        self.assertEqual(self.extractor.extract_tickets("PROJ-12 unrelated"), [])

    def test_out_of_range_numbers_rejected(self):
        self.assertEqual(self.extractor.extract_tickets("HSAMED-0 placeholder"), [])
        self.assertEqual(self.extractor.extract_tickets("HSAMED-1234567"), [])
        self.assertEqual(self.extractor.extract_tickets("HSAMED-999999"), ["HSAMED-999999"])

    def test_results_sorted_and_unique(self):
        message = "HSAMED-30 follows HSAMED-4 and [HSAMED-30]"
        self.assertEqual(self.extractor.extract_tickets(message), ["HSAMED-30", "HSAMED-4"])

    def test_multiple_prefixes(self):
        extractor = TicketExtractor(["hsamed", "PROJ"])

        self.assertTrue(extractor.is_valid_prefix("proj"))
        self.assertEqual(extractor.extract_tickets("proj-1 and HSAMED-2"), ["HSAMED-2", "PROJ-1"])

    def test_empty_text(self):
        self.assertEqual(self.extractor.extract_tickets(""), [])

    def test_normalize_ticket(self):
        self.assertEqual(normalize_ticket("hsamed", "007"), "HSAMED-7")
        self.assertIsNone(normalize_ticket("HSAMED", "0"))
        self.assertIsNone(normalize_ticket("HSAMED", "1000000"))


class TestTicketCommitMap(unittest.TestCase):
    """Test grouping commits by ticket."""

    def setUp(self):
        """Set up a small graph with overlapping tickets."""
        self.first = make_commit("1", message="HSAMED-1 add endpoint")
        self.second = make_commit("2", parents=["1"], message="hsamed 1 and HSAMED-2 tests")
        self.third = make_commit("3", parents=["2"], message="no ticket here at all")
        self.graph = CommitGraph.build([self.first, self.second, self.third])
        self.extractor = TicketExtractor(["HSAMED"])

    def test_map_groups_in_insertion_order(self):
        ticket_map = self.extractor.build_ticket_commit_map(self.graph)

        self.assertEqual(ticket_map["HSAMED-1"], [self.first, self.second])
        self.assertEqual(ticket_map["HSAMED-2"], [self.second])
        self.assertNotIn(self.third, [c for commits in ticket_map.values() for c in commits])
        self.assertEqual(self.second.extracted_tickets, ["HSAMED-1", "HSAMED-2"])

    def test_map_is_idempotent(self):
        """Running extraction twice does not duplicate recorded tickets."""
        first_run = self.extractor.build_ticket_commit_map(self.graph)
        second_run = self.extractor.build_ticket_commit_map(self.graph)

        self.assertEqual(first_run, second_run)
        self.assertEqual(self.first.extracted_tickets, ["HSAMED-1"])
        self.assertTrue(self.first.tickets_recorded)


if __name__ == "__main__":
    unittest.main()
