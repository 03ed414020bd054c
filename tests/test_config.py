"""Test analysis settings loaded from configuration."""

import unittest

from cherryplan.config import AnalysisSettings, default_config
from cherryplan.exceptions import ConfigError


class TestAnalysisSettings(unittest.TestCase):
    """Test AnalysisSettings.from_config."""

    def test_defaults(self):
        settings = AnalysisSettings.from_config(default_config())

        self.assertEqual(settings.parallelism, 4)
        self.assertIsNone(settings.max_empty_commits)
        self.assertTrue(settings.ignore_whitespace)

    def test_values_are_normalized(self):
        settings = AnalysisSettings.from_config(
            {
                "tickets": {"prefixes": ["proj"]},
                "analysis": {"parallelism": 0, "max_empty_commits": "3"},
            }
        )

        self.assertEqual(settings.ticket_prefixes, ["PROJ"])
        self.assertEqual(settings.parallelism, 1)
        self.assertEqual(settings.max_empty_commits, 3)

    def test_max_empty_commits_below_one(self):
        for limit in (0, -1):
            with self.subTest(limit=limit):
                with self.assertRaises(ConfigError) as ctx:
                    AnalysisSettings.from_config({"analysis": {"max_empty_commits": limit}})
                self.assertIn("max_empty_commits", str(ctx.exception))

    def test_wrong_type(self):
        with self.assertRaises(ConfigError):
            AnalysisSettings.from_config({"analysis": {"parallelism": "many"}})


if __name__ == "__main__":
    unittest.main()
