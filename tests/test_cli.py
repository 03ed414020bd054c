"""Test the cherryplan command line."""

import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import yaml
from builders import scenario_snapshot_data, sha_of
from typer.testing import CliRunner

from cherryplan import __version__
from cherryplan.cli import app
from cherryplan.config import load_config
from cherryplan.snapshot import Snapshot


class TestCli(unittest.TestCase):
    """Run CLI commands against a snapshot file with an isolated config."""

    def setUp(self):
        """Write the scenario snapshot and point config at a temp file."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name)
        self.snapshot_file = Snapshot.from_dict(scenario_snapshot_data()).to_yaml(
            self.path / "snapshot.yml"
        )
        self.config_file = self.path / "config.yml"
        patcher = patch("cherryplan.config.get_config_file", return_value=self.config_file)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.runner = CliRunner()

    def tearDown(self):
        """Clean up temporary files."""
        self.temp_dir.cleanup()

    def invoke(self, *args):
        return self.runner.invoke(app, [str(arg) for arg in args])

    def test_analyze_json(self):
        result = self.invoke("analyze", self.snapshot_file, "--format", "json")

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual(data["statistics"]["total_commits"], 5)
        self.assertEqual(data["orphans"][0]["sha"], sha_of("D2"))
        self.assertEqual(data["orphans"][0]["suggestions"][0]["ticket"], "HSAMED-5")

    def test_analyze_table(self):
        result = self.invoke("analyze", self.snapshot_file, "--parallel", "2")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Analysis Summary", result.stdout)
        self.assertIn("Orphan Commits", result.stdout)

    def test_empty_json(self):
        result = self.invoke(
            "empty", self.snapshot_file, "--format", "json", "--max-empty", "1", "--parallel", "1"
        )

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual([e["sha"] for e in data["empty_commits"]], [sha_of("A")])
        self.assertTrue(data["stopped_early"])

    def test_merges_json(self):
        result = self.invoke("merges", self.snapshot_file, "--format", "json")

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual(data["merges"][0]["missing_commits"], [sha_of("D"), sha_of("D2")])
        self.assertEqual(data["recommendations"][0]["kind"], "merge")

    def test_orphans_high_only(self):
        result = self.invoke("orphans", self.snapshot_file, "--format", "json", "--high-only")

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual([o["severity"] for o in data["orphans"]], ["High"])

    def test_missing_snapshot(self):
        result = self.invoke("analyze", self.path / "missing.yml")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error", result.stdout)

    def test_unknown_format(self):
        result = self.invoke("analyze", self.snapshot_file, "--format", "xml")

        self.assertEqual(result.exit_code, 1)

    def test_unparseable_date_reports_error(self):
        data = scenario_snapshot_data()
        data["commits"][2]["date"] = "yesterday"
        snapshot_file = self.path / "bad-date.yml"
        snapshot_file.write_text(yaml.dump(data))

        result = self.invoke("analyze", snapshot_file)

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error", result.stdout)
        self.assertIn("yesterday", result.stdout)

    def test_malformed_commit_reports_error(self):
        data = scenario_snapshot_data()
        data["commits"][0] = "not-a-commit"
        snapshot_file = self.path / "bad-commit.yml"
        snapshot_file.write_text(yaml.dump(data))

        result = self.invoke("empty", snapshot_file, "--format", "json")

        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error", result.stdout)

    def test_max_empty_must_be_positive(self):
        result = self.invoke("empty", self.snapshot_file, "--max-empty", "0")

        self.assertEqual(result.exit_code, 2)

    def test_invalid_config_value_reports_error(self):
        self.config_file.write_text(yaml.dump({"analysis": {"max_empty_commits": 0}}))

        for args in (("analyze", self.snapshot_file), ("config", "show")):
            with self.subTest(command=args[0]):
                result = self.invoke(*args)

                self.assertEqual(result.exit_code, 1)
                self.assertIn("Error", result.stdout)
                self.assertIn("max_empty_commits", result.stdout)

    def test_plan_json(self):
        result = self.invoke("plan", self.snapshot_file, "--format", "json")

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual(len(data["steps"]), 1)
        step = data["steps"][0]
        self.assertEqual(step["type"], "MergeCommit")
        self.assertEqual(step["commits"], [sha_of("C")])
        self.assertEqual(step["command"], f"git cherry-pick -m 1 {sha_of('C')[:8]}")
        self.assertEqual([s["sha"] for s in data["skipped"]], [sha_of("A"), sha_of("B")])

    def test_plan_table(self):
        result = self.invoke("plan", self.snapshot_file)

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Cherry-pick Plan", result.stdout)
        self.assertIn("2 empty commits left out", result.stdout)

    def test_plan_unknown_ticket(self):
        result = self.invoke("plan", self.snapshot_file, "--ticket", "PROJ-1")

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Nothing to cherry-pick", result.stdout)

    def test_config_prefixes_used_by_analysis(self):
        """With only PROJ configured, every scenario commit becomes ticket-less."""
        result = self.invoke("config", "set-prefixes", "proj")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(load_config(self.config_file)["tickets"]["prefixes"], ["PROJ"])

        result = self.invoke("analyze", self.snapshot_file, "--format", "json")
        data = json.loads(result.stdout)
        self.assertEqual(data["tickets"], {})

    def test_config_show_json(self):
        self.config_file.write_text(
            yaml.dump({"tickets": {"prefixes": ["HSAMED", "PROJ"]}, "analysis": {"parallelism": 2}})
        )

        result = self.invoke("config", "show", "--format", "json")

        self.assertEqual(result.exit_code, 0, result.output)
        data = json.loads(result.stdout)
        self.assertEqual(data["ticket_prefixes"], ["HSAMED", "PROJ"])
        self.assertEqual(data["parallelism"], 2)
        self.assertEqual(data["ignore_paths"], ["packages.lock.json"])

    def test_version(self):
        result = self.invoke("version")

        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.stdout)


if __name__ == "__main__":
    unittest.main()
