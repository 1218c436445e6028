"""Tests for the CLI module."""

import json
import os
import tempfile
import unittest
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from reddit_harvester.cli import app
from reddit_harvester.models.dtos import HarvestResponse


class TestCli(unittest.TestCase):
    """Test cases for the CLI interface."""

    def setUp(self):
        """Set up test environment."""
        self.runner = CliRunner()

        self.temp_dir = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.temp_dir.name, "config.yaml")

        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write("""
fast_communities:
  - science
  - PhD
storage:
  csv_path: null
""")

        self.response = HarvestResponse(
            success=True,
            data=[{"id": "p1", "dataType": "post"}],
            summary={"totalPosts": 1, "communitiesFailed": 0},
            job_id="job-1",
            state="completed",
        )

        patcher = patch("reddit_harvester.cli.setup_logging")
        self.mock_setup_logging = patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self):
        """Clean up test environment."""
        self.temp_dir.cleanup()

    def test_harvest_command(self):
        """The harvest command builds the request payload from options."""
        with patch("reddit_harvester.cli.run_harvest", new=AsyncMock(return_value=self.response)) as mock_run:
            result = self.runner.invoke(app, [
                "harvest", "--config", self.config_path,
                "-s", "science", "-s", "labrats",
                "--time-range", "3days", "--sort", "hot", "--posts", "10", "--no-store",
            ])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn('"totalPosts": 1', result.output)

        config, payload = mock_run.call_args.args[:2]
        self.assertEqual(config.fast_communities, ["science", "PhD"])
        self.assertEqual(payload["communities"], ["science", "labrats"])
        self.assertEqual(payload["timeRange"], "3days")
        self.assertEqual(payload["sortMode"], "hot")
        self.assertEqual(payload["postsPerCommunity"], 10)
        self.assertTrue(payload["fastMode"])
        self.assertFalse(mock_run.call_args.kwargs["write"])

    def test_harvest_defaults_to_configured_communities(self):
        with patch("reddit_harvester.cli.run_harvest", new=AsyncMock(return_value=self.response)) as mock_run:
            result = self.runner.invoke(app, ["harvest", "--config", self.config_path, "--full"])

        self.assertEqual(result.exit_code, 0, result.output)
        payload = mock_run.call_args.args[1]
        self.assertIsNone(payload["communities"])
        self.assertFalse(payload["fastMode"])
        self.assertTrue(mock_run.call_args.kwargs["write"])

    def test_output_file(self):
        output_path = os.path.join(self.temp_dir.name, "out.json")
        with patch("reddit_harvester.cli.run_harvest", new=AsyncMock(return_value=self.response)):
            result = self.runner.invoke(app, ["harvest", "--config", self.config_path, "--output", output_path])

        self.assertEqual(result.exit_code, 0, result.output)
        with open(output_path, encoding="utf-8") as f:
            written = json.load(f)
        self.assertEqual(written["jobId"], "job-1")
        self.assertEqual(written["data"][0]["id"], "p1")

    def test_invalid_request_exits_with_error(self):
        failed = HarvestResponse(success=False, error="Invalid request: timeRange: bad")
        with patch("reddit_harvester.cli.run_harvest", new=AsyncMock(return_value=failed)):
            result = self.runner.invoke(app, ["harvest", "--config", self.config_path, "--time-range", "decade"])

        self.assertEqual(result.exit_code, 1)

    def test_invalid_config_aborts(self):
        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write("harvest:\n  batch_size: 0\n")

        with patch("reddit_harvester.cli.run_harvest", new=AsyncMock()) as mock_run:
            result = self.runner.invoke(app, ["harvest", "--config", self.config_path])

        self.assertEqual(result.exit_code, 1)
        mock_run.assert_not_called()

    def test_serve_command(self):
        with patch("uvicorn.run") as mock_uvicorn:
            result = self.runner.invoke(app, ["serve", "--port", "9001"])

        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(mock_uvicorn.call_args.args[0], "reddit_harvester.api.main:app")
        self.assertEqual(mock_uvicorn.call_args.kwargs["port"], 9001)


if __name__ == "__main__":
    unittest.main()
