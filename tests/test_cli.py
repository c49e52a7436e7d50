"""Tests for jobspine.cli - command smoke tests via CliRunner."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from structlog.testing import capture_logs
from typer.testing import CliRunner

from jobspine.cli.app import app
from jobspine.errors import ConfigurationError
from jobspine.jobs.job1 import Job1
from jobspine.scheduling import SchedulerHandle, build_scheduler_handle, declaration_of
from jobspine.settings import JobSpineSettings

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logs():
    """Leave the global structlog configuration alone and drop log lines."""
    with patch("jobspine.logging.configure_logging"), capture_logs():
        yield


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.output.startswith("jobspine ")

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "jobs" in result.output
        assert "run" in result.output


class TestJobsCommand:
    """'jobs' lists declarations with resolved schedules."""

    def test_json(self):
        result = runner.invoke(app, ["jobs", "jobspine.jobs", "--json"])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.output)
        assert [row["identifier"] for row in rows] == ["Job1", "Job2", "Job3"]
        job3 = rows[2]
        assert job3["job_key"] == "Job3Detail"
        assert job3["trigger_key"] == "Job3Trigger"
        assert job3["cron"] == "${job3.cron:0 0/5 * * * ?}"
        assert job3["resolved"] == "0 0/5 * * * ?"
        assert job3["entry_point"] == "do_it"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("JOB3_CRON", "0 0/2 * * * ?")
        result = runner.invoke(app, ["jobs", "jobspine.jobs.job3", "--json"])
        assert json.loads(result.output)[0]["resolved"] == "0 0/2 * * * ?"

    def test_table(self):
        result = runner.invoke(app, ["jobs", "jobspine.jobs.job2"])
        assert result.exit_code == 0
        assert "Job2" in result.output

    def test_unknown_module(self):
        result = runner.invoke(app, ["jobs", "no_such_jobs_module"])
        assert result.exit_code == 1


@pytest.mark.integration
class TestStoreCommand:
    """'store' lists what is persisted."""

    def test_lists_persisted_jobs(self, sqlite_url, monkeypatch):
        settings = JobSpineSettings(
            _env_file=None, store_url=sqlite_url, engine_name="cli-seed", start_paused=True
        )
        build_scheduler_handle([declaration_of(Job1)], settings=settings).shutdown()
        monkeypatch.setenv("JOBSPINE_STORE_URL", sqlite_url)

        result = runner.invoke(app, ["store", "--json"])

        assert result.exit_code == 0, result.output
        rows = json.loads(result.output)
        assert len(rows) == 1
        assert rows[0]["group"] == "DEFAULT"
        assert rows[0]["job_key"] == "Job1Detail"
        assert rows[0]["trigger_key"] == "Job1Trigger"

    def test_empty_store(self, monkeypatch):
        monkeypatch.setenv("JOBSPINE_STORE_URL", "memory://")
        result = runner.invoke(app, ["store"])
        assert result.exit_code == 0
        assert "No items" in result.output


class TestRunCommand:
    """'run' bootstraps and blocks until interrupted."""

    def test_disabled(self, monkeypatch):
        monkeypatch.setenv("JOBSPINE_ENABLED", "false")
        result = runner.invoke(app, ["run"])
        assert result.exit_code == 0
        assert "disabled" in result.output

    @pytest.mark.integration
    def test_runs_until_interrupted(self, monkeypatch):
        monkeypatch.setenv("JOBSPINE_STORE_URL", "memory://")
        monkeypatch.setenv("JOBSPINE_ENGINE_NAME", "cli-run")

        with patch("jobspine.cli.app._block_until_interrupted", side_effect=KeyboardInterrupt):
            with patch.object(
                SchedulerHandle, "shutdown", autospec=True, side_effect=SchedulerHandle.shutdown
            ) as shutdown:
                result = runner.invoke(app, ["run", "jobspine.jobs"])

        assert result.exit_code == 0, result.output
        assert "Scheduler running with 3 job(s)" in result.output
        shutdown.assert_called_once()

    def test_startup_failure(self):
        with patch(
            "jobspine.scheduling.bootstrap_from_settings",
            side_effect=ConfigurationError("Could not resolve placeholder 'job3.cron'"),
        ):
            result = runner.invoke(app, ["run"])
        assert result.exit_code == 1
