"""Tests for the fleetlock CLI via CliRunner.

Redis is replaced by a mocked client; without ``--redis-url`` the commands
run on the process-local fallback store.
"""

from __future__ import annotations

import json
import sys
from unittest.mock import MagicMock, patch

import pytest
import redis
import structlog
from typer.testing import CliRunner

from fleetlock import __version__
from fleetlock.cli.app import app
from fleetlock.locking import LocalLockStore, LockCoordinator, LockOptions

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("fleetlock.cli.app.configure_logging"):
        yield


@pytest.fixture
def redis_client():
    client = MagicMock()
    with patch.object(redis, "from_url", return_value=client):
        yield client


# ─── Root ────────────────────────────────────────────────────────────────


class TestRootCLI:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"fleetlock {__version__}" in result.output

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "locks" in result.output
        assert "run" in result.output


# ─── locks ───────────────────────────────────────────────────────────────


class TestLocksCLI:
    def test_list_empty(self):
        result = runner.invoke(app, ["locks", "list"])
        assert result.exit_code == 0
        assert "No locks" in result.output

    def test_list_json_from_redis(self, redis_client):
        redis_client.scan_iter.return_value = iter(["lock:job-x"])
        redis_client.pipeline.return_value.execute.return_value = ["host-a:1-2-3", 30000]

        result = runner.invoke(app, ["locks", "list", "--json", "--redis-url", "redis://cache:6379/0"])

        assert result.exit_code == 0
        rows = json.loads(result.output)
        assert rows[0]["key"] == "job-x"
        assert rows[0]["owner_id"] == "host-a:1-2-3"

    def test_status_free(self):
        result = runner.invoke(app, ["locks", "status", "job-x"])
        assert result.exit_code == 0
        assert "free" in result.output

    def test_status_held_json(self, redis_client):
        redis_client.pipeline.return_value.execute.return_value = ["host-a:1-2-3", 30000]

        result = runner.invoke(app, ["locks", "status", "job-x", "--json", "--redis-url", "redis://cache:6379/0"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["locked"] is True
        assert data["holder"] == "host-a:1-2-3"
        assert 29 <= data["remaining_seconds"] <= 30
        assert data["degraded"] is False
        redis_client.pipeline.return_value.get.assert_called_with("lock:job-x")

    def test_status_store_unreachable(self, redis_client):
        redis_client.pipeline.side_effect = redis.ConnectionError("refused")

        result = runner.invoke(app, ["locks", "status", "job-x", "--redis-url", "redis://cache:6379/0"])

        assert result.exit_code == 0
        assert "free" in result.output
        assert "unreachable" in result.output

    def test_ping_not_configured(self):
        result = runner.invoke(app, ["locks", "ping"])
        assert result.exit_code == 2

    def test_ping_ok(self, redis_client):
        redis_client.ping.return_value = True

        result = runner.invoke(app, ["locks", "ping", "--redis-url", "redis://cache:6379/0"])

        assert result.exit_code == 0
        assert "reachable" in result.output

    def test_ping_unreachable(self, redis_client):
        redis_client.ping.side_effect = redis.ConnectionError("refused")

        result = runner.invoke(app, ["locks", "ping", "--redis-url", "redis://cache:6379/0"])

        assert result.exit_code == 1

    def test_ping_from_env(self, redis_client, monkeypatch):
        monkeypatch.setenv("FLEETLOCK_REDIS_URL", "redis://cache:6379/0")
        redis_client.ping.return_value = True

        result = runner.invoke(app, ["locks", "ping"])

        assert result.exit_code == 0


# ─── run ─────────────────────────────────────────────────────────────────


class TestRunCLI:
    def test_run_once(self):
        result = runner.invoke(app, ["run", "job-x", "--", sys.executable, "-c", "pass"])
        assert result.exit_code == 0
        assert "Skipped" not in result.output

    def test_run_propagates_exit_code(self):
        result = runner.invoke(app, ["run", "job-x", "--", sys.executable, "-c", "import sys; sys.exit(3)"])
        assert result.exit_code == 3

    def test_run_missing_command(self):
        result = runner.invoke(app, ["run", "job-x", "--", "definitely-not-a-real-binary-xyz"])
        assert result.exit_code == 127

    def test_run_skipped_when_held(self):
        shared = LocalLockStore()
        LockCoordinator(shared, instance_id="other").acquire(LockOptions(key="job-x"))

        with patch(
            "fleetlock.cli.run.make_coordinator",
            return_value=LockCoordinator(shared, instance_id="me"),
        ):
            result = runner.invoke(app, ["run", "job-x", "--", sys.executable, "-c", "pass"])

        assert result.exit_code == 0
        assert "Skipped" in result.output

    def test_run_releases_lock(self):
        coordinator = LockCoordinator(instance_id="me")

        with patch("fleetlock.cli.run.make_coordinator", return_value=coordinator):
            result = runner.invoke(app, ["run", "job-x", "--ttl", "30", "--", sys.executable, "-c", "pass"])

        assert result.exit_code == 0
        assert coordinator.is_locked("job-x") is False

    def test_interval_and_cron_conflict(self):
        result = runner.invoke(
            app, ["run", "job-x", "--interval", "5", "--cron", "* * * * *", "--", sys.executable, "-c", "pass"]
        )
        assert result.exit_code == 2

    def test_invalid_ttl(self):
        result = runner.invoke(app, ["run", "job-x", "--ttl", "0", "--", sys.executable, "-c", "pass"])
        assert result.exit_code == 2

    def test_invalid_cron(self):
        result = runner.invoke(app, ["run", "job-x", "--cron", "nonsense", "--", sys.executable, "-c", "pass"])
        assert result.exit_code == 2

    def test_run_once_closes_store(self):
        coordinator = LockCoordinator(instance_id="me")
        coordinator.close = MagicMock()

        with patch("fleetlock.cli.run.make_coordinator", return_value=coordinator):
            result = runner.invoke(app, ["run", "job-x", "--", sys.executable, "-c", "pass"])

        assert result.exit_code == 0
        coordinator.close.assert_called_once_with()

    def test_run_once_closes_store_on_failure(self):
        coordinator = LockCoordinator(instance_id="me")
        coordinator.close = MagicMock()

        with patch("fleetlock.cli.run.make_coordinator", return_value=coordinator):
            result = runner.invoke(app, ["run", "job-x", "--", sys.executable, "-c", "import sys; sys.exit(3)"])

        assert result.exit_code == 3
        coordinator.close.assert_called_once_with()

    def test_invalid_cron_opens_no_store(self):
        with patch("fleetlock.cli.run.make_coordinator") as make_coordinator:
            result = runner.invoke(app, ["run", "job-x", "--cron", "nonsense", "--", sys.executable, "-c", "pass"])

        assert result.exit_code == 2
        make_coordinator.assert_not_called()

    def test_command_name_bound_to_log_context(self):
        result = runner.invoke(app, ["run", "job-x", "--", sys.executable, "-c", "pass"])

        assert result.exit_code == 0
        assert structlog.contextvars.get_contextvars()["cli_command"] == "run"
