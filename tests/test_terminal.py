"""Tests for the execution engine: validate, run, audit, return."""
import os

import pytest

from secure_terminal.constants import __version__
from secure_terminal.settings import Settings
from secure_terminal.terminal import SecureTerminal

posix_only = pytest.mark.skipif(os.name != "posix", reason="needs a POSIX shell")


@posix_only
@pytest.mark.integration
class TestExecute:
    @pytest.mark.asyncio
    async def test_runs_allowed_command(self, terminal, work_dir):
        result = await terminal.execute("cat notes.txt", str(work_dir))

        assert result == {
            "success": True,
            "exit_code": 0,
            "stdout": "alpha\nbeta\n",
            "stderr": "",
            "timeout": False,
        }

    @pytest.mark.asyncio
    async def test_execution_is_audited(self, terminal, work_dir):
        await terminal.execute("echo audited", str(work_dir))

        history = await terminal.search_history("echo audited")
        assert len(history["matches"]) == 1
        record = history["matches"][0]
        assert record["type"] == "execution"
        assert record["cwd"] == str(work_dir)
        assert record["exit_code"] == 0
        assert record["success"] is True
        assert record["duration_ms"] >= 0

    @pytest.mark.asyncio
    async def test_timeout(self, settings, store, audit):
        quick = Settings(
            timeout_seconds=1,
            max_output_lines=settings.max_output_lines,
            allowed_dirs=settings.allowed_dirs,
            home=settings.home,
            kill_grace_seconds=0,
        )
        await store.set_allow_override("sleep")
        terminal = SecureTerminal(quick, store=store, audit=audit)

        result = await terminal.execute("sleep 10")
        assert result["timeout"] is True
        assert result["exit_code"] is None

        record = (await terminal.search_history("sleep 10"))["matches"][-1]
        assert record["timeout"] is True

    @pytest.mark.asyncio
    async def test_spawn_failure_is_audited(self, terminal, tmp_path):
        missing = str(tmp_path / "missing")
        result = await terminal.execute("echo hi", missing)

        assert result["success"] is False
        assert result["error"].startswith("Failed to start command")
        record = (await terminal.search_history("echo hi"))["matches"][-1]
        assert record["success"] is False
        assert record["error"] == result["error"]


class TestDenied:
    @pytest.mark.asyncio
    async def test_blocked(self, terminal):
        result = await terminal.execute("rm -rf /")
        assert result == {"success": False, "error": "blocked command rm"}

    @pytest.mark.asyncio
    async def test_path_outside_allowed_dirs(self, terminal):
        result = await terminal.execute("cat /etc/shadow")
        assert result == {"success": False, "error": "path /etc/shadow not allowed"}

    @pytest.mark.asyncio
    async def test_denials_are_not_audited(self, terminal):
        await terminal.execute("sudo ls")
        assert (await terminal.search_history("sudo"))["matches"] == []

    @pytest.mark.asyncio
    async def test_block_override_applies_to_next_call(self, terminal):
        await terminal.config.block_command("echo")
        result = await terminal.execute("echo hi")
        assert result["error"] == "blocked command echo"


class TestInfo:
    def test_status(self, terminal, settings):
        status = terminal.status()
        assert status["version"] == __version__
        assert status["timeout_ms"] == 5000
        assert status["max_lines"] == 50
        assert status["allowed_dirs"] == list(settings.allowed_dirs)
        assert status["audit_logging"] is True
        assert status["config_path"] == str(settings.config_path)

    @pytest.mark.asyncio
    async def test_list_policy(self, terminal):
        await terminal.config.allow_command("make")
        policy = terminal.list_policy()
        assert "make" in policy["allowed"]
        assert "rm" in policy["blocked"]
        assert policy["allow_overrides"] == ["make"]

    def test_default_store_is_loaded_from_settings(self, settings):
        terminal = SecureTerminal(settings)
        assert settings.config_path.exists()
        assert terminal.audit.path == settings.audit_path
