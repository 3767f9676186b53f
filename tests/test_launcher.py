"""Tests for process launching and teardown (connection/launcher.py)."""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from unittest.mock import patch

import pytest

from mcp_probe.connection.launcher import ProcessLauncher, merged_environment
from mcp_probe.errors import SpawnError
from mcp_probe.models import ServerDefinition


class TestMergedEnvironment:
    def test_definition_env_overlays_current_env(self, monkeypatch):
        monkeypatch.setenv("MCP_PROBE_TEST_BASE", "from-parent")
        monkeypatch.setenv("MCP_PROBE_TEST_OVERRIDE", "parent")
        definition = ServerDefinition(
            command="x", env={"MCP_PROBE_TEST_OVERRIDE": "child", "EXTRA": "1"}
        )

        env = merged_environment(definition)

        assert env["MCP_PROBE_TEST_BASE"] == "from-parent"
        assert env["MCP_PROBE_TEST_OVERRIDE"] == "child"
        assert env["EXTRA"] == "1"


class TestLaunchFailures:
    async def test_missing_executable(self):
        launcher = ProcessLauncher()

        with pytest.raises(SpawnError, match="Command not found: definitely-not-a-real-cmd"):
            await launcher.launch(ServerDefinition(command="definitely-not-a-real-cmd"))

    async def test_not_executable(self, tmp_path: Path):
        script = tmp_path / "server.sh"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(0o644)

        with pytest.raises(SpawnError, match="Permission denied"):
            await ProcessLauncher().launch(ServerDefinition(command=str(script)))

    async def test_empty_command(self):
        with pytest.raises(SpawnError, match="No command"):
            await ProcessLauncher().launch(ServerDefinition(command="  "))

    async def test_other_os_error(self):
        with patch(
            "mcp_probe.connection.launcher.asyncio.create_subprocess_exec",
            side_effect=OSError("exec format error"),
        ), pytest.raises(SpawnError, match="Failed to start"):
            await ProcessLauncher().launch(ServerDefinition(command="weird"))

    async def test_start_new_session_is_passed(self):
        with patch(
            "mcp_probe.connection.launcher.asyncio.create_subprocess_exec",
            side_effect=FileNotFoundError("nope"),
        ) as mock_exec, pytest.raises(SpawnError):
            await ProcessLauncher().launch(
                ServerDefinition(command="npx", args=["-y", "pkg"], env={"K": "V"})
            )

        args, kwargs = mock_exec.call_args
        assert args == ("npx", "-y", "pkg")
        assert kwargs["start_new_session"] is True
        assert kwargs["env"]["K"] == "V"


class TestTerminate:
    async def test_graceful_terminate(self, echo_server):
        process = await ProcessLauncher().launch(echo_server("silent"))
        assert process.returncode is None

        await process.terminate()

        assert process.returncode is not None

    async def test_terminate_is_idempotent(self, echo_server):
        process = await ProcessLauncher().launch(echo_server("silent"))

        await process.terminate()
        first = process.returncode
        await process.terminate()

        assert process.returncode == first

    async def test_terminate_after_process_exited(self, echo_server):
        process = await ProcessLauncher().launch(echo_server("exit"))
        await asyncio.wait_for(process._proc.wait(), 5)

        await process.terminate()

        assert process.returncode == 3

    async def test_sigkill_after_grace_period(self, echo_server):
        process = await ProcessLauncher(kill_grace=0.3).launch(echo_server("stubborn"))
        assert await asyncio.wait_for(process.stdout.readline(), 5) == b"ready\n"

        await asyncio.wait_for(process.terminate(), 5)

        assert process.returncode == -signal.SIGKILL

    async def test_streams_talk_to_the_child(self, echo_server):
        process = await ProcessLauncher().launch(echo_server("echo"))
        try:
            assert await asyncio.wait_for(process.stdout.readline(), 5) == b"Server starting...\n"
            process.stdin.write(b'{"jsonrpc":"2.0","id":1,"method":"ping"}\n')
            line = await asyncio.wait_for(process.stdout.readline(), 5)
            assert b'"id": 1' in line
        finally:
            await process.terminate()
