"""Spawn MCP server processes with piped stdio and tear them down reliably."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal

from mcp_probe.config.settings import DEFAULT_KILL_GRACE
from mcp_probe.errors import SpawnError
from mcp_probe.models import ServerDefinition

logger = logging.getLogger(__name__)

_STDERR_CHUNK = 4096


def merged_environment(definition: ServerDefinition) -> dict[str, str]:
    """The current environment with the definition's env overlaid on top."""
    return {**os.environ, **definition.env}


class LaunchedProcess:
    """A running server process: its stdio streams plus termination control.

    Stderr is drained in the background into the debug log so a server that
    writes a lot of diagnostics never stalls on a full pipe.
    """

    def __init__(self, proc: asyncio.subprocess.Process, *, kill_grace: float) -> None:
        self._proc = proc
        self._kill_grace = kill_grace
        self._stderr_task: asyncio.Task[None] | None = None
        if proc.stderr is not None:
            self._stderr_task = asyncio.create_task(_drain_stderr(proc.pid, proc.stderr))

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode

    @property
    def stdin(self) -> asyncio.StreamWriter:
        assert self._proc.stdin is not None
        return self._proc.stdin

    @property
    def stdout(self) -> asyncio.StreamReader:
        assert self._proc.stdout is not None
        return self._proc.stdout

    async def terminate(self) -> None:
        """Stop the process: SIGTERM, then SIGKILL after the grace period.

        Safe to call any number of times; a no-op once the process has exited.
        """
        if self._proc.returncode is None:
            if self._proc.stdin is not None and not self._proc.stdin.is_closing():
                self._proc.stdin.close()
            _signal_process(self._proc, signal.SIGTERM)
            try:
                await asyncio.wait_for(self._proc.wait(), timeout=self._kill_grace)
            except TimeoutError:
                logger.warning(
                    "Server pid %d ignored SIGTERM for %gs; killing it",
                    self._proc.pid,
                    self._kill_grace,
                )
                _signal_process(self._proc, getattr(signal, "SIGKILL", signal.SIGTERM))
                await self._proc.wait()
            logger.debug("Server pid %d exited with %s", self._proc.pid, self._proc.returncode)

        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._stderr_task


class ProcessLauncher:
    """Start one server process per call. No retries."""

    def __init__(self, *, kill_grace: float = DEFAULT_KILL_GRACE) -> None:
        self._kill_grace = kill_grace

    async def launch(self, definition: ServerDefinition) -> LaunchedProcess:
        """Spawn ``definition`` with piped stdin/stdout/stderr.

        Uses asyncio.create_subprocess_exec -- never a shell.
        Uses start_new_session=True so the server and anything it forks
        can be signalled as one process group.

        Raises:
            SpawnError: The executable is missing, not executable, or the
                OS refused to start it.
        """
        if not definition.command.strip():
            raise SpawnError("No command given for the server.")

        try:
            proc = await asyncio.create_subprocess_exec(
                definition.command,
                *definition.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=merged_environment(definition),
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            raise SpawnError(
                f"Command not found: {definition.command}. Is it installed and on PATH?"
            ) from exc
        except PermissionError as exc:
            raise SpawnError(f"Permission denied starting {definition.command}: {exc}") from exc
        except OSError as exc:
            raise SpawnError(f"Failed to start {definition.command}: {exc}") from exc

        logger.debug("Started server %s (pid %d)", definition.command, proc.pid)
        return LaunchedProcess(proc, kill_grace=self._kill_grace)


def _signal_process(proc: asyncio.subprocess.Process, sig: int) -> None:
    if proc.returncode is not None:
        return
    try:
        os.killpg(os.getpgid(proc.pid), sig)
    except ProcessLookupError:
        pass
    except (AttributeError, OSError):
        # No process groups on this platform, or the group is gone
        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(sig)


async def _drain_stderr(pid: int, stream: asyncio.StreamReader) -> None:
    while chunk := await stream.read(_STDERR_CHUNK):
        for line in chunk.decode(errors="replace").splitlines():
            if line.strip():
                logger.debug("Server pid %d stderr: %s", pid, line.rstrip())
