from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from switchyard_core.logging import get_logger

logger = get_logger("skills.commands")

_MAX_OUTPUT_BYTES = 100 * 1024  # 100 KB


@dataclass(frozen=True, slots=True)
class CommandOutput:
    """Captured result of one shell command."""
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: float
    timed_out: bool = False
    truncated: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


@runtime_checkable
class CommandRunner(Protocol):
    """Executes a fully substituted command line."""

    async def run(self, command: str) -> CommandOutput: ...


class ShellCommandRunner:
    """Run commands through the system shell as child processes."""

    def __init__(
        self,
        timeout_seconds: float = 60.0,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self._timeout = timeout_seconds
        self._cwd = cwd
        self._env = env

    async def run(self, command: str) -> CommandOutput:
        env = os.environ.copy()
        if self._env:
            env.update(self._env)

        logger.debug("Running command: %s", command)
        t0 = time.monotonic()
        proc = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(self._cwd) if self._cwd else None,
            env=env,
        )
        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=self._timeout,
            )
        except TimeoutError:
            # Kill the child and reap it to avoid zombies.
            try:
                proc.kill()
                await proc.wait()
            except (OSError, ProcessLookupError):
                pass
            return CommandOutput(
                stdout="",
                stderr=f"Command timed out after {self._timeout}s",
                exit_code=-1,
                duration_ms=(time.monotonic() - t0) * 1000,
                timed_out=True,
            )

        duration_ms = (time.monotonic() - t0) * 1000

        truncated = False
        if len(stdout_bytes) > _MAX_OUTPUT_BYTES:
            stdout_bytes = stdout_bytes[:_MAX_OUTPUT_BYTES]
            truncated = True
        if len(stderr_bytes) > _MAX_OUTPUT_BYTES:
            stderr_bytes = stderr_bytes[:_MAX_OUTPUT_BYTES]
            truncated = True

        return CommandOutput(
            stdout=stdout_bytes.decode("utf-8", errors="replace"),
            stderr=stderr_bytes.decode("utf-8", errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else -1,
            duration_ms=duration_ms,
            truncated=truncated,
        )
