"""
Subprocess execution for version-control primitives.

Every git invocation in the sync engine goes through `run_process`, which
returns a structured `ProcessResult` instead of raising. Timeouts kill the
whole process group so a stalled network operation cannot keep a child
process alive after the caller has given up on it.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

IS_WINDOWS = sys.platform == "win32"
IS_UNIX = not IS_WINDOWS


class ProcessResult(BaseModel):
    """Structured result from process execution."""

    success: bool
    """Whether the process completed successfully (exit code 0)."""

    exit_code: int | None
    """Process exit code, or None if killed/timed out."""

    stdout: str
    """Standard output from the process."""

    stderr: str
    """Standard error from the process."""

    duration_ms: int
    """Execution duration in milliseconds."""

    timed_out: bool = False
    """Whether the process was terminated due to timeout."""

    error: str | None = None
    """Error message if the process could not be run at all."""


def _elapsed_ms(started_at: datetime) -> int:
    return int((datetime.now(timezone.utc) - started_at).total_seconds() * 1000)


async def run_process(
    command: list[str],
    *,
    timeout: float | None = None,
    env: dict[str, str] | None = None,
    cwd: str | None = None,
    input_data: str | None = None,
) -> ProcessResult:
    """
    Run a subprocess with timeout and automatic cleanup.

    Args:
        command: Command and arguments as a list (e.g., ["git", "status"])
        timeout: Optional timeout in seconds. None means no timeout.
        env: Optional environment variables, merged over os.environ.
        cwd: Optional working directory for the process.
        input_data: Optional string to send to stdin.

    Returns:
        ProcessResult with output, exit code, and timing information.

    Example:
        >>> result = await run_process(["git", "status"], timeout=30.0, cwd="/repo")
        >>> if result.success:
        ...     print(result.stdout)
    """
    started_at = datetime.now(timezone.utc)
    process: asyncio.subprocess.Process | None = None

    process_env = None
    if env is not None:
        process_env = os.environ.copy()
        process_env.update(env)

    try:
        kwargs: dict[str, Any] = {
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
            "stdin": asyncio.subprocess.PIPE if input_data is not None else asyncio.subprocess.DEVNULL,
            "cwd": cwd,
            "env": process_env,
        }

        # A new session gives the child its own process group for killpg()
        if IS_UNIX:
            kwargs["start_new_session"] = True

        logger.debug("Running process: %s", " ".join(command))
        process = await asyncio.create_subprocess_exec(*command, **kwargs)

        try:
            input_bytes = input_data.encode("utf-8") if input_data is not None else None

            if timeout is not None:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(
                    process.communicate(input_bytes),
                    timeout=timeout,
                )
            else:
                stdout_bytes, stderr_bytes = await process.communicate(input_bytes)

            stdout = stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else ""
            stderr = stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else ""

            return ProcessResult(
                success=process.returncode == 0,
                exit_code=process.returncode,
                stdout=stdout,
                stderr=stderr,
                duration_ms=_elapsed_ms(started_at),
            )

        except asyncio.TimeoutError:
            await kill_process_group(process)
            return ProcessResult(
                success=False,
                exit_code=None,
                stdout="",
                stderr="",
                duration_ms=_elapsed_ms(started_at),
                timed_out=True,
                error=f"Process timed out after {timeout}s",
            )

    except FileNotFoundError:
        return ProcessResult(
            success=False,
            exit_code=None,
            stdout="",
            stderr="",
            duration_ms=_elapsed_ms(started_at),
            error=f"Command not found: {command[0]}. Ensure it is installed and in PATH.",
        )

    except OSError as e:
        # e.g. cwd does not exist
        logger.debug("Could not start %s: %s", command[0], e)
        return ProcessResult(
            success=False,
            exit_code=None,
            stdout="",
            stderr="",
            duration_ms=_elapsed_ms(started_at),
            error=f"Could not start process: {e}",
        )

    finally:
        if process is not None:
            await ensure_process_terminated(process)


async def kill_process_group(process: asyncio.subprocess.Process) -> None:
    """
    Kill the process group so that helpers spawned by git (ssh, credential
    helpers, remote-https) die with it.

    Args:
        process: The subprocess to kill along with its children.
    """
    if process.returncode is not None:
        return

    try:
        if IS_UNIX:
            try:
                pgid = os.getpgid(process.pid)
                os.killpg(pgid, signal.SIGKILL)
                logger.debug("Killed process group %s", pgid)
            except (ProcessLookupError, OSError) as e:
                logger.debug("Process group kill failed (process may be dead): %s", e)
        else:
            try:
                process.kill()
            except (ProcessLookupError, OSError) as e:
                logger.debug("Process kill failed (process may be dead): %s", e)

        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Process %s did not exit after SIGKILL", process.pid)

    except Exception as e:
        logger.warning("Error during process group kill: %s", e)


async def ensure_process_terminated(process: asyncio.subprocess.Process) -> None:
    """
    Ensure the process is fully terminated.

    Tries SIGTERM first, then escalates to killing the process group if the
    process has not exited within two seconds. Safe to call on a process that
    already finished.
    """
    if process.returncode is not None:
        return

    try:
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            await kill_process_group(process)
    except (ProcessLookupError, OSError) as e:
        logger.debug("Process termination skipped (already dead): %s", e)
