"""
Subprocess Utilities with Timeout Support

Runs external commands without blocking the event loop. A command that
outlives its timeout is terminated together with its children
(SIGTERM, then SIGKILL after a grace period) before the timeout is
reported, so nothing keeps running after the caller has given up.
"""
import asyncio
import logging
import os
import signal
from dataclasses import dataclass
from typing import List, Optional, Sequence

import psutil

logger = logging.getLogger(__name__)

DEFAULT_SUBPROCESS_TIMEOUT = 30
SIGTERM_GRACE_PERIOD = 2


class SubprocessTimeoutError(Exception):
    """Process exceeded its wall-clock timeout and was killed"""

    def __init__(self, command: str, timeout: float, pid: Optional[int] = None):
        self.command = command
        self.timeout = timeout
        self.pid = pid
        super().__init__(f"Subprocess timed out after {timeout}s: {command} (PID {pid})")


@dataclass(frozen=True)
class SubprocessResult:
    returncode: int
    stdout: str
    stderr: str


def _describe(cmd: Sequence[str]) -> str:
    return ' '.join(cmd[:3]) + ('...' if len(cmd) > 3 else '')


def _decode(data: Optional[bytes]) -> str:
    return data.decode('utf-8', errors='replace') if data else ''


def _signal_group(pgid: int, sig: int) -> None:
    try:
        os.killpg(pgid, sig)
    except (ProcessLookupError, PermissionError):
        pass


def _group_alive(pgid: int) -> bool:
    try:
        os.killpg(pgid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        pass
    return True


async def terminate_process_tree(
    process: asyncio.subprocess.Process,
    grace_period: float = SIGTERM_GRACE_PERIOD
) -> None:
    """
    Terminates a process and all of its children.

    The process is expected to lead its own process group
    (``start_new_session=True``), so descendants are reached even after
    the process itself has exited.

    Args:
        process: Process started with asyncio.create_subprocess_exec
        grace_period: Seconds to wait after SIGTERM before SIGKILL
    """
    try:
        children = psutil.Process(process.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    for child in children:
        try:
            child.terminate()
        except psutil.NoSuchProcess:
            pass
    _signal_group(process.pid, signal.SIGTERM)

    if process.returncode is None:
        try:
            process.terminate()
        except ProcessLookupError:
            pass

        try:
            await asyncio.wait_for(process.wait(), timeout=grace_period)
            logger.debug(f"Process terminated gracefully: PID {process.pid}")
        except asyncio.TimeoutError:
            logger.warning(f"Force killing process: PID {process.pid}")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
    else:
        # Leader already exited; orphaned descendants may still hold the pipes
        loop = asyncio.get_running_loop()
        deadline = loop.time() + grace_period
        while _group_alive(process.pid) and loop.time() < deadline:
            await asyncio.sleep(0.05)

    _signal_group(process.pid, signal.SIGKILL)
    for child in children:
        try:
            if child.is_running():
                child.kill()
        except psutil.NoSuchProcess:
            pass


async def run_subprocess_with_timeout(
    cmd: List[str],
    timeout: float = DEFAULT_SUBPROCESS_TIMEOUT,
    grace_period: float = SIGTERM_GRACE_PERIOD,
) -> SubprocessResult:
    """
    Run subprocess with timeout protection

    Args:
        cmd: Command and arguments (no shell involved)
        timeout: Maximum execution time in seconds
        grace_period: Seconds between SIGTERM and SIGKILL on timeout

    Returns:
        SubprocessResult with decoded stdout/stderr; a non-zero exit code
        is returned, not raised

    Raises:
        SubprocessTimeoutError: If the process exceeds timeout
        OSError: If the command cannot be started (e.g. not installed)
    """
    cmd_str = _describe(cmd)
    logger.debug(f"Running subprocess: {cmd_str} (timeout: {timeout}s)")

    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    logger.debug(f"Subprocess started: PID {process.pid}")

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(
            f"Subprocess TIMEOUT after {timeout}s: {cmd_str} (PID: {process.pid})",
            extra={'pid': process.pid},
        )
        await terminate_process_tree(process, grace_period)
        raise SubprocessTimeoutError(command=cmd_str, timeout=timeout, pid=process.pid)
    except BaseException:
        # Cancelled or failed while waiting: do not leave the process behind
        await terminate_process_tree(process, grace_period)
        raise

    if process.returncode != 0:
        logger.warning(
            f"Subprocess failed: {cmd_str} (exit code: {process.returncode})",
            extra={'returncode': process.returncode},
        )
    else:
        logger.debug(f"Subprocess completed: {cmd_str}")

    return SubprocessResult(
        returncode=process.returncode,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
    )
