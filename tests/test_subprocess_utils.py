"""
Tests for subprocess execution with timeout
"""
import asyncio
import sys

import psutil
import pytest

from app.infrastructure.subprocess_utils import (
    SubprocessTimeoutError,
    run_subprocess_with_timeout,
)


def is_gone(pid):
    try:
        return psutil.Process(pid).status() == psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_captures_output_and_exit_code():
    result = await run_subprocess_with_timeout(
        [sys.executable, "-c", "import sys; print('out'); print('err', file=sys.stderr); sys.exit(3)"],
        timeout=10,
    )

    assert result.returncode == 3
    assert result.stdout.strip() == "out"
    assert result.stderr.strip() == "err"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_invalid_utf8_output_is_replaced():
    result = await run_subprocess_with_timeout(
        [sys.executable, "-c", "import sys; sys.stdout.buffer.write(b'ok\\xff')"],
        timeout=10,
    )

    assert result.returncode == 0
    assert result.stdout.startswith("ok")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_timeout_terminates_process():
    with pytest.raises(SubprocessTimeoutError) as exc_info:
        await run_subprocess_with_timeout(
            [sys.executable, "-c", "import time; time.sleep(60)"],
            timeout=0.5,
            grace_period=0.5,
        )

    pid = exc_info.value.pid
    assert exc_info.value.timeout == 0.5
    assert is_gone(pid)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_timeout_escalates_to_kill_when_sigterm_is_ignored():
    script = (
        "import signal, sys, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('ready', flush=True)\n"
        "time.sleep(60)\n"
    )

    loop = asyncio.get_running_loop()
    started = loop.time()
    with pytest.raises(SubprocessTimeoutError):
        await run_subprocess_with_timeout([sys.executable, "-c", script], timeout=1, grace_period=0.5)

    assert loop.time() - started < 10


@pytest.mark.integration
@pytest.mark.asyncio
async def test_missing_command_raises_os_error():
    with pytest.raises(OSError):
        await run_subprocess_with_timeout(["definitely-not-a-real-command-xyz"], timeout=5)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_timeout_kills_grandchild_left_behind_by_exited_child(tmp_path):
    pid_file = tmp_path / "grandchild.pid"
    script = (
        "import subprocess, sys\n"
        "child = subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(60)'])\n"
        f"open({str(pid_file)!r}, 'w').write(str(child.pid))\n"
    )

    loop = asyncio.get_running_loop()
    started = loop.time()
    with pytest.raises(SubprocessTimeoutError):
        # The grandchild inherits stdout, so the pipe stays open after the child exits
        await run_subprocess_with_timeout([sys.executable, "-c", script], timeout=1, grace_period=0.5)

    assert loop.time() - started < 10
    grandchild = int(pid_file.read_text())
    try:
        psutil.Process(grandchild).wait(timeout=5)
    except (psutil.NoSuchProcess, psutil.TimeoutExpired):
        pass
    assert is_gone(grandchild)
