"""
Process execution for backend runners.

execute() spawns one Invocation, captures stdout and stderr, and kills the
process group if the shared CancellationToken is cancelled or its deadline passes.
run() drives a Runner through setup, execution and cleanup, turning a
nonzero exit into CommandError with the captured output attached.
"""

import logging
import os
import signal
import subprocess
import time
from typing import Callable, Optional

from distrobuilder.backends.base import CommandResult, Invocation, Runner
from distrobuilder.core.cancellation import CancellationToken
from distrobuilder.core.exceptions import (
    CommandCancelledError,
    CommandError,
    DistroBuilderError,
)

logger = logging.getLogger(__name__)

# Seconds between cancellation checks while a process runs
POLL_INTERVAL = 0.5

Executor = Callable[[Invocation, Optional[CancellationToken]], CommandResult]


def execute(
    invocation: Invocation, cancellation: Optional[CancellationToken] = None
) -> CommandResult:
    """
    Run an invocation to completion and capture its output.

    Args:
        invocation: Command to run
        cancellation: Token polled while the process runs

    Returns:
        CommandResult with exit code and captured output (never raises for
        a nonzero exit)

    Raises:
        CommandError: If the process cannot be started
        CommandCancelledError: If the token is cancelled or expires
    """
    if cancellation is not None:
        cancellation.raise_if_cancelled(invocation.pretty())

    env = dict(os.environ)
    env.update(invocation.environment)

    start = time.monotonic()
    try:
        process = subprocess.Popen(
            invocation.argv,
            cwd=invocation.working_directory,
            env=env,
            stdin=subprocess.PIPE if invocation.stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except OSError as e:
        raise CommandError(
            f"Failed to start '{invocation.pretty()}': {e}", invocation=invocation
        ) from e

    pending_input = invocation.stdin
    while True:
        try:
            stdout, stderr = process.communicate(
                input=pending_input, timeout=POLL_INTERVAL
            )
            break
        except subprocess.TimeoutExpired:
            # Input is only written by the first communicate() call
            pending_input = None
            reason = cancellation.reason() if cancellation is not None else None
            if reason:
                _kill_process_group(process)
                stdout, stderr = process.communicate()
                raise CommandCancelledError(
                    f"Command '{invocation.pretty()}' {reason}",
                    invocation=invocation,
                    exit_code=process.returncode,
                    stdout=stdout,
                    stderr=stderr,
                )

    duration = time.monotonic() - start
    logger.debug(
        f"Command exited with {process.returncode} after {duration:.1f}s: "
        f"{invocation.command}"
    )
    return CommandResult(
        invocation=invocation,
        exit_code=process.returncode,
        stdout=stdout,
        stderr=stderr,
        duration=duration,
    )


def _kill_process_group(process: subprocess.Popen) -> None:
    """Kill a process started in its own session together with its children."""
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        logger.debug(f"Process group {process.pid} already exited")


def run(
    runner: Runner,
    executor: Optional[Executor] = None,
    cancellation: Optional[CancellationToken] = None,
    check: bool = True,
) -> CommandResult:
    """
    Set up, execute and clean up one runner.

    Cleanup always runs. A cleanup failure is logged and never replaces
    an error raised by setup or execution.

    Args:
        runner: Runner producing the invocation
        executor: Function executing the invocation (default: execute)
        cancellation: Token threaded into the executor
        check: Raise CommandError on a nonzero exit code

    Returns:
        CommandResult of the execution

    Raises:
        CommandError: If the command fails to start, or exits nonzero and
            check is True
    """
    executor = executor or execute
    try:
        runner.setup()
        invocation = runner.build_invocation()
        logger.debug(f"Running [{runner.name}]: {invocation.pretty()}")
        if invocation.working_directory is not None:
            logger.debug(f"  in {invocation.working_directory}")

        try:
            result = executor(invocation, cancellation)
        except CommandError as e:
            e.add_context(backend=runner.name)
            raise
        if check and not result.succeeded:
            raise CommandError(
                f"Command '{invocation.pretty()}' failed with exit code {result.exit_code}",
                invocation=invocation,
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            ).add_context(backend=runner.name)
        return result
    finally:
        try:
            runner.cleanup()
        except (OSError, DistroBuilderError) as e:
            logger.warning(f"Cleanup of {runner.name} runner failed: {e}")
