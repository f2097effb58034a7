"""
streamclip Process Runner - Narrow interface around external tool execution.

Responsibilities:
- Launch a subprocess and wait for its exit code
- Enforce a deadline and honour cancellation
- Never leave an orphaned child behind

Invariants:
- On timeout, cancellation or interrupt the child receives SIGTERM,
  then SIGKILL after a grace period, and is reaped before returning
- run() returns the exit code; it does not interpret it
"""

import logging
import shlex
import subprocess
import threading
import time
from typing import Protocol, Sequence

from streamclip.errors import JobCancelledError


logger = logging.getLogger(__name__)


class ProcessLaunchError(Exception):
    """Executable missing or not startable."""


class ProcessTimeoutError(Exception):
    """Process exceeded its deadline and was killed."""


class ProcessRunner(Protocol):
    def run(
        self,
        args: Sequence[str],
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        ...


class SubprocessRunner:
    """
    ProcessRunner backed by subprocess.Popen.

    stderr is captured and the tail is logged when the exit code is
    non-zero; stdout is discarded.
    """

    def __init__(self, poll_interval: float = 0.2, terminate_grace: float = 5.0):
        self.poll_interval = poll_interval
        self.terminate_grace = terminate_grace

    def run(
        self,
        args: Sequence[str],
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """
        Run `args` to completion.

        Args:
            args: Command line, executable first
            timeout: Seconds before the process is killed (None = no limit)
            cancel: Event that aborts the run when set

        Returns:
            Process exit code.

        Raises:
            ProcessLaunchError: If the process cannot be started.
            ProcessTimeoutError: If the deadline passes.
            JobCancelledError: If `cancel` is set while running.
        """
        args = [str(a) for a in args]
        logger.debug("Executing: %s", shlex.join(args))

        if cancel is not None and cancel.is_set():
            raise JobCancelledError(f"Cancelled before launching {args[0]}")

        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise ProcessLaunchError(f"Failed to launch {args[0]}: {e}") from e

        deadline = None if timeout is None else time.monotonic() + timeout
        try:
            while True:
                try:
                    _, stderr = process.communicate(timeout=self.poll_interval)
                    break
                except subprocess.TimeoutExpired:
                    if cancel is not None and cancel.is_set():
                        self._stop(process)
                        raise JobCancelledError(f"Cancelled while running {args[0]}")
                    if deadline is not None and time.monotonic() >= deadline:
                        self._stop(process)
                        raise ProcessTimeoutError(
                            f"{args[0]} exceeded {timeout:.0f}s deadline"
                        )
        except BaseException:
            # Interrupts included: the child must not outlive us
            self._stop(process)
            raise

        code = process.returncode
        if code != 0:
            tail = (stderr or b"").decode(errors="ignore").strip()[-2000:]
            logger.warning("PID %s exited with code %s: %s", process.pid, code, tail)
        return code

    def _stop(self, process: subprocess.Popen) -> None:
        if process.poll() is not None:
            return
        logger.info("Sending SIGTERM to PID %s", process.pid)
        process.terminate()
        try:
            process.wait(timeout=self.terminate_grace)
        except subprocess.TimeoutExpired:
            logger.warning("PID %s did not terminate, sending SIGKILL", process.pid)
            process.kill()
            process.wait()
