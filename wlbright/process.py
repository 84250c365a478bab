"""Asynchronous execution of external helper tools."""

import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ProcessRunner:
    """Run helper tools for probes and fire-and-forget writes."""

    def __init__(self, command_timeout: float = 10.0):
        """Initialize the runner.

        Args:
            command_timeout: Timeout for a single command in seconds
        """
        self.command_timeout = command_timeout
        self._pending: set[asyncio.Task] = set()

    async def run(self, *argv: str) -> str:
        """Run a command and return its stdout.

        Returns an empty string when the tool is missing, times out or
        cannot be started. A non-zero exit status still returns whatever
        the tool printed.
        """
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.debug(f"{argv[0]} not found")
            return ""
        except OSError as e:
            logger.warning(f"Failed to start {argv[0]}: {e}")
            return ""

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.command_timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"{' '.join(argv)} timed out")
            return ""

        if proc.returncode != 0:
            logger.debug(
                f"{' '.join(argv)} returned {proc.returncode}: {stderr.decode(errors='replace').strip()}"
            )

        return stdout.decode(errors="replace")

    def exec_detached(self, *argv: str) -> None:
        """Start a command without waiting for it to finish.

        Must be called from within a running event loop.
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._exec(argv))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _exec(self, argv: tuple[str, ...]) -> Optional[int]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            logger.error(f"{argv[0]} not found. Is it installed?")
            return None
        except OSError as e:
            logger.error(f"Failed to start {argv[0]}: {e}")
            return None

        try:
            _, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self.command_timeout
            )
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"{' '.join(argv)} timed out")
            return None

        if proc.returncode != 0:
            logger.warning(
                f"{' '.join(argv)} failed ({proc.returncode}): {stderr.decode(errors='replace').strip()}"
            )
        else:
            logger.debug(f"Ran {' '.join(argv)}")
        return proc.returncode

    async def drain(self) -> None:
        """Wait for every detached command started so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
