"""Presence detection for Apple displays controlled through asdbctl."""

import logging

from wlbright.process import ProcessRunner

logger = logging.getLogger(__name__)


class AppleDisplayStatus:
    """Whether an Apple display is reachable through asdbctl."""

    def __init__(self, present: bool = False):
        self.present = present

    def update(self, probe_output: str) -> bool:
        """Set presence from the output of ``asdbctl get``."""
        self.present = bool(probe_output.strip())
        return self.present

    async def refresh(self, runner: ProcessRunner, asdbctl: str = "asdbctl") -> bool:
        """Probe asdbctl. A missing tool simply means no Apple display."""
        present = self.update(await runner.run(asdbctl, "get"))
        logger.debug(f"Apple display present: {present}")
        return present
