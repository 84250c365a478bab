"""Display topology via wlr-randr."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from wlbright.process import ProcessRunner

logger = logging.getLogger(__name__)

_FIELDS = {"Make:": "make", "Model:": "model", "Serial:": "serial"}


@dataclass(frozen=True)
class Display:
    """A connected output as reported by the compositor."""

    name: str  # e.g., "HDMI-A-1", "eDP-1"
    make: Optional[str] = None  # e.g., "Apple Computer Inc"
    model: Optional[str] = None  # e.g., "StudioDisplay"
    serial: Optional[str] = None
    enabled: bool = True

    @property
    def display_name(self) -> str:
        """Human-readable display name."""
        if self.model:
            return f"{self.model} ({self.name})"
        return self.name


def parse_wlr_randr_output(output: str) -> list[Display]:
    """Parse wlr-randr output text into Display objects.

    Example wlr-randr output:
    HDMI-A-1 "Samsung Electric Company LU28R55 HNMNB00590 (HDMI-A-1)"
      Enabled: yes
      Make: Samsung Electric Company
      Model: LU28R55
      Serial: HNMNB00590
    """
    displays = []
    current: Optional[dict] = None

    for line in output.split("\n"):
        # New output starts with non-whitespace
        if line and not line[0].isspace():
            if current:
                displays.append(Display(**current))

            match = re.match(r"^(\S+)", line)
            current = {"name": match.group(1)} if match else None
        elif current is not None and line.strip():
            line = line.strip()

            if line.startswith("Enabled:"):
                current["enabled"] = "yes" in line.lower()
                continue
            for prefix, field in _FIELDS.items():
                if line.startswith(prefix):
                    current[field] = line.split(":", 1)[1].strip() or None
                    break

    if current:
        displays.append(Display(**current))

    return displays


class DisplayManager:
    """Lists the displays currently attached to the compositor."""

    def __init__(self, runner: ProcessRunner, wlr_randr: str = "wlr-randr"):
        self.runner = runner
        self.wlr_randr = wlr_randr

    async def discover_displays(self) -> list[Display]:
        """Return enabled outputs. An unavailable wlr-randr yields no displays."""
        output = await self.runner.run(self.wlr_randr)
        if not output:
            logger.warning(f"{self.wlr_randr} produced no output")
            return []

        return [d for d in parse_wlr_randr_output(output) if d.enabled]
