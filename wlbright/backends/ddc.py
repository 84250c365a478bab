"""Detection of DDC/CI capable monitors via ddcutil."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from wlbright.process import ProcessRunner

logger = logging.getLogger(__name__)

_BLOCK_SEPARATOR = re.compile(r"\n\s*\n")
_BUS_PATTERN = re.compile(r"I2C bus:\s*/dev/i2c-(\d+)", re.IGNORECASE)
_CONNECTOR_PATTERN = re.compile(r"DRM[ _]connector:[ \t]*(.*)", re.IGNORECASE)
_CARD_PREFIX = re.compile(r"^card\d+-")


@dataclass(frozen=True)
class DdcEntry:
    """A ddcutil-detected display."""

    bus_number: str  # e.g., "7" for /dev/i2c-7
    connector_name: str  # e.g., "HDMI-A-1", card prefix removed


def parse_detect_report(report: str) -> frozenset[DdcEntry]:
    """Parse ``ddcutil detect`` output into DDC entries.

    Example ddcutil detect output:
    Display 1
       I2C bus:  /dev/i2c-7
       DRM connector:           card1-HDMI-A-1
       EDID synopsis:
          Mfg id:               SAM - Samsung Electric Company
          ...

    Blocks that do not start with "Display " (for instance "Invalid display")
    and blocks missing either the bus or the connector are skipped.
    """
    entries = set()

    for block in _BLOCK_SEPARATOR.split(report.strip()):
        if not block.startswith("Display "):
            continue

        bus_match = _BUS_PATTERN.search(block)
        connector_match = _CONNECTOR_PATTERN.search(block)
        if not bus_match or not connector_match:
            continue

        connector = _CARD_PREFIX.sub("", connector_match.group(1).strip())
        if not connector:
            continue

        entries.add(DdcEntry(bus_number=bus_match.group(1), connector_name=connector))

    return frozenset(entries)


class DdcRegistry:
    """The set of currently detected DDC-capable displays.

    The set is only ever replaced as a whole, never edited in place.
    """

    def __init__(self, entries: frozenset[DdcEntry] = frozenset()):
        self._entries = frozenset(entries)

    @property
    def entries(self) -> frozenset[DdcEntry]:
        return self._entries

    def refresh(self, report: str) -> frozenset[DdcEntry]:
        """Replace the registry contents with the displays in a detect report."""
        self._entries = parse_detect_report(report)
        logger.debug(f"DDC registry: {sorted(e.connector_name for e in self._entries)}")
        return self._entries

    def bus_for(self, connector_name: str) -> Optional[str]:
        """Return the I2C bus number of a connector, if it is DDC capable."""
        for entry in self._entries:
            if entry.connector_name == connector_name:
                return entry.bus_number
        return None

    def __contains__(self, connector_name: object) -> bool:
        return any(e.connector_name == connector_name for e in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    async def detect(
        self, runner: ProcessRunner, ddcutil: str = "ddcutil", sleep_multiplier: float = 0.5
    ) -> frozenset[DdcEntry]:
        """Run ``ddcutil detect`` and refresh from its output."""
        output = await runner.run(
            ddcutil, "detect", "--sleep-multiplier", str(sleep_multiplier)
        )
        if not output.strip():
            logger.info("ddcutil detect produced no output, DDC control disabled")
        return self.refresh(output)
