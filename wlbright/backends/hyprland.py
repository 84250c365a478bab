"""Focus and monitor id queries against Hyprland."""

import json
import logging
from dataclasses import dataclass

from wlbright.backends.display import Display
from wlbright.process import ProcessRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HyprlandMonitor:
    id: int
    name: str
    focused: bool = False


def parse_monitors(output: str) -> dict[str, HyprlandMonitor]:
    """Parse ``hyprctl -j monitors`` output, keyed by output name."""
    try:
        data = json.loads(output)
    except ValueError:
        return {}
    if not isinstance(data, list):
        return {}

    monitors = {}
    for item in data:
        try:
            monitor = HyprlandMonitor(
                id=int(item["id"]),
                name=str(item["name"]),
                focused=bool(item.get("focused", False)),
            )
        except (KeyError, TypeError, ValueError):
            continue
        monitors[monitor.name] = monitor
    return monitors


class HyprlandWindowManager:
    """Cached view of the compositor's monitor list."""

    def __init__(self, runner: ProcessRunner, hyprctl: str = "hyprctl"):
        self.runner = runner
        self.hyprctl = hyprctl
        self._monitors: dict[str, HyprlandMonitor] = {}

    async def refresh(self) -> None:
        output = await self.runner.run(self.hyprctl, "-j", "monitors")
        self._monitors = parse_monitors(output) if output else {}
        if not self._monitors:
            logger.debug("No Hyprland monitors reported")

    def focused_display_for(self, display: Display) -> bool:
        monitor = self._monitors.get(display.name)
        return monitor is not None and monitor.focused

    def id_for(self, display: Display):
        monitor = self._monitors.get(display.name)
        return monitor.id if monitor is not None else None
