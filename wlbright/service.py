"""Wiring of probes, registries and the brightness directory."""

import logging
from typing import Optional

from wlbright.backends.apple import AppleDisplayStatus
from wlbright.backends.brightness import BackendClassifier, BackendCommands
from wlbright.backends.ddc import DdcRegistry
from wlbright.backends.display import Display, DisplayManager
from wlbright.backends.hyprland import HyprlandWindowManager
from wlbright.config import Settings
from wlbright.directory import BrightnessDirectory, CommandFacade
from wlbright.process import ProcessRunner

logger = logging.getLogger(__name__)


class BrightnessService:
    """Owns all brightness state for one session."""

    def __init__(self, settings: Settings, runner: Optional[ProcessRunner] = None):
        self.settings = settings
        tools = settings.brightness
        self.runner = runner or ProcessRunner(command_timeout=settings.agent.command_timeout)

        self.display_manager = DisplayManager(self.runner, wlr_randr=tools.wlr_randr)
        self.window_manager = HyprlandWindowManager(self.runner, hyprctl=tools.hyprctl)
        self.ddc_registry = DdcRegistry()
        self.apple_status = AppleDisplayStatus()
        self.classifier = BackendClassifier(
            self.ddc_registry, self.apple_status, overrides=settings.display_overrides
        )
        self.directory = BrightnessDirectory(
            self.runner,
            self.classifier,
            self.window_manager,
            commands=BackendCommands(
                asdbctl=tools.asdbctl,
                ddcutil=tools.ddcutil,
                brightnessctl=tools.brightnessctl,
            ),
            debounce=tools.debounce_ms / 1000,
            ddc_default_max=tools.ddc_default_max,
        )
        self.facade = CommandFacade(self.directory)
        self._displays: frozenset[Display] = frozenset()

    async def probe_backends(self) -> None:
        """Re-run DDC detection and the Apple display probe."""
        tools = self.settings.brightness
        await self.ddc_registry.detect(
            self.runner, ddcutil=tools.ddcutil, sleep_multiplier=tools.ddc_sleep_multiplier
        )
        await self.apple_status.refresh(self.runner, asdbctl=tools.asdbctl)

    async def refresh_topology(self, force: bool = False) -> bool:
        """Rebuild the directory if the set of displays changed."""
        displays = await self.display_manager.discover_displays()
        if not force and frozenset(displays) == self._displays:
            return False

        logger.info(f"Display topology changed: {sorted(d.name for d in displays)}")
        self._displays = frozenset(displays)
        await self.probe_backends()
        await self.directory.rebuild(displays)
        return True

    async def reclassify(self) -> None:
        await self.probe_backends()
        await self.directory.reclassify()

    def close(self) -> None:
        self.directory.close()
