"""Registry of monitor controllers and the get/set command surface."""

import asyncio
import logging
from typing import Optional

from wlbright.backends.brightness import (
    BackendClassifier,
    BackendCommands,
    MonitorController,
    round_percent,
)
from wlbright.backends.display import Display
from wlbright.expression import ExpressionError, parse_expression
from wlbright.process import ProcessRunner

logger = logging.getLogger(__name__)

ACTIVE = "active"


class BrightnessDirectory:
    """One MonitorController per connected display."""

    def __init__(
        self,
        runner: ProcessRunner,
        classifier: BackendClassifier,
        window_manager,
        commands: Optional[BackendCommands] = None,
        debounce: float = 0.5,
        ddc_default_max: int = 250,
    ):
        self.runner = runner
        self.classifier = classifier
        self.window_manager = window_manager
        self.commands = commands or BackendCommands()
        self.debounce = debounce
        self.ddc_default_max = ddc_default_max
        self._controllers: dict[Display, MonitorController] = {}

    @property
    def displays(self) -> list[Display]:
        return list(self._controllers)

    @property
    def controllers(self) -> list[MonitorController]:
        return list(self._controllers.values())

    async def rebuild(self, displays: list[Display]) -> None:
        """Replace every controller with fresh ones for ``displays``."""
        for controller in self._controllers.values():
            controller.close()

        controllers = {
            display: MonitorController(
                display,
                self.runner,
                commands=self.commands,
                debounce=self.debounce,
                ddc_default_max=self.ddc_default_max,
            )
            for display in displays
        }
        self._controllers = controllers
        await self.reclassify()
        logger.info(f"Tracking {len(controllers)} display(s)")

    async def reclassify(self) -> None:
        """Reassign backends; controllers whose assignment changed re-read brightness."""
        await asyncio.gather(
            *(
                controller.assign(*self.classifier.assignment(controller.display))
                for controller in self._controllers.values()
            )
        )

    async def resolve(self, query: str) -> Optional[MonitorController]:
        """Find the controller for a query.

        Queries are "active", "model:<model>", "serial:<serial>", "id:<id>"
        or a literal output name. Returns None when nothing matches.
        """
        if query == ACTIVE:
            await self.window_manager.refresh()
            return self._find(lambda d: self.window_manager.focused_display_for(d))

        if query.startswith("model:"):
            model = query[len("model:"):]
            return self._find(lambda d: d.model == model)

        if query.startswith("serial:"):
            serial = query[len("serial:"):]
            return self._find(lambda d: d.serial == serial)

        if query.startswith("id:"):
            try:
                monitor_id = int(query[len("id:"):])
            except ValueError:
                return None
            await self.window_manager.refresh()
            return self._find(lambda d: self.window_manager.id_for(d) == monitor_id)

        return self._find(lambda d: d.name == query)

    def _find(self, predicate) -> Optional[MonitorController]:
        for display, controller in self._controllers.items():
            if predicate(display):
                return controller
        return None

    def close(self) -> None:
        for controller in self._controllers.values():
            controller.close()


class CommandFacade:
    """String-in, string-out brightness commands."""

    def __init__(self, directory: BrightnessDirectory):
        self.directory = directory

    async def get(self, query: str = ACTIVE) -> float:
        """Return the brightness of the target, or -1 if it is unknown."""
        controller = await self.directory.resolve(query)
        if controller is None:
            return -1
        return controller.brightness

    async def set(self, expression: str, query: str = ACTIVE) -> str:
        """Apply an expression to the target and describe the outcome."""
        controller = await self.directory.resolve(query)
        if controller is None:
            return f"Invalid monitor: {query}"

        try:
            target = parse_expression(controller.brightness, expression)
        except ExpressionError as e:
            return str(e)

        if not controller.writable:
            return f"Cannot set brightness of {controller.display.name}: no usable backend"

        target = max(0.0, min(1.0, target))
        controller.set_brightness(target)
        return f"Set monitor {controller.display.name} brightness to {round_percent(target) / 100}"
