"""Per-display brightness control across Apple, DDC/CI and backlight backends."""

import asyncio
import enum
import logging
import math
import re
import shlex
from typing import Optional

from wlbright.backends.apple import AppleDisplayStatus
from wlbright.backends.ddc import DdcRegistry
from wlbright.backends.display import Display
from wlbright.process import ProcessRunner

logger = logging.getLogger(__name__)

# DDC/CI VCP code for brightness (decimal 10, aka 0x0A)
VCP_BRIGHTNESS = 10

APPLE_MODEL_PREFIX = "StudioDisplay"
DEFAULT_DDC_MAX = 250
DEFAULT_DEBOUNCE = 0.5

_INTEGER = re.compile(r"\d+")


class Backend(str, enum.Enum):
    APPLE = "apple"
    DDC = "ddc"
    BACKLIGHT = "backlight"


class ControllerState(str, enum.Enum):
    IDLE = "idle"
    DEBOUNCE_WINDOW_OPEN = "debounce_window_open"


def round_percent(value: float) -> int:
    """Round half up, the way brightness tools expect percentages."""
    return math.floor(value * 100 + 0.5)


def classify(
    display: Display, ddc_registry: DdcRegistry, apple_display_present: bool
) -> Backend:
    """Pick the backend for a display. First matching rule wins."""
    if apple_display_present and (display.model or "").startswith(APPLE_MODEL_PREFIX):
        return Backend.APPLE
    if display.name in ddc_registry:
        return Backend.DDC
    return Backend.BACKLIGHT


class BackendClassifier:
    """Backend assignment using the detected DDC displays and Apple presence.

    Manual overrides (objects with ``output_name``, ``backend`` and
    ``ddc_bus`` attributes) take precedence over detection.
    """

    def __init__(
        self,
        ddc_registry: DdcRegistry,
        apple_status: AppleDisplayStatus,
        overrides: Optional[list] = None,
    ):
        self.ddc_registry = ddc_registry
        self.apple_status = apple_status
        self.overrides = {o.output_name: o for o in (overrides or [])}

    def classify(self, display: Display) -> Backend:
        return self.assignment(display)[0]

    def assignment(self, display: Display) -> tuple[Backend, Optional[str]]:
        """Return the backend and, for DDC, the I2C bus number."""
        override = self.overrides.get(display.name)
        if override is not None:
            if override.ddc_bus is not None and override.backend in (None, Backend.DDC):
                logger.debug(f"Override: {display.name} -> i2c-{override.ddc_bus}")
                return Backend.DDC, str(override.ddc_bus)
            if override.backend is not None and override.backend != Backend.DDC:
                logger.debug(f"Override: {display.name} -> {override.backend.value}")
                return override.backend, None

        backend = classify(display, self.ddc_registry, self.apple_status.present)
        if backend == Backend.DDC:
            return backend, self.ddc_registry.bus_for(display.name)
        return backend, None


class BackendCommands:
    """Command lines for probing and writing each backend."""

    def __init__(
        self,
        asdbctl: str = "asdbctl",
        ddcutil: str = "ddcutil",
        brightnessctl: str = "brightnessctl",
    ):
        self.asdbctl = asdbctl
        self.ddcutil = ddcutil
        self.brightnessctl = brightnessctl

    def probe(self, backend: Backend, bus_number: Optional[str] = None) -> list[str]:
        if backend == Backend.APPLE:
            return [self.asdbctl, "get"]
        if backend == Backend.DDC:
            return [self.ddcutil, "-b", str(bus_number), "getvcp", str(VCP_BRIGHTNESS), "--brief"]
        return [
            "sh",
            "-c",
            f"echo $({shlex.quote(self.brightnessctl)} g) $({shlex.quote(self.brightnessctl)} m)",
        ]

    def write(
        self, backend: Backend, value: float, bus_number: Optional[str] = None, vcp_max: int = 100
    ) -> list[str]:
        if backend == Backend.APPLE:
            return [self.asdbctl, "set", str(round_percent(value))]
        if backend == Backend.DDC:
            raw = math.floor(value * vcp_max + 0.5)
            return [self.ddcutil, "-b", str(bus_number), "setvcp", str(VCP_BRIGHTNESS), str(raw)]
        return [self.brightnessctl, "s", f"{round_percent(value)}%"]


class MonitorController:
    """Brightness state and writes for a single display.

    Writes are optimistic: ``brightness`` is updated as soon as a write is
    dispatched and the write itself is never awaited. DDC writes open a
    debounce window; requests arriving while it is open replace a single
    queued value, which is applied when the window closes.
    """

    def __init__(
        self,
        display: Display,
        runner: ProcessRunner,
        commands: Optional[BackendCommands] = None,
        debounce: float = DEFAULT_DEBOUNCE,
        ddc_default_max: int = DEFAULT_DDC_MAX,
    ):
        self.display = display
        self.runner = runner
        self.commands = commands or BackendCommands()
        self.debounce = debounce
        self.ddc_default_max = ddc_default_max

        self.backend: Optional[Backend] = None
        self.bus_number: Optional[str] = None
        self.brightness = 0.0
        self.vcp_max = ddc_default_max
        self.queued_brightness: Optional[float] = None
        self._debounce_handle: Optional[asyncio.TimerHandle] = None

    def __repr__(self) -> str:
        backend = self.backend.value if self.backend else None
        return f"<MonitorController {self.display.name} backend={backend} brightness={self.brightness:.2f}>"

    @property
    def state(self) -> ControllerState:
        if self._debounce_handle is not None:
            return ControllerState.DEBOUNCE_WINDOW_OPEN
        return ControllerState.IDLE

    @property
    def writable(self) -> bool:
        """Whether a write can be issued: a backend is assigned and DDC has a bus."""
        if self.backend is None:
            return False
        return self.backend != Backend.DDC or self.bus_number is not None

    async def assign(self, backend: Backend, bus_number: Optional[str] = None) -> bool:
        """Set the backend and re-read brightness if the assignment changed."""
        if backend == self.backend and bus_number == self.bus_number:
            return False

        logger.info(
            f"{self.display.name}: backend {backend.value}"
            + (f" on i2c-{bus_number}" if bus_number is not None else "")
        )
        self.backend = backend
        self.bus_number = bus_number
        self.vcp_max = self.ddc_default_max if backend == Backend.DDC else 100
        await self.read()
        return True

    async def read(self) -> None:
        """Probe the backend for the current brightness."""
        if self.backend is None:
            return
        output = await self.runner.run(*self.commands.probe(self.backend, self.bus_number))
        self.apply_probe(output)

    def apply_probe(self, output: str) -> None:
        """Update brightness from probe output.

        Unparseable output leaves the current brightness untouched.
        """
        if self.backend == Backend.APPLE:
            values = [int(v) for v in _INTEGER.findall(output)]
            if not values:
                logger.warning(f"{self.display.name}: no value in asdbctl output {output!r}")
                return
            # Divide by 101 to keep the historical asdbctl rounding
            self.brightness = _clamp(values[-1] / 101)
            self.vcp_max = 100

        elif self.backend == Backend.DDC:
            # Brief format: "VCP 10 C 60 100" (code, type, current, max)
            parts = output.split()
            try:
                current, maximum = int(parts[3]), int(parts[4])
            except (IndexError, ValueError):
                logger.warning(f"{self.display.name}: unexpected ddcutil output {output.strip()!r}")
                return
            if maximum > 0:
                self.vcp_max = maximum
                self.brightness = _clamp(current / maximum)
            else:
                self.brightness = 0.0

        elif self.backend == Backend.BACKLIGHT:
            values = [int(v) for v in _INTEGER.findall(output)]
            if len(values) < 2:
                logger.warning(f"{self.display.name}: unexpected brightnessctl output {output.strip()!r}")
                return
            current, maximum = values[-2], values[-1]
            self.vcp_max = 100
            self.brightness = _clamp(current / maximum) if maximum > 0 else 0.0

        logger.debug(f"{self.display.name}: read brightness {self.brightness:.2f}")

    def set_brightness(self, value: float) -> None:
        """Request a new brightness in [0, 1].

        Must be called from within a running event loop when the backend is DDC.
        """
        value = _clamp(value)
        if round_percent(value) == round_percent(self.brightness):
            return

        if self.backend == Backend.DDC and self._debounce_handle is not None:
            self.queued_brightness = value
            return

        if not self.writable:
            logger.warning(f"{self.display.name}: no usable backend, ignoring brightness change")
            return

        self.brightness = value
        self.runner.exec_detached(
            *self.commands.write(self.backend, value, self.bus_number, self.vcp_max)
        )
        logger.debug(f"{self.display.name}: brightness -> {round_percent(value)}%")

        if self.backend == Backend.DDC:
            if self._debounce_handle is not None:
                self._debounce_handle.cancel()
            loop = asyncio.get_running_loop()
            self._debounce_handle = loop.call_later(self.debounce, self._debounce_expired)

    def _debounce_expired(self) -> None:
        self._debounce_handle = None
        if self.queued_brightness is not None:
            value = self.queued_brightness
            self.queued_brightness = None
            self.set_brightness(value)

    def close(self) -> None:
        """Cancel the debounce timer and drop any queued value."""
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        self.queued_brightness = None


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
