"""Backend modules for display detection and brightness control."""

from wlbright.backends.apple import AppleDisplayStatus
from wlbright.backends.brightness import (
    Backend,
    BackendClassifier,
    BackendCommands,
    MonitorController,
)
from wlbright.backends.ddc import DdcEntry, DdcRegistry
from wlbright.backends.display import Display, DisplayManager
from wlbright.backends.hyprland import HyprlandWindowManager

__all__ = [
    "AppleDisplayStatus",
    "Backend",
    "BackendClassifier",
    "BackendCommands",
    "DdcEntry",
    "DdcRegistry",
    "Display",
    "DisplayManager",
    "HyprlandWindowManager",
    "MonitorController",
]
