"""Unified display brightness control for Wayland desktops."""

__version__ = "0.1.0"
