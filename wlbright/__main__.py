"""CLI entry point for wlbright."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer

from wlbright import __version__

T = TypeVar("T")

app = typer.Typer(
    name="wlbright",
    help="Unified display brightness control for Wayland desktops",
    add_completion=True,
)

_state: dict = {"config": None}


def setup_logging(level: str, stream=None) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(stream or sys.stdout)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"wlbright {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config file",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """Unified display brightness control for Wayland desktops."""
    _state["config"] = config


def _run_with_service(func: Callable[..., Awaitable[T]]) -> T:
    """Discover displays, run ``func`` against a fresh service and wait for writes."""
    from wlbright.config import Settings
    from wlbright.service import BrightnessService

    settings = Settings.load(_state["config"])
    setup_logging("WARNING", sys.stderr)

    async def _run() -> T:
        service = BrightnessService(settings)
        try:
            await service.refresh_topology(force=True)
            return await func(service)
        finally:
            service.close()
            await service.runner.drain()

    return asyncio.run(_run())


def _get(query: str) -> None:
    async def _query(service) -> float:
        return await service.facade.get(query)

    brightness = _run_with_service(_query)
    typer.echo(brightness)
    if brightness < 0:
        raise typer.Exit(1)


def _set(query: str, value: str) -> None:
    async def _apply(service) -> str:
        return await service.facade.set(value, query)

    typer.echo(_run_with_service(_apply))


@app.command()
def get(
    display: str = typer.Option(
        "active",
        "--display",
        "-d",
        help="Target display: active, model:<m>, serial:<s>, id:<n> or output name",
    ),
) -> None:
    """Print the brightness of a display (0-1, or -1 if not found)."""
    _get(display)


@app.command("get-for")
def get_for(query: str = typer.Argument(..., help="Target display query")) -> None:
    """Print the brightness of the display matching QUERY."""
    _get(query)


@app.command("set")
def set_brightness(
    value: str = typer.Argument(
        ...,
        help="Brightness expression: 0.5, 50%, +0.1, 0.1-, +10% or 10%-",
    ),
    display: str = typer.Option(
        "active",
        "--display",
        "-d",
        help="Target display: active, model:<m>, serial:<s>, id:<n> or output name",
    ),
) -> None:
    """Set display brightness.

    Examples:
        wlbright set 50%
        wlbright set +10%
        wlbright set 0.3 --display HDMI-A-1
    """
    _set(display, value)


@app.command("set-for")
def set_for(
    query: str = typer.Argument(..., help="Target display query"),
    value: str = typer.Argument(..., help="Brightness expression"),
) -> None:
    """Set the brightness of the display matching QUERY."""
    _set(query, value)


@app.command("list")
def list_displays() -> None:
    """List connected displays with their backend and brightness."""

    async def _list(service) -> list:
        return service.directory.controllers

    controllers = _run_with_service(_list)
    if not controllers:
        typer.echo("No displays found.", err=True)
        raise typer.Exit(1)

    for c in controllers:
        backend = c.backend.value if c.backend else "none"
        typer.echo(f"{c.display.name}  {backend}  {c.brightness:.2f}  {c.display.model or c.display.name}")


@app.command()
def detect() -> None:
    """Show detection details for every display."""

    async def _detect(service) -> list:
        return service.directory.controllers

    controllers = _run_with_service(_detect)
    if not controllers:
        typer.echo("No displays found.")
        typer.echo("\nTroubleshooting:")
        typer.echo("  - Ensure wlr-randr is installed")
        typer.echo("  - Ensure you're running under a Wayland compositor")
        typer.echo("  - Install ddcutil for external monitors, brightnessctl for laptop panels")
        raise typer.Exit(1)

    typer.echo(f"\nFound {len(controllers)} display(s):\n")

    for c in controllers:
        d = c.display
        typer.echo(f"{d.name}:")
        typer.echo(f"  Make:    {d.make or 'Unknown'}")
        typer.echo(f"  Model:   {d.model or 'Unknown'}")
        typer.echo(f"  Serial:  {d.serial or 'Unknown'}")
        typer.echo(f"  Backend: {c.backend.value if c.backend else 'none'}")
        if c.bus_number is not None:
            typer.echo(f"  DDC Bus: /dev/i2c-{c.bus_number} (max {c.vcp_max})")
        typer.echo(f"  Brightness: {c.brightness:.2f}")
        typer.echo()


@app.command()
def run(
    broker: Optional[str] = typer.Option(
        None,
        "--broker",
        "-b",
        help="MQTT broker hostname (overrides config)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
) -> None:
    """Run the MQTT agent."""
    from wlbright.agent import Agent
    from wlbright.config import Settings

    settings = Settings.load(_state["config"])

    if broker:
        settings.mqtt.broker = broker

    if verbose:
        settings.agent.log_level = "DEBUG"

    setup_logging(settings.agent.log_level)

    agent = Agent(settings)

    try:
        asyncio.run(agent.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    app()
