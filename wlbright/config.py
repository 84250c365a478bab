"""Configuration management using pydantic-settings."""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from wlbright.backends.brightness import Backend

CONFIG_DIR = Path.home() / ".config" / "wlbright"


class MQTTSettings(BaseModel):
    """MQTT broker connection settings."""

    broker: str = Field(default="localhost", description="MQTT broker hostname")
    port: int = Field(default=1883, ge=1, le=65535)
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    client_id: str = Field(default="wlbright")
    keepalive: int = Field(default=60, ge=10, le=3600)
    reconnect_interval: float = Field(default=5.0, ge=1.0, le=300.0)
    reconnect_max_interval: float = Field(default=120.0, ge=5.0, le=600.0)
    topic_prefix: str = Field(default="wlbright")


class AgentSettings(BaseModel):
    """Agent behavior settings."""

    poll_interval: float = Field(default=10.0, ge=1.0, le=300.0)
    command_timeout: float = Field(default=10.0, ge=1.0, le=60.0)
    log_level: str = Field(default="INFO")


class BrightnessSettings(BaseModel):
    """Backend tools and write pacing."""

    debounce_ms: int = Field(default=500, ge=0, le=10000)
    ddc_default_max: int = Field(default=250, ge=1)
    ddc_sleep_multiplier: float = Field(default=0.5, gt=0.0, le=10.0)
    ddcutil: str = "ddcutil"
    asdbctl: str = "asdbctl"
    brightnessctl: str = "brightnessctl"
    wlr_randr: str = "wlr-randr"
    hyprctl: str = "hyprctl"


class DisplayOverride(BaseModel):
    """Manual backend assignment for an output."""

    output_name: str  # e.g., "HDMI-A-1"
    backend: Optional[Backend] = None
    ddc_bus: Optional[int] = None  # e.g., 7 for /dev/i2c-7


class Settings(BaseSettings):
    """Root configuration combining all settings."""

    model_config = SettingsConfigDict(
        env_prefix="WLBRIGHT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    mqtt: MQTTSettings = Field(default_factory=MQTTSettings)
    agent: AgentSettings = Field(default_factory=AgentSettings)
    brightness: BrightnessSettings = Field(default_factory=BrightnessSettings)
    display_overrides: list[DisplayOverride] = Field(default_factory=list)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from an optional YAML file and env vars.

        Priority: Environment variables override YAML file values.
        """
        yaml_data: dict = {}

        if config_path and config_path.exists():
            with open(config_path) as f:
                yaml_data = yaml.safe_load(f) or {}
        else:
            default_paths = [
                CONFIG_DIR / "config.yaml",
                CONFIG_DIR / "config.yml",
                Path("config.yaml"),
                Path("config.yml"),
            ]
            for path in default_paths:
                if path.exists():
                    with open(path) as f:
                        yaml_data = yaml.safe_load(f) or {}
                    break

        # Init kwargs take priority over env vars, so fold env values into
        # each YAML section before passing it on.
        env = cls()
        kwargs = {}
        for section in ("mqtt", "agent", "brightness"):
            data = yaml_data.get(section) or {}
            merged = {**data, **getattr(env, section).model_dump(exclude_defaults=True)}
            kwargs[section] = merged
        kwargs["display_overrides"] = (
            [o.model_dump() for o in env.display_overrides]
            or yaml_data.get("display_overrides", [])
        )
        return cls(**kwargs)
