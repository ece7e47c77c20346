"""
framecast Configuration
=======================

This module handles configuration loading for producers and receivers.

Configuration Sources (in order of precedence):
    1. Command-line flags (applied by the CLI)
    2. Environment variables
    3. framecast.yaml / config.yaml file
    4. Default values (lowest priority)

Environment Variable Mapping:
    FRAMECAST_HOST               -> receiver.host
    FRAMECAST_PORT               -> receiver.port
    FRAMECAST_MAX_PAYLOAD_BYTES  -> receiver.max_payload_bytes
    FRAMECAST_SERVERS            -> producer.servers (comma separated host:port)
    FRAMECAST_FPS                -> producer.fps
    FRAMECAST_FRAME_WIDTH        -> producer.width
    FRAMECAST_FRAME_HEIGHT       -> producer.height
    FRAMECAST_HEADLESS           -> display.enabled (inverted)
    FRAMECAST_STATUS_PORT        -> status.port (also enables the endpoint)
    FRAMECAST_LOG_LEVEL          -> logging.level

Example:
    from framecast.config import load_config, setup_logging

    settings = load_config("framecast.yaml")
    setup_logging(settings)
    print(settings.receiver.port)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


logger = logging.getLogger(__name__)


DEFAULT_PORT = 12345


# =============================================================================
# Configuration Models
# =============================================================================

class ReceiverConfig(BaseModel):
    """Receiving server configuration."""

    model_config = ConfigDict(validate_assignment=True)

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535, description="Bind port")
    max_payload_bytes: int = Field(
        default=1024 * 1024,
        ge=1,
        le=0xFFFFFFFF,
        description="Largest frame payload accepted",
    )
    initial_width: int = Field(default=256, ge=0, description="Display width before the first frame")
    initial_height: int = Field(default=256, ge=0, description="Display height before the first frame")
    accept_poll_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="How often a waiting accept re-checks the running flag",
    )
    shutdown_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Time allowed for handlers to finish on shutdown",
    )


class ProducerConfig(BaseModel):
    """Producer configuration."""

    model_config = ConfigDict(validate_assignment=True)

    servers: List[str] = Field(
        default_factory=lambda: [f"127.0.0.1:{DEFAULT_PORT}"],
        min_length=1,
        description="Receivers as host:port, in delivery order",
    )
    width: int = Field(default=792, ge=1, description="Frame width in pixels")
    height: int = Field(default=793, ge=1, description="Frame height in pixels")
    fps: float = Field(default=25.0, gt=0, le=1000, description="Frames per second")
    seed: Optional[int] = Field(default=None, description="Noise RNG seed")
    connect_timeout_seconds: float = Field(default=5.0, gt=0, description="Per-receiver connect timeout")
    send_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="A send blocked longer than this drops the receiver",
    )
    require_all_servers: bool = Field(
        default=False,
        description="Fail startup if any receiver is unreachable",
    )
    stop_when_no_live_servers: bool = Field(
        default=False,
        description="Exit once every receiver is gone",
    )

    @field_validator("servers")
    @classmethod
    def _check_servers(cls, value: List[str]) -> List[str]:
        for entry in value:
            parse_address(entry)
        return value

    def server_addresses(self) -> List[Tuple[str, int]]:
        return [parse_address(entry) for entry in self.servers]


class DisplayConfig(BaseModel):
    """Window configuration."""

    model_config = ConfigDict(validate_assignment=True)

    enabled: bool = Field(default=True, description="Open a window (False = headless)")
    receiver_title: str = Field(default="Image Receiver", description="Receiver window title")
    producer_title: str = Field(default="Grayscale Noise", description="Producer preview title")
    refresh_interval_seconds: float = Field(
        default=0.04,
        gt=0,
        description="Render loop wait between window event pumps",
    )


class StatusConfig(BaseModel):
    """Status endpoint configuration."""

    model_config = ConfigDict(validate_assignment=True)

    enabled: bool = Field(default=False, description="Serve the HTTP status endpoint")
    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(validate_assignment=True)

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for framecast.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    model_config = ConfigDict(validate_assignment=True)

    receiver: ReceiverConfig = Field(default_factory=ReceiverConfig)
    producer: ProducerConfig = Field(default_factory=ProducerConfig)
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    status: StatusConfig = Field(default_factory=StatusConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _check_frame_fits(self) -> "Settings":
        pixels = self.producer.width * self.producer.height
        if pixels > self.receiver.max_payload_bytes:
            raise ValueError(
                f"producer frame {self.producer.width}x{self.producer.height} "
                f"({pixels} bytes) exceeds max_payload_bytes "
                f"({self.receiver.max_payload_bytes})"
            )
        return self


def parse_address(value: str) -> Tuple[str, int]:
    """
    Parse "host:port" into a tuple.

    Raises:
        ValueError: If the port is missing or out of range
    """
    host, sep, port_str = value.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"expected host:port, got {value!r}")
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in {value!r}") from None
    if not 1 <= port <= 65535:
        raise ValueError(f"port out of range in {value!r}")
    return host.strip("[]"), port


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to a YAML file. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("framecast.yaml"),
            Path("framecast.yml"),
            Path("config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data: dict = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    elif config_path:
        logger.warning(f"Config file not found: {config_path}, using defaults")
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Receiver settings
    if env_host := os.environ.get("FRAMECAST_HOST"):
        config_data.setdefault("receiver", {})["host"] = env_host
    if env_port := os.environ.get("FRAMECAST_PORT"):
        config_data.setdefault("receiver", {})["port"] = int(env_port)
    if env_max := os.environ.get("FRAMECAST_MAX_PAYLOAD_BYTES"):
        config_data.setdefault("receiver", {})["max_payload_bytes"] = int(env_max)

    # Producer settings
    if env_servers := os.environ.get("FRAMECAST_SERVERS"):
        config_data.setdefault("producer", {})["servers"] = [
            entry.strip() for entry in env_servers.split(",") if entry.strip()
        ]
    if env_fps := os.environ.get("FRAMECAST_FPS"):
        config_data.setdefault("producer", {})["fps"] = float(env_fps)
    if env_width := os.environ.get("FRAMECAST_FRAME_WIDTH"):
        config_data.setdefault("producer", {})["width"] = int(env_width)
    if env_height := os.environ.get("FRAMECAST_FRAME_HEIGHT"):
        config_data.setdefault("producer", {})["height"] = int(env_height)

    # Display settings
    if env_headless := os.environ.get("FRAMECAST_HEADLESS"):
        config_data.setdefault("display", {})["enabled"] = env_headless.lower() not in (
            "1", "true", "yes", "on"
        )

    # Status endpoint
    if env_status := os.environ.get("FRAMECAST_STATUS_PORT"):
        status = config_data.setdefault("status", {})
        status["port"] = int(env_status)
        status["enabled"] = True

    # Logging settings
    if env_log := os.environ.get("FRAMECAST_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "thread": "%(threadName)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=True,
    )
