"""
Pydantic-based application configuration for Bookmark Sift.

Application configuration covers where state and browser data live and how
aggressively the background tasks run. It is read from a TOML or JSON file;
user-facing cleanup settings live in the state store instead (see
:mod:`bookmark_sift.config.settings`).
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import toml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..utils.error_handler import ConfigurationError


class NetworkConfig(BaseModel):
    """Reachability scanner settings."""

    timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-URL check timeout in seconds",
    )
    batch_size: int = Field(
        default=5,
        ge=1,
        le=50,
        description="URLs checked in parallel per scanner batch",
    )
    batch_delay: float = Field(
        default=0.5,
        ge=0,
        le=30,
        description="Pause between scanner batches in seconds",
    )

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v):
        """Warn about batch sizes likely to hammer remote hosts."""
        if v > 20:
            import warnings

            warnings.warn(
                f"Large scanner batch size ({v}) may trigger rate limiting "
                "from websites. Consider using 5-10.",
                UserWarning,
            )
        return v


class TaskConfig(BaseModel):
    """Background task batching."""

    dead_link_batch_size: int = Field(
        default=10,
        ge=1,
        le=500,
        description="Bookmarks per dead-link task batch (progress is saved after each)",
    )
    categorization_batch_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Bookmarks per AI categorization request",
    )


class PathsConfig(BaseModel):
    """Locations of persisted state and browser profile data."""

    state_file: Path = Field(
        default=Path(".sift_state.json"),
        description="JSON file holding settings, cache and task state",
    )
    bookmarks_file: Optional[Path] = Field(
        default=None,
        description="Chromium 'Bookmarks' JSON file",
    )
    history_file: Optional[Path] = Field(
        default=None,
        description="Chromium 'History' SQLite database (or a copy)",
    )

    @field_validator("state_file", "bookmarks_file", "history_file", mode="before")
    @classmethod
    def expand_path(cls, v):
        if v is None or v == "":
            return None
        return Path(str(v)).expanduser()


class LoggingConfig(BaseModel):
    """Logging output."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: Optional[str] = Field(
        default=None,
        description="Log file name (written under ./logs with a timestamp)",
    )
    console: bool = True

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v):
        return str(v).upper()


class AppConfig(BaseModel):
    """Main application configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    tasks: TaskConfig = Field(default_factory=TaskConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigurationManager:
    """Manages loading and validation of configuration from multiple sources."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file (TOML or JSON)
        """
        self.config_path: Optional[Path] = None
        self._config = self._load_configuration(config_path)

    def _get_default_config_paths(self) -> List[Path]:
        """Get list of default configuration file paths to try."""
        if getattr(sys, "frozen", False):
            app_dir = Path(sys.executable).parent
        else:
            app_dir = Path.cwd()

        return [
            app_dir / "sift_config.toml",
            app_dir / "sift_config.json",
            Path.home() / ".config" / "bookmark-sift" / "config.toml",
        ]

    def _load_configuration(self, config_path: Optional[Path]) -> AppConfig:
        """Load configuration from file or use defaults."""
        config_data: Dict[str, Any] = {}

        if config_path:
            config_data = self._load_config_file(Path(config_path))
            self.config_path = Path(config_path)
        else:
            for path in self._get_default_config_paths():
                if path.exists():
                    config_data = self._load_config_file(path)
                    self.config_path = path
                    break

        try:
            return AppConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(format_config_error(e)) from e

    def _load_config_file(self, config_path: Path) -> Dict[str, Any]:
        """Load configuration from TOML or JSON file."""
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            if config_path.suffix.lower() == ".toml":
                return toml.load(config_path)
            elif config_path.suffix.lower() == ".json":
                with open(config_path, "r", encoding="utf-8") as f:
                    return json.load(f)
        except (OSError, ValueError, toml.TomlDecodeError) as e:
            raise ConfigurationError(
                f"Failed to load configuration from {config_path}: {e}"
            ) from e

        raise ConfigurationError(
            f"Unsupported configuration file format: {config_path.suffix}"
        )

    @property
    def config(self) -> AppConfig:
        """Get the current configuration."""
        return self._config

    def create_sample_config(self, output_path: Path) -> None:
        """Write a sample TOML configuration file."""
        sample_config = {
            "paths": {
                "state_file": ".sift_state.json",
                "bookmarks_file": "~/.config/chromium/Default/Bookmarks",
                "history_file": "~/.config/chromium/Default/History",
            },
            "network": {"timeout": 10.0, "batch_size": 5, "batch_delay": 0.5},
            "tasks": {"dead_link_batch_size": 10, "categorization_batch_size": 50},
            "logging": {"level": "INFO", "console": True},
        }
        with open(output_path, "w", encoding="utf-8") as f:
            toml.dump(sample_config, f)


def format_config_error(error: ValidationError) -> str:
    """
    Convert a pydantic ValidationError into a readable message.

    Args:
        error: Pydantic ValidationError instance

    Returns:
        One line per invalid field
    """
    lines = ["Configuration validation failed:"]
    for detail in error.errors():
        location = " -> ".join(str(part) for part in detail["loc"]) or "configuration"
        message = detail.get("msg", "Invalid value")
        input_value = detail.get("input", "N/A")
        lines.append(f"  {location}: {message} (got: {input_value!r})")
    return "\n".join(lines)


__all__ = [
    "AppConfig",
    "NetworkConfig",
    "TaskConfig",
    "PathsConfig",
    "LoggingConfig",
    "ConfigurationManager",
    "format_config_error",
]
