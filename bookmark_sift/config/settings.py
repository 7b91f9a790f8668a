"""
User settings persisted in the state store.

Settings are stored as a plain dictionary under one key and merged onto the
pydantic defaults on every read, so older stored documents keep working
when fields are added.
"""

import logging
import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from ..core.state_store import StateStore
from ..utils.error_handler import ConfigurationError

SETTINGS_KEY = "sift_settings"

PLACEHOLDER_API_KEYS = {"your-claude-api-key-here", "sk-placeholder"}

logger = logging.getLogger(__name__)


class SiftSettings(BaseModel):
    """User-adjustable cleanup settings."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    stale_threshold_days: int = Field(
        default=180,
        ge=1,
        le=36500,
        description="Bookmarks not visited for this many days are stale",
    )
    auto_check_dead_links: bool = Field(
        default=False,
        description="Run a live dead-link scan when computing health metrics",
    )
    dead_link_refresh_days: int = Field(
        default=7,
        ge=1,
        le=3650,
        description="Cached reachability verdicts younger than this are reused",
    )
    claude_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Claude API key for AI categorization",
    )

    @field_validator("claude_api_key", mode="before")
    @classmethod
    def validate_api_key_format(cls, v):
        """Reject placeholder values, treat empty strings as unset."""
        if v is None or v == "":
            return None
        key_str = v.get_secret_value() if isinstance(v, SecretStr) else str(v)
        if key_str in PLACEHOLDER_API_KEYS:
            raise ValueError(
                "Please replace the placeholder API key with your actual "
                "Claude API key."
            )
        return SecretStr(key_str)

    def to_storage(self) -> Dict[str, Any]:
        """Dictionary for persistence, with the API key in clear text."""
        data = self.model_dump()
        data["claude_api_key"] = (
            self.claude_api_key.get_secret_value() if self.claude_api_key else ""
        )
        return data

    def to_public_dict(self) -> Dict[str, Any]:
        """Dictionary safe to show or log; only reports whether a key is set."""
        data = self.model_dump(exclude={"claude_api_key"})
        data["has_claude_api_key"] = self.claude_api_key is not None
        return data


class SettingsManager:
    """Reads and writes :class:`SiftSettings` through a state store."""

    def __init__(self, state_store: StateStore):
        self._store = state_store

    async def get_settings(self) -> SiftSettings:
        """
        Load settings, falling back to defaults for anything not stored.

        Stored fields that no longer validate are ignored individually so
        the remaining ones, the API key included, survive the next save.

        Returns:
            Current settings
        """
        stored = await self._store.get(SETTINGS_KEY) or {}
        try:
            return SiftSettings(**stored)
        except ValidationError as e:
            invalid = {str(error["loc"][0]) for error in e.errors() if error["loc"]}
            logger.warning(
                f"Ignoring invalid stored settings {sorted(invalid)}, using defaults for them"
            )
            return SiftSettings(**{k: v for k, v in stored.items() if k not in invalid})

    async def save_settings(self, partial: Dict[str, Any]) -> SiftSettings:
        """
        Merge a partial update onto the current settings and persist it.

        Args:
            partial: Fields to change; other fields keep their current values

        Returns:
            The merged settings

        Raises:
            ConfigurationError: If the merged settings do not validate
        """
        current = await self.get_settings()
        merged = current.to_storage()
        merged.update(partial)
        try:
            updated = SiftSettings(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e

        await self._store.set(SETTINGS_KEY, updated.to_storage())
        logger.info(f"Settings saved: {sorted(partial.keys())}")
        return updated

    async def get_api_key(self) -> Optional[str]:
        """Claude API key from settings, else the CLAUDE_API_KEY environment variable."""
        settings = await self.get_settings()
        if settings.claude_api_key:
            return settings.claude_api_key.get_secret_value()
        return os.getenv("CLAUDE_API_KEY") or None

    async def set_api_key(self, api_key: str) -> None:
        await self.save_settings({"claude_api_key": api_key})


__all__ = ["SETTINGS_KEY", "SiftSettings", "SettingsManager"]
