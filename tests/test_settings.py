"""
Tests for user settings persisted in the state store.
"""

import pytest
from pydantic import ValidationError

from bookmark_sift.config.settings import SETTINGS_KEY, SettingsManager, SiftSettings
from bookmark_sift.utils.error_handler import ConfigurationError


class TestSiftSettings:
    """Tests for the SiftSettings model."""

    def test_defaults(self):
        settings = SiftSettings()
        assert settings.stale_threshold_days == 180
        assert settings.auto_check_dead_links is False
        assert settings.dead_link_refresh_days == 7
        assert settings.claude_api_key is None

    def test_placeholder_key_rejected(self):
        with pytest.raises(ValidationError):
            SiftSettings(claude_api_key="your-claude-api-key-here")

    def test_empty_key_is_unset(self):
        assert SiftSettings(claude_api_key="").claude_api_key is None

    def test_thresholds_must_be_positive(self):
        with pytest.raises(ValidationError):
            SiftSettings(stale_threshold_days=0)
        with pytest.raises(ValidationError):
            SiftSettings(dead_link_refresh_days=-1)

    def test_public_dict_hides_key(self):
        data = SiftSettings(claude_api_key="sk-ant-secret-value").to_public_dict()
        assert "claude_api_key" not in data
        assert data["has_claude_api_key"] is True
        assert "sk-ant-secret-value" not in str(data)


class TestSettingsManager:
    """Tests for SettingsManager."""

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_stored(self, settings_manager):
        assert await settings_manager.get_settings() == SiftSettings()

    @pytest.mark.asyncio
    async def test_partial_save_keeps_other_fields(self, settings_manager):
        await settings_manager.save_settings({"stale_threshold_days": 90})
        await settings_manager.save_settings({"auto_check_dead_links": True})

        settings = await settings_manager.get_settings()
        assert settings.stale_threshold_days == 90
        assert settings.auto_check_dead_links is True
        assert settings.dead_link_refresh_days == 7

    @pytest.mark.asyncio
    async def test_stored_document_merged_onto_defaults(self, state_store, settings_manager):
        await state_store.set(SETTINGS_KEY, {"dead_link_refresh_days": 30})
        settings = await settings_manager.get_settings()
        assert settings.dead_link_refresh_days == 30
        assert settings.stale_threshold_days == 180

    @pytest.mark.asyncio
    async def test_invalid_update_rejected(self, settings_manager):
        with pytest.raises(ConfigurationError):
            await settings_manager.save_settings({"stale_threshold_days": 0})
        assert (await settings_manager.get_settings()).stale_threshold_days == 180

    @pytest.mark.asyncio
    async def test_api_key_round_trip(self, settings_manager):
        await settings_manager.set_api_key("sk-ant-test-key-123")
        await settings_manager.save_settings({"stale_threshold_days": 30})
        assert await settings_manager.get_api_key() == "sk-ant-test-key-123"

    @pytest.mark.asyncio
    async def test_api_key_env_fallback(self, settings_manager, monkeypatch):
        assert await settings_manager.get_api_key() is None
        monkeypatch.setenv("CLAUDE_API_KEY", "sk-ant-from-env")
        assert await settings_manager.get_api_key() == "sk-ant-from-env"

    @pytest.mark.asyncio
    async def test_invalid_stored_field_falls_back_alone(self, state_store, settings_manager):
        await state_store.set(
            SETTINGS_KEY,
            {
                "stale_threshold_days": "never",
                "dead_link_refresh_days": 30,
                "claude_api_key": "sk-ant-test-key-123",
            },
        )

        settings = await settings_manager.get_settings()
        assert settings.stale_threshold_days == 180
        assert settings.dead_link_refresh_days == 30
        assert await settings_manager.get_api_key() == "sk-ant-test-key-123"

        await settings_manager.save_settings({"auto_check_dead_links": True})
        stored = await state_store.get(SETTINGS_KEY)
        assert stored["claude_api_key"] == "sk-ant-test-key-123"
        assert stored["dead_link_refresh_days"] == 30
        assert stored["stale_threshold_days"] == 180
        assert stored["auto_check_dead_links"] is True
