"""
Tests — Configuration Loading

Tier 1: Validates that the SSoT config loads correctly from
environment variables and applies defaults.
"""

from __future__ import annotations

import pytest

from pydantic import ValidationError

from vinscan.common.schemas import InventoryLocation
from vinscan.config import Environment, LogLevel, VinScanSettings


class TestVinScanSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Settings should load with sensible defaults when no env vars are set."""
        monkeypatch.delenv("VINSCAN_CLOUD_VISION_API_KEY", raising=False)
        settings = VinScanSettings(_env_file=None)
        assert settings.environment == Environment.DEV
        assert settings.log_level == LogLevel.INFO
        assert settings.ocr_languages == ["en"]
        assert settings.ocr_min_fallback_chars == 10
        assert settings.camera_denial_cooldown_s == 5.0
        assert settings.cloud_vision_api_key is None
        assert settings.default_target_location is InventoryLocation.CAR_INVENTORY
        assert settings.closed_scan_retention == 256

    def test_override_via_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables should override defaults."""
        monkeypatch.setenv("VINSCAN_ENVIRONMENT", "production")
        monkeypatch.setenv("VINSCAN_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("VINSCAN_CLOUD_VISION_TIMEOUT_S", "3.5")
        monkeypatch.setenv("VINSCAN_CLOUD_VISION_API_KEY", "sk-test")

        settings = VinScanSettings(_env_file=None)
        assert settings.environment == Environment.PRODUCTION
        assert settings.log_level == LogLevel.DEBUG
        assert settings.cloud_vision_timeout_s == 3.5
        assert settings.cloud_vision_api_key.get_secret_value() == "sk-test"

    def test_api_key_is_masked(self) -> None:
        settings = VinScanSettings(_env_file=None, cloud_vision_api_key="sk-secret")
        assert "sk-secret" not in repr(settings)

    def test_target_location_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VINSCAN_DEFAULT_TARGET_LOCATION", "SHOWROOM_2")
        settings = VinScanSettings(_env_file=None)
        assert settings.default_target_location is InventoryLocation.SHOWROOM_2

    def test_unknown_target_location_rejected_at_load(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("VINSCAN_DEFAULT_TARGET_LOCATION", "PARKING_LOT")
        with pytest.raises(ValidationError):
            VinScanSettings(_env_file=None)
