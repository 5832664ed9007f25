"""
VinScan Configuration — Single Source of Truth (SSoT)

All application-wide settings, OCR engine parameters, cloud fallback
credentials, and camera policy values are centralized here using
pydantic-settings. Secrets are loaded from `.env` files and NEVER hardcoded.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from vinscan.common.schemas import InventoryLocation


# ─── Enums ────────────────────────────────────────────────────────────────────

class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ─── Core Application Settings ───────────────────────────────────────────────

class VinScanSettings(BaseSettings):
    """Global configuration loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VINSCAN_",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────────────────────
    environment: Environment = Field(default=Environment.DEV)
    log_level: LogLevel = Field(default=LogLevel.INFO)
    debug: bool = Field(default=True)

    # ── API Server ───────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)

    # ── Inventory store ──────────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///./vinscan.db")

    # ── Local OCR (easyocr) ──────────────────────────────────────────────────
    ocr_languages: List[str] = Field(default_factory=lambda: ["en"])
    ocr_use_gpu: bool = Field(default=False)
    ocr_min_fallback_chars: int = Field(default=10)
    ocr_min_height_px: int = Field(default=64)

    # ── Cloud vision fallback ────────────────────────────────────────────────
    cloud_vision_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions")
    cloud_vision_model: str = Field(default="google/gemini-flash-1.5")
    cloud_vision_api_key: Optional[SecretStr] = Field(default=None)
    cloud_vision_timeout_s: float = Field(default=15.0)

    # ── Camera ───────────────────────────────────────────────────────────────
    camera_index: int = Field(default=0)
    camera_denial_cooldown_s: float = Field(default=5.0)

    # ── Routing ──────────────────────────────────────────────────────────────
    default_target_location: InventoryLocation = Field(default=InventoryLocation.CAR_INVENTORY)

    # ── Session registry ─────────────────────────────────────────────────────
    # Closed scans kept readable before the oldest are forgotten
    closed_scan_retention: int = Field(default=256, ge=0)


# ─── Singleton accessor ──────────────────────────────────────────────────────

_settings: Optional[VinScanSettings] = None


def get_settings() -> VinScanSettings:
    """Return the cached global settings instance (lazy-loaded)."""
    global _settings
    if _settings is None:
        _settings = VinScanSettings()
    return _settings
