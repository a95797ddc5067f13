"""Configuration management for PoeBridge.

Settings live in ``~/.poebridge.json`` and can be overridden per process with
``POE_API_KEY``, ``POE_BASE_URL`` and ``POE_MODEL_ID``. Hosts that manage their
own persistence can construct :class:`PoeSettings` directly instead.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from poebridge.utils.log import get_logger


logger = get_logger()

ENV_OVERRIDES: Dict[str, str] = {
    "poe_api_key": "POE_API_KEY",
    "poe_base_url": "POE_BASE_URL",
    "poe_model_id": "POE_MODEL_ID",
}


class PoeSettings(BaseModel):
    """Credentials and model selection for the Poe provider."""

    model_config = {"protected_namespaces": (), "populate_by_name": True}

    poe_api_key: Optional[str] = None
    # Validated lazily by to_poe_service_url so a bad value never blocks loading.
    poe_base_url: Optional[str] = None
    poe_model_id: Optional[str] = None
    model_temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    # Seconds; applies to chat requests only. Catalog fetches never time out.
    request_timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("poe_api_key", "poe_base_url", "poe_model_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


def settings_with_env_overrides(settings: PoeSettings) -> PoeSettings:
    """Return a copy of ``settings`` with non-empty environment values applied."""
    updates: Dict[str, str] = {}
    for field_name, env_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name, "").strip()
        if value:
            updates[field_name] = value
    if not updates:
        return settings
    logger.debug(
        "[config] Applied environment overrides",
        extra={"fields": sorted(updates)},
    )
    return settings.model_copy(update=updates)


class ConfigManager:
    """Loads and saves the PoeBridge settings file."""

    def __init__(self, config_path: Optional[Path] = None) -> None:
        self.config_path = config_path or Path.home() / ".poebridge.json"
        self._settings: Optional[PoeSettings] = None

    def get_settings(self) -> PoeSettings:
        """Load and return the stored settings."""
        if self._settings is None:
            if self.config_path.exists():
                try:
                    data = json.loads(self.config_path.read_text(encoding="utf-8"))
                    self._settings = PoeSettings(**data)
                    logger.debug(
                        "[config] Loaded settings",
                        extra={
                            "path": str(self.config_path),
                            "has_api_key": bool(self._settings.poe_api_key),
                        },
                    )
                except (
                    json.JSONDecodeError,
                    OSError,
                    UnicodeDecodeError,
                    ValueError,
                    TypeError,
                ) as e:
                    logger.warning(
                        "Error loading settings: %s: %s",
                        type(e).__name__,
                        e,
                        extra={"path": str(self.config_path)},
                    )
                    self._settings = PoeSettings()
            else:
                self._settings = PoeSettings()
                logger.debug(
                    "[config] Settings file not found; using defaults",
                    extra={"path": str(self.config_path)},
                )
        return self._settings

    def save_settings(self, settings: PoeSettings) -> None:
        """Persist settings, omitting unset fields."""
        self._settings = settings
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(
            settings.model_dump_json(indent=2, exclude_none=True), encoding="utf-8"
        )
        logger.debug(
            "[config] Saved settings",
            extra={"path": str(self.config_path), "has_api_key": bool(settings.poe_api_key)},
        )


config_manager = ConfigManager()


def get_settings() -> PoeSettings:
    """Stored settings with environment overrides applied."""
    return settings_with_env_overrides(config_manager.get_settings())


def save_settings(settings: PoeSettings) -> None:
    config_manager.save_settings(settings)
