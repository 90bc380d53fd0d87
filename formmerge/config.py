"""Process-wide settings, loaded once and passed to every component."""

from __future__ import annotations

import json
import logging
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any, Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

log = logging.getLogger(__name__)

ENV_PREFIX = "FORMMERGE_"


class ConfigError(ValueError):
    """Settings are missing or malformed."""


class Settings(BaseSettings):
    """Workflow settings.

    Values passed to the constructor (normally read from the JSON config
    file) are overridden by ``FORMMERGE_*`` environment variables.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    completed_folder_id: str = Field(..., min_length=1)
    archive_folder_id: str = Field(..., min_length=1)
    merge_service_url: str = Field(..., min_length=1)
    source_sheet_id: str = Field(..., min_length=1)
    sheet_name: str = "Form Responses 1"
    max_files: int = Field(250, ge=1)
    max_total_bytes: int = Field(45 * 1024 * 1024, ge=1)
    form_id_column: str = "FormID"
    printed_at_column: str = "Printed At"
    timezone: str = "America/New_York"
    request_timeout: float = Field(120.0, gt=0)
    preview_length: int = Field(200, ge=0)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment first: it wins over values read from the config file.
        return (env_settings, init_settings)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone)

    def now(self) -> datetime:
        """Current time in the configured timezone."""
        return datetime.now(self.tz)


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(p) for p in error["loc"]) or "settings"
        parts.append(f"{loc}: {error['msg']}")
    return "Invalid settings: " + "; ".join(parts)


def settings_from_mapping(data: Mapping[str, Any]) -> Settings:
    """Build :class:`Settings` from a plain mapping, ignoring unknown keys."""
    unknown = sorted(set(data) - set(Settings.model_fields))
    if unknown:
        log.warning("Ignoring unknown setting(s): %s", ", ".join(unknown))
    values = {k: v for k, v in data.items() if k in Settings.model_fields and v is not None}
    try:
        return Settings(**values)
    except ValidationError as exc:
        raise ConfigError(_describe(exc)) from exc


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from a JSON file, then apply ``FORMMERGE_*`` env overrides."""
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as fh:
                loaded = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            raise ConfigError(f"Could not read config file {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file must hold a JSON object: {path}")
        data.update(loaded)
        log.debug("Loaded %s setting(s) from %s", len(data), path)

    return settings_from_mapping(data)
