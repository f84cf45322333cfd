"""Display options and configuration loading."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .discovery import default_sessions_dir
from .fields import ConfigError, FieldKind, resolve_field, resolve_format_order
from .sound import ReverbPreset, SoundMode

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path.home() / ".config" / "codex-status" / "config.json"


def _split_names(value: Any) -> Any:
    if isinstance(value, str):
        return [part for part in (piece.strip() for piece in value.split(",")) if part]
    return value


def _resolve_order(value: Any) -> tuple[FieldKind, ...] | None:
    value = _split_names(value)
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"Field order must be a list of field names, got {type(value).__name__}")
    order = resolve_format_order(value)
    return order or None


def _resolve_labels(value: Any) -> dict[FieldKind, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"Label overrides must be a mapping, got {type(value).__name__}")
    return {resolve_field(key): "" if label is None else str(label) for key, label in value.items()}


class DisplayOptions(BaseModel):
    """Immutable options for one render.

    Unknown field names in ``format_order`` or ``label_overrides`` raise
    ConfigError while the options are built, before anything is rendered.
    """

    model_config = ConfigDict(frozen=True)

    minimal: bool = False
    format_order: tuple[FieldKind, ...] | None = None
    label_overrides: dict[FieldKind, str] = Field(default_factory=dict)
    sound: SoundMode = SoundMode.OFF
    sound_volume: int = Field(default=60, ge=1, le=100)
    sound_reverb: ReverbPreset = ReverbPreset.DEFAULT
    muted: bool = False
    show_sound: bool = False

    @field_validator("format_order", mode="before")
    @classmethod
    def _validate_order(cls, value: Any) -> tuple[FieldKind, ...] | None:
        return _resolve_order(value)

    @field_validator("label_overrides", mode="before")
    @classmethod
    def _validate_labels(cls, value: Any) -> dict[FieldKind, str]:
        return _resolve_labels(value)


class StatusConfig(BaseModel):
    """User configuration, from the config file merged with CLI flags.

    Keys are accepted in snake_case or camelCase.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    base_dir: Path = Field(
        default_factory=default_sessions_dir,
        validation_alias=AliasChoices("base_dir", "baseDir"),
    )
    watch: bool = False
    interval: float = Field(default=15.0, gt=0)
    limit: int = Field(default=1, ge=1)
    minimal: bool = False
    format_order: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("format_order", "formatOrder"),
    )
    label_overrides: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("label_overrides", "labelOverrides"),
    )
    sound: SoundMode = SoundMode.OFF
    sound_volume: int = Field(
        default=60,
        ge=1,
        le=100,
        validation_alias=AliasChoices("sound_volume", "soundVolume"),
    )
    sound_reverb: ReverbPreset = Field(
        default=ReverbPreset.DEFAULT,
        validation_alias=AliasChoices("sound_reverb", "soundReverb"),
    )
    show_sound: bool = Field(
        default=True,
        validation_alias=AliasChoices("show_sound", "showSound"),
    )

    @field_validator("base_dir", mode="after")
    @classmethod
    def _expand_base_dir(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("format_order", mode="before")
    @classmethod
    def _split_order(cls, value: Any) -> Any:
        return _split_names(value)

    @field_validator("label_overrides", mode="before")
    @classmethod
    def _none_labels(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: "" if label is None else label for key, label in value.items()}
        return value

    def merged(self, overrides: dict[str, Any]) -> StatusConfig:
        """Return a copy with the non-None overrides applied and validated."""
        data = self.model_dump()
        data.update({key: value for key, value in overrides.items() if value is not None})
        return StatusConfig.model_validate(data)

    def display_options(self, muted: bool = False) -> DisplayOptions:
        """Build render options; the sound glyph only shows in watch mode."""
        return DisplayOptions(
            minimal=self.minimal,
            format_order=self.format_order,
            label_overrides=self.label_overrides,
            sound=self.sound,
            sound_volume=self.sound_volume,
            sound_reverb=self.sound_reverb,
            muted=muted,
            show_sound=self.show_sound and self.watch,
        )


def resolve_config_path(path: Path | None = None) -> Path:
    """Explicit path, else $CODEX_STATUS_CONFIG, else ~/.config/codex-status/config.json."""
    if path is not None:
        return path.expanduser()
    env_path = os.environ.get("CODEX_STATUS_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG


def load_config(path: Path | None = None) -> StatusConfig:
    """Load the JSON config file; a missing file means defaults.

    Raises ConfigError when the file cannot be read or does not hold a valid
    configuration object.
    """
    config_path = resolve_config_path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("No config file at %s, using defaults", config_path)
        return StatusConfig()
    except OSError as exc:
        raise ConfigError(f"Cannot read config {config_path}: {exc}") from exc

    try:
        data = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must contain a JSON object")

    try:
        config = StatusConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config {config_path}: {exc}") from exc

    # Surface unknown field names now rather than at the first render
    config.display_options()
    logger.debug("Loaded config from %s", config_path)
    return config
