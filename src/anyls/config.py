from __future__ import annotations

from datetime import date, datetime, time
from pathlib import Path
from typing import Optional, TypeAlias
import tomllib

from pydantic import BaseModel, ValidationError, field_validator

from anyls.exceptions import ConfigError

DEFAULT_CONFIG_NAME = "anyls.toml"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug"}


class ServerSection(BaseModel):
    log_file: Optional[str] = None
    log_level: Optional[str] = None

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        level = value.strip().lower()
        if level not in _LOG_LEVELS:
            raise ValueError(f"unknown log level {value!r}")
        return level


class JustSection(BaseModel):
    enabled: bool = True
    executable: str = "just"


class DefinitionsSection(BaseModel):
    enabled: bool = True
    max_depth: int = 64

    @field_validator("max_depth")
    @classmethod
    def _positive_depth(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_depth must be positive")
        return value


class AnyLsConfig(BaseModel):
    server: ServerSection = ServerSection()
    just: JustSection = JustSection()
    definitions: DefinitionsSection = DefinitionsSection()


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"{path}: {exc}") from exc
    return data


def load_config(root: Path | None = None, config_path: Path | None = None) -> AnyLsConfig:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    data = _load_toml(config_path)
    try:
        return AnyLsConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"{config_path}: {exc}") from exc
