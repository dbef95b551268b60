"""XDG config loading/saving."""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from mfexplorer.federation.models import PackageManager

DEFAULT_CONFIG_PATH = Path("~/.config/mfexplorer/config.toml").expanduser()
DEFAULT_ROOTS_FILE = ".vscode/mf-explorer.roots.json"
DEFAULT_LOG_LEVEL: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "INFO"
SHELL_ENV = "MFEXPLORER_SHELL"

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARN", "ERROR"}
_VALID_PACKAGE_MANAGERS = {item.value for item in PackageManager}


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    log_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = DEFAULT_LOG_LEVEL
    default_package_manager: PackageManager = PackageManager.NPM
    shell: str = ""
    roots_file: str = DEFAULT_ROOTS_FILE

    @field_validator("roots_file")
    @classmethod
    def _validate_roots_file(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("roots_file cannot be empty")
        return value


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _toml_scalar(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return f'"{_escape(value)}"'
    raise TypeError(f"Unsupported TOML scalar type: {type(value)!r}")


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()

    log_level = raw.get("log_level", cfg.log_level)
    if isinstance(log_level, str):
        normalized = log_level.strip().upper()
        if normalized == "WARNING":
            normalized = "WARN"
        if normalized in _VALID_LOG_LEVELS:
            cfg.log_level = cast(Literal["DEBUG", "INFO", "WARN", "ERROR"], normalized)

    package_manager = raw.get("default_package_manager", cfg.default_package_manager.value)
    if isinstance(package_manager, str) and package_manager.strip().lower() in _VALID_PACKAGE_MANAGERS:
        cfg.default_package_manager = PackageManager(package_manager.strip().lower())

    shell = raw.get("shell", cfg.shell)
    if isinstance(shell, str):
        cfg.shell = shell.strip()
    env_shell = os.getenv(SHELL_ENV, "").strip()
    if env_shell:
        cfg.shell = env_shell

    roots_file = raw.get("roots_file", cfg.roots_file)
    if isinstance(roots_file, str) and roots_file.strip():
        cfg.roots_file = roots_file.strip()

    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError):
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    resolved = get_config_path(path)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    lines = [
        f"log_level = {_toml_scalar(config.log_level)}",
        f"default_package_manager = {_toml_scalar(config.default_package_manager.value)}",
        f"shell = {_toml_scalar(config.shell)}",
        f"roots_file = {_toml_scalar(config.roots_file)}",
    ]
    resolved.write_text("\n".join(lines) + "\n", encoding="utf-8")
    with suppress(OSError):
        resolved.chmod(0o600)
    return resolved
