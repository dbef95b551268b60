"""Persisted workspace roots file (``.vscode/mf-explorer.roots.json``)."""

from __future__ import annotations

import json
import logging as py_logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mfexplorer.config import DEFAULT_ROOTS_FILE
from mfexplorer.errors import ExitCode, MFExplorerError
from mfexplorer.federation.models import ConfigType, RemoteDescriptor, RootConfig
from mfexplorer.registry import RemoteOverride, RootRegistry

logger = py_logging.getLogger(__name__)


class PersistedRemote(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    url: str = ""
    folder: str | None = None
    build_command: str | None = Field(default=None, alias="buildCommand")
    start_command: str | None = Field(default=None, alias="startCommand")
    external: bool = False


class PersistedRoot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str
    config_path: str | None = Field(default=None, alias="configPath")
    config_type: ConfigType = Field(default=ConfigType.UNCONFIGURED, alias="configType")
    start_command: str | None = Field(default=None, alias="startCommand")
    build_command: str | None = Field(default=None, alias="buildCommand")
    remotes: list[PersistedRemote] = Field(default_factory=list)


class RootsFile(BaseModel):
    roots: list[PersistedRoot] = Field(default_factory=list)


def get_roots_path(workspace: str | Path, roots_file: str | Path = DEFAULT_ROOTS_FILE) -> Path:
    candidate = Path(roots_file).expanduser()
    if candidate.is_absolute():
        return candidate
    return Path(workspace) / candidate


def _optional_text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _sanitize_remote(raw: object) -> PersistedRemote | None:
    if not isinstance(raw, dict):
        return None
    name = _optional_text(raw.get("name"))
    if name is None:
        return None
    url = raw.get("url")
    external = raw.get("external")
    return PersistedRemote(
        name=name,
        url=url.strip() if isinstance(url, str) else "",
        folder=_optional_text(raw.get("folder")),
        build_command=_optional_text(raw.get("buildCommand")),
        start_command=_optional_text(raw.get("startCommand")),
        external=external if isinstance(external, bool) else False,
    )


def _sanitize_root(raw: object) -> PersistedRoot | None:
    if not isinstance(raw, dict):
        return None
    path = _optional_text(raw.get("path"))
    if path is None:
        return None
    config_type = raw.get("configType")
    try:
        parsed_type = ConfigType(config_type) if isinstance(config_type, str) else ConfigType.UNCONFIGURED
    except ValueError:
        parsed_type = ConfigType.UNCONFIGURED

    remotes: list[PersistedRemote] = []
    seen: set[str] = set()
    raw_remotes = raw.get("remotes")
    for item in raw_remotes if isinstance(raw_remotes, list) else []:
        remote = _sanitize_remote(item)
        if remote is None or remote.name in seen:
            continue
        seen.add(remote.name)
        remotes.append(remote)

    return PersistedRoot(
        path=path,
        config_path=_optional_text(raw.get("configPath")),
        config_type=parsed_type,
        start_command=_optional_text(raw.get("startCommand")),
        build_command=_optional_text(raw.get("buildCommand")),
        remotes=remotes,
    )


def _sanitize(raw: dict[str, object]) -> RootsFile:
    roots: list[PersistedRoot] = []
    seen: set[str] = set()
    raw_roots = raw.get("roots")
    for item in raw_roots if isinstance(raw_roots, list) else []:
        root = _sanitize_root(item)
        if root is None or root.path in seen:
            continue
        seen.add(root.path)
        roots.append(root)
    return RootsFile(roots=roots)


def load_roots_file(path: str | Path) -> RootsFile:
    resolved = Path(path).expanduser()
    if not resolved.exists():
        return RootsFile()
    try:
        raw = json.loads(resolved.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable roots file path=%s error=%s", resolved, exc)
        return RootsFile()
    if not isinstance(raw, dict):
        return RootsFile()
    try:
        return _sanitize(raw)
    except ValidationError as exc:
        logger.warning("Ignoring invalid roots file path=%s error=%s", resolved, exc)
        return RootsFile()


def save_roots_file(model: RootsFile, path: str | Path) -> Path:
    resolved = Path(path).expanduser()
    payload = model.model_dump(mode="json", by_alias=True)
    try:
        resolved.parent.mkdir(parents=True, exist_ok=True)
        resolved.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise MFExplorerError(
            f"Cannot write roots file: {resolved}",
            code=ExitCode.CONFIG_ERROR,
            hint=str(exc) or "Check workspace folder permissions.",
        ) from exc
    return resolved


def _persist_root(registry: RootRegistry, config: RootConfig) -> PersistedRoot:
    settings = registry.settings(config.path)
    external = {item.name: item for item in registry.external_remotes(config.path)}
    remotes: list[PersistedRemote] = []
    for name, descriptor in config.remotes.items():
        override = registry.remote_override(config.path, name)
        if descriptor.external or override is None:
            continue
        remotes.append(
            PersistedRemote(
                name=name,
                url=descriptor.url,
                folder=override.folder,
                build_command=override.build_command,
                start_command=override.start_command,
            )
        )
    for name, descriptor in external.items():
        override = registry.remote_override(config.path, name) or RemoteOverride()
        remotes.append(
            PersistedRemote(
                name=name,
                url=descriptor.url,
                folder=override.folder or descriptor.resolved_folder,
                build_command=override.build_command or descriptor.build_command,
                start_command=override.start_command or descriptor.start_command,
                external=True,
            )
        )
    return PersistedRoot(
        path=config.path,
        config_path=settings.config_file,
        config_type=settings.config_type or ConfigType.UNCONFIGURED,
        start_command=settings.start_command,
        build_command=settings.build_command,
        remotes=remotes,
    )


def dump_registry(registry: RootRegistry) -> RootsFile:
    """Capture user-owned state only; parsed fields are rebuilt on load."""
    return RootsFile(roots=[_persist_root(registry, config) for config in registry.snapshot()])


def restore_registry(
    registry: RootRegistry,
    model: RootsFile,
    *,
    base: str | Path | None = None,
) -> list[RootConfig]:
    """Re-add persisted roots; relative root paths resolve against ``base``."""
    restored: list[RootConfig] = []
    for root in model.roots:
        root_path = Path(root.path).expanduser()
        if base is not None and not root_path.is_absolute():
            root_path = Path(base) / root_path
        pinned_type = root.config_type if root.config_type != ConfigType.UNCONFIGURED else None
        declared = registry.add_root(root_path, root.config_path, config_type=pinned_type).remotes
        for remote in root.remotes:
            if remote.external:
                registry.add_external_remote(
                    root_path,
                    RemoteDescriptor(
                        name=remote.name,
                        url=remote.url,
                        resolved_folder=remote.folder,
                        build_command=remote.build_command,
                        start_command=remote.start_command,
                        external=True,
                    ),
                )
            elif remote.name not in declared:
                logger.warning(
                    "Dropping settings for undeclared remote root=%s remote=%s", root_path, remote.name
                )
            else:
                registry.configure_remote(
                    root_path,
                    remote.name,
                    folder=remote.folder or "",
                    build_command=remote.build_command or "",
                    start_command=remote.start_command or "",
                )
        restored.append(
            registry.configure_root(
                root_path,
                build_command=root.build_command or "",
                start_command=root.start_command or "",
            )
        )
    return restored
