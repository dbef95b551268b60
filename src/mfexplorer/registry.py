"""Canonical in-memory model of every federation root in the workspace."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path

from mfexplorer.errors import ExitCode, MFExplorerError, NotFoundError
from mfexplorer.federation.locator import locate_config
from mfexplorer.federation.models import ConfigType, PackageManager, RemoteDescriptor, RootConfig
from mfexplorer.federation.package_manager import detect_package_manager
from mfexplorer.federation.parser import parse_config_file
from mfexplorer.terminal.models import LaunchSpec, ProcessKey, ProcessKind

logger = py_logging.getLogger(__name__)

RemoveListener = Callable[[RootConfig], None]


@dataclass
class RootSettings:
    """User choices for a root that survive reloads."""

    config_file: str | None = None
    config_type: ConfigType | None = None
    build_command: str | None = None
    start_command: str | None = None
    package_manager: PackageManager | None = None


@dataclass
class RemoteOverride:
    folder: str | None = None
    build_command: str | None = None
    start_command: str | None = None


@dataclass
class _RootEntry:
    parsed: RootConfig
    settings: RootSettings = field(default_factory=RootSettings)
    external: dict[str, RemoteDescriptor] = field(default_factory=dict)
    overrides: dict[str, RemoteOverride] = field(default_factory=dict)
    error: MFExplorerError | None = None


def normalize_root_path(path: str | Path) -> str:
    text = str(path).strip()
    if not text:
        raise MFExplorerError(
            "Root path cannot be empty.",
            code=ExitCode.VALIDATION_ERROR,
            hint="Select a project folder.",
        )
    return str(Path(text).expanduser().resolve())


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class RootRegistry:
    """Ordered set of roots, keyed by absolute path.

    Parsed configuration is rebuilt wholesale on every reload; user settings,
    external remotes and remote overrides are layered on top at read time.
    """

    def __init__(self, *, default_package_manager: PackageManager = PackageManager.NPM) -> None:
        self._default_package_manager = default_package_manager
        self._entries: dict[str, _RootEntry] = {}
        self._remove_listeners: list[RemoveListener] = []

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, Path)) or not str(path).strip():
            return False
        return normalize_root_path(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RootConfig]:
        return iter(self.snapshot())

    def add_remove_listener(self, listener: RemoveListener) -> None:
        self._remove_listeners.append(listener)

    def add_root(
        self,
        path: str | Path,
        config_file: str | Path | None = None,
        *,
        config_type: ConfigType | None = None,
    ) -> RootConfig:
        key = normalize_root_path(path)
        entry = self._entries.get(key)
        settings = entry.settings if entry is not None else RootSettings()
        if config_file is not None:
            settings.config_file = str(config_file)
        if config_type is not None:
            settings.config_type = config_type
        parsed, error = self._ingest(key, settings)
        if entry is None:
            self._entries[key] = _RootEntry(parsed=parsed, settings=settings, error=error)
            logger.info("Root added path=%s type=%s", key, parsed.config_type.value)
        else:
            entry.parsed = parsed
            entry.error = error
            logger.info("Root refreshed path=%s type=%s", key, parsed.config_type.value)
        return self._view(key)

    def remove_root(self, path: str | Path) -> RootConfig | None:
        key = normalize_root_path(path)
        if key not in self._entries:
            logger.debug("Remove ignored for unknown root path=%s", key)
            return None
        removed = self._view(key)
        del self._entries[key]
        logger.info("Root removed path=%s", key)
        for listener in list(self._remove_listeners):
            listener(removed)
        return removed

    def reload_root(self, path: str | Path) -> RootConfig:
        key, entry = self._require(path)
        entry.parsed, entry.error = self._ingest(key, entry.settings)
        logger.info("Root reloaded path=%s remotes=%s", key, len(entry.parsed.remotes))
        return self._view(key)

    def on_config_file_changed(self, root_path: str | Path) -> RootConfig:
        return self.reload_root(root_path)

    def add_external_remote(self, root_path: str | Path, descriptor: RemoteDescriptor) -> None:
        key, entry = self._require(root_path)
        name = descriptor.name.strip()
        if not name:
            raise MFExplorerError(
                "Remote name cannot be empty.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Provide the remote's federation name.",
            )
        entry.external[name] = replace(descriptor, name=name, external=True)
        if name in entry.parsed.remotes:
            logger.info("External remote shadowed by config remote root=%s name=%s", key, name)

    def remove_external_remote(self, root_path: str | Path, name: str) -> bool:
        _, entry = self._require(root_path)
        return entry.external.pop(name, None) is not None

    def configure_root(
        self,
        path: str | Path,
        *,
        build_command: str | None = None,
        start_command: str | None = None,
        package_manager: PackageManager | None = None,
        config_type: ConfigType | None = None,
    ) -> RootConfig:
        """Set user overrides; ``None`` leaves a value as is, ``""`` clears a command."""
        key, entry = self._require(path)
        settings = entry.settings
        if build_command is not None:
            settings.build_command = _blank_to_none(build_command)
        if start_command is not None:
            settings.start_command = _blank_to_none(start_command)
        if package_manager is not None:
            settings.package_manager = package_manager
        if config_type is not None and config_type != settings.config_type:
            settings.config_type = config_type
            entry.parsed, entry.error = self._ingest(key, settings)
        else:
            entry.parsed = self._apply_settings(entry.parsed, settings)
        return self._view(key)

    def configure_remote(
        self,
        root_path: str | Path,
        name: str,
        *,
        folder: str | None = None,
        build_command: str | None = None,
        start_command: str | None = None,
    ) -> RemoteDescriptor:
        """Set per-remote overrides for a remote the root currently declares."""
        key, entry = self._require(root_path)
        if name not in self._view(key).remotes:
            raise NotFoundError(
                f"Root {key} does not declare remote '{name}'",
                hint="Reload the root or add the remote as an external remote.",
                subject=name,
            )
        override = entry.overrides.setdefault(name, RemoteOverride())
        if folder is not None:
            override.folder = _blank_to_none(folder)
        if build_command is not None:
            override.build_command = _blank_to_none(build_command)
        if start_command is not None:
            override.start_command = _blank_to_none(start_command)
        return self._view(key).remotes[name]

    def get(self, path: str | Path) -> RootConfig:
        key, _ = self._require(path)
        return self._view(key)

    def parse_error(self, path: str | Path) -> MFExplorerError | None:
        _, entry = self._require(path)
        return entry.error

    def external_remotes(self, path: str | Path) -> list[RemoteDescriptor]:
        _, entry = self._require(path)
        return list(entry.external.values())

    def remote_override(self, path: str | Path, name: str) -> RemoteOverride | None:
        _, entry = self._require(path)
        return entry.overrides.get(name)

    def settings(self, path: str | Path) -> RootSettings:
        _, entry = self._require(path)
        return replace(entry.settings)

    def roots(self) -> list[str]:
        return list(self._entries)

    def snapshot(self) -> tuple[RootConfig, ...]:
        return tuple(self._view(key) for key in self._entries)

    def clear(self) -> None:
        for key in list(self._entries):
            self.remove_root(key)

    def app_names(self) -> dict[str, str]:
        names: dict[str, str] = {}
        for config in self.snapshot():
            if config.app_name and config.app_name not in names:
                names[config.app_name] = config.path
        return names

    def declared_remote_names(self) -> set[str]:
        return {name for config in self.snapshot() for name in config.remotes}

    def find_remote(self, name: str) -> tuple[RootConfig, RemoteDescriptor] | None:
        """First root declaring ``name``, preferring one that can start it."""
        fallback: tuple[RootConfig, RemoteDescriptor] | None = None
        for config in self.snapshot():
            remote = config.remotes.get(name)
            if remote is None:
                continue
            if remote.start_command:
                return config, remote
            if fallback is None:
                fallback = (config, remote)
        return fallback

    def launch_spec(self, key: ProcessKey) -> LaunchSpec:
        if key.kind == ProcessKind.ROOT:
            config = self.get(key.name)
            return LaunchSpec(
                title=config.app_name or Path(config.path).name,
                cwd=config.path,
                build_command=config.build_command,
                start_command=config.start_command,
            )
        found = self.find_remote(key.name)
        if found is None:
            raise NotFoundError(
                f"Unknown remote: {key.name}",
                hint="Declare the remote in a config file or add it as an external remote.",
                subject=key.name,
            )
        _, remote = found
        return LaunchSpec(
            title=f"remote-{remote.name}",
            cwd=remote.resolved_folder,
            build_command=remote.build_command,
            start_command=remote.start_command,
        )

    def _require(self, path: str | Path) -> tuple[str, _RootEntry]:
        key = normalize_root_path(path)
        entry = self._entries.get(key)
        if entry is None:
            raise NotFoundError(
                f"Unknown root: {key}",
                hint="Add the folder as a root first.",
                subject=key,
            )
        return key, entry

    def _ingest(self, key: str, settings: RootSettings) -> tuple[RootConfig, MFExplorerError | None]:
        located = locate_config(key, settings.config_file, config_type=settings.config_type)
        if located is None:
            return self._apply_settings(RootConfig(path=key), settings), None

        base = RootConfig(
            path=key,
            config_file=str(located.path),
            config_type=located.config_type,
        )
        try:
            fields = parse_config_file(located.path, located.config_type)
        except MFExplorerError as exc:
            logger.warning("Config ingestion failed path=%s error=%s", located.path, exc)
            return self._apply_settings(base, settings), exc

        parsed = replace(
            base,
            app_name=fields.name,
            filename=fields.filename,
            exposes=dict(fields.exposes),
            remotes=dict(fields.remotes),
            shared=fields.shared,
            notes=fields.notes,
        )
        return self._apply_settings(parsed, settings), None

    def _apply_settings(self, config: RootConfig, settings: RootSettings) -> RootConfig:
        manager = settings.package_manager or detect_package_manager(
            config.path, self._default_package_manager
        )
        return replace(
            config,
            build_command=settings.build_command,
            start_command=settings.start_command,
            package_manager=manager,
        )

    def _view(self, key: str) -> RootConfig:
        entry = self._entries[key]
        config = entry.parsed
        if not config.configured:
            return config
        remotes = dict(config.remotes)
        for name, descriptor in entry.external.items():
            remotes.setdefault(name, descriptor)
        for name, override in entry.overrides.items():
            remote = remotes.get(name)
            if remote is None:
                continue
            remotes[name] = replace(
                remote,
                resolved_folder=_resolve_folder(key, override.folder) or remote.resolved_folder,
                build_command=override.build_command or remote.build_command,
                start_command=override.start_command or remote.start_command,
            )
        for name, remote in remotes.items():
            if remote.resolved_folder and not Path(remote.resolved_folder).is_absolute():
                remotes[name] = replace(remote, resolved_folder=_resolve_folder(key, remote.resolved_folder))
        return replace(config, remotes=remotes)


def _resolve_folder(root: str, folder: str | None) -> str | None:
    if not folder:
        return None
    candidate = Path(folder).expanduser()
    if not candidate.is_absolute():
        candidate = Path(root) / candidate
    return str(candidate.resolve())
