"""Module Federation domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from mfexplorer.errors import ResolutionAmbiguity

DEFAULT_REMOTE_ENTRY = "remoteEntry.js"


class ConfigType(str, Enum):
    WEBPACK = "webpack"
    VITE = "vite"
    MODERNJS = "modernjs"
    UNCONFIGURED = "unconfigured"


class PackageManager(str, Enum):
    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


@dataclass(frozen=True)
class RemoteDescriptor:
    name: str
    url: str = ""
    resolved_folder: str | None = None
    build_command: str | None = None
    start_command: str | None = None
    external: bool = False
    config_source: str | None = None


@dataclass(frozen=True)
class ExposedModule:
    name: str
    local_path: str
    config_source: str | None = None


@dataclass(frozen=True)
class FederationFields:
    """Literal values statically extracted from one config file."""

    name: str | None = None
    filename: str = DEFAULT_REMOTE_ENTRY
    exposes: dict[str, str] = field(default_factory=dict)
    remotes: dict[str, RemoteDescriptor] = field(default_factory=dict)
    shared: tuple[str, ...] = ()
    notes: tuple[ResolutionAmbiguity, ...] = ()


@dataclass(frozen=True)
class RootConfig:
    path: str
    config_file: str | None = None
    config_type: ConfigType = ConfigType.UNCONFIGURED
    app_name: str | None = None
    filename: str = DEFAULT_REMOTE_ENTRY
    exposes: dict[str, str] = field(default_factory=dict)
    remotes: dict[str, RemoteDescriptor] = field(default_factory=dict)
    shared: tuple[str, ...] = ()
    build_command: str | None = None
    start_command: str | None = None
    package_manager: PackageManager = PackageManager.NPM
    notes: tuple[ResolutionAmbiguity, ...] = ()

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("RootConfig.path cannot be empty")
        if self.config_file is None and (
            self.config_type != ConfigType.UNCONFIGURED or self.exposes or self.remotes or self.shared
        ):
            raise ValueError(f"Unconfigured root cannot carry federation fields: {self.path}")

    @property
    def configured(self) -> bool:
        return self.config_file is not None

    def exposed_modules(self) -> list[ExposedModule]:
        return [
            ExposedModule(name=key, local_path=value, config_source=self.config_file)
            for key, value in self.exposes.items()
        ]
