"""Package manager inference and default command suggestions."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from mfexplorer.federation.models import ConfigType, PackageManager

LOCKFILES: tuple[tuple[str, PackageManager], ...] = (
    ("package-lock.json", PackageManager.NPM),
    ("pnpm-lock.yaml", PackageManager.PNPM),
    ("yarn.lock", PackageManager.YARN),
)


@dataclass(frozen=True)
class SuggestedCommands:
    package_manager: PackageManager
    build_command: str
    start_command: str


def detect_package_manager(
    folder: str | Path | None,
    default: PackageManager = PackageManager.NPM,
) -> PackageManager:
    if not folder:
        return default
    base = Path(folder)
    for lockfile, manager in LOCKFILES:
        if (base / lockfile).is_file():
            return manager
    return default


def run_script(manager: PackageManager, script: str) -> str:
    if manager == PackageManager.YARN:
        return f"yarn {script}"
    return f"{manager.value} run {script}"


def suggest_commands(
    folder: str | Path | None,
    config_type: ConfigType,
    *,
    package_manager: PackageManager | None = None,
    default: PackageManager = PackageManager.NPM,
) -> SuggestedCommands:
    manager = package_manager or detect_package_manager(folder, default)
    start_script = "dev" if config_type == ConfigType.VITE else "start"
    return SuggestedCommands(
        package_manager=manager,
        build_command=run_script(manager, "build"),
        start_command=run_script(manager, start_script),
    )
