from __future__ import annotations

from pathlib import Path

import pytest

from mfexplorer.federation import ConfigType, PackageManager, detect_package_manager, suggest_commands
from mfexplorer.federation.package_manager import run_script


@pytest.mark.parametrize(
    ("lockfile", "expected"),
    [
        ("package-lock.json", PackageManager.NPM),
        ("pnpm-lock.yaml", PackageManager.PNPM),
        ("yarn.lock", PackageManager.YARN),
    ],
)
def test_lockfile_selects_package_manager(tmp_path: Path, lockfile: str, expected: PackageManager) -> None:
    (tmp_path / lockfile).write_text("", encoding="utf-8")

    assert detect_package_manager(tmp_path) == expected


def test_default_is_used_without_lockfile(tmp_path: Path) -> None:
    assert detect_package_manager(tmp_path, PackageManager.PNPM) == PackageManager.PNPM
    assert detect_package_manager(None) == PackageManager.NPM


def test_run_script_uses_yarn_short_form() -> None:
    assert run_script(PackageManager.YARN, "build") == "yarn build"
    assert run_script(PackageManager.PNPM, "build") == "pnpm run build"


def test_vite_roots_start_with_dev_script(tmp_path: Path) -> None:
    (tmp_path / "yarn.lock").write_text("", encoding="utf-8")

    vite = suggest_commands(tmp_path, ConfigType.VITE)
    webpack = suggest_commands(tmp_path, ConfigType.WEBPACK, package_manager=PackageManager.NPM)

    assert (vite.build_command, vite.start_command) == ("yarn build", "yarn dev")
    assert (webpack.build_command, webpack.start_command) == ("npm run build", "npm run start")
