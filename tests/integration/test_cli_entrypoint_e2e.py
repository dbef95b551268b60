from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path


def _env_with_pythonpath() -> dict[str, str]:
    env = dict(os.environ)
    existing = env.get("PYTHONPATH", "")
    src_path = str(Path("src").resolve())
    env["PYTHONPATH"] = f"{src_path}{os.pathsep}{existing}" if existing else src_path
    return env


def test_cli_module_reports_invalid_args_via_exit_code(tmp_path: Path) -> None:
    completed = subprocess.run(
        [sys.executable, "-m", "mfexplorer", "--log-file", str(tmp_path / "mfx.log"), "--log-level", "loud", "scan"],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(),
    )

    assert completed.returncode == 2
    assert "--log-level must be one of" in completed.stderr


def test_cli_module_prints_graph_for_vite_root(tmp_path: Path) -> None:
    root = tmp_path / "shell"
    root.mkdir()
    (root / "vite.config.ts").write_text(
        "import { defineConfig } from 'vite';\n"
        "import federation from '@originjs/vite-plugin-federation';\n"
        "export default defineConfig({ plugins: [federation({ name: 'shell', "
        "remotes: { cart: 'cart@http://localhost:5001/assets/remoteEntry.js' } })] });\n",
        encoding="utf-8",
    )
    completed = subprocess.run(
        [
            sys.executable,
            "-m",
            "mfexplorer",
            "--log-level",
            "warning",
            "--log-file",
            str(tmp_path / "mfx.log"),
            "--config",
            str(tmp_path / "config.toml"),
            "graph",
            str(root),
        ],
        capture_output=True,
        text=True,
        check=False,
        env=_env_with_pythonpath(),
    )

    assert completed.returncode == 0, completed.stderr
    payload = json.loads(completed.stdout)
    assert payload["links"] == [{"source": "shell", "target": "cart", "type": "imports"}]
