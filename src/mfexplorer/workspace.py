"""Workspace context wiring registry, lifecycle and graph together."""

from __future__ import annotations

import logging as py_logging
from pathlib import Path

from mfexplorer.config import AppConfig
from mfexplorer.errors import ExitCode, MFExplorerError
from mfexplorer.federation.models import ConfigType, RootConfig
from mfexplorer.federation.package_manager import SuggestedCommands, suggest_commands
from mfexplorer.graph import Graph, GraphBuilder
from mfexplorer.registry import RootRegistry
from mfexplorer.store import dump_registry, get_roots_path, load_roots_file, restore_registry, save_roots_file
from mfexplorer.terminal.backend import SessionBackend
from mfexplorer.terminal.lifecycle import ProcessLifecycleManager

logger = py_logging.getLogger(__name__)

STARTER_FILES: dict[ConfigType, str] = {
    ConfigType.WEBPACK: "webpack.config.js",
    ConfigType.VITE: "vite.config.js",
    ConfigType.MODERNJS: "module-federation.config.js",
}

_WEBPACK_TEMPLATE = """const {{ ModuleFederationPlugin }} = require('webpack').container;

module.exports = {{
  plugins: [
    new ModuleFederationPlugin({{
      name: '{name}',
      filename: 'remoteEntry.js',
      exposes: {{}},
      remotes: {{}},
      shared: {{}},
    }}),
  ],
}};
"""

_VITE_TEMPLATE = """import {{ defineConfig }} from 'vite';
import federation from '@originjs/vite-plugin-federation';

export default defineConfig({{
  plugins: [
    federation({{
      name: '{name}',
      filename: 'remoteEntry.js',
      exposes: {{}},
      remotes: {{}},
      shared: [],
    }}),
  ],
}});
"""

_MODERNJS_TEMPLATE = """module.exports = {{
  name: '{name}',
  filename: 'remoteEntry.js',
  exposes: {{}},
  remotes: {{}},
  shared: {{}},
}};
"""

_TEMPLATES: dict[ConfigType, str] = {
    ConfigType.WEBPACK: _WEBPACK_TEMPLATE,
    ConfigType.VITE: _VITE_TEMPLATE,
    ConfigType.MODERNJS: _MODERNJS_TEMPLATE,
}


def starter_config(config_type: ConfigType, app_name: str) -> str:
    template = _TEMPLATES.get(config_type)
    if template is None:
        raise MFExplorerError(
            f"No starter config for type {config_type.value}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Choose webpack, vite or modernjs.",
        )
    safe_name = "".join(char if char.isalnum() or char == "_" else "_" for char in app_name) or "app"
    return template.format(name=safe_name)


class Workspace:
    """One explorer session over a workspace folder.

    The registry's remove listener releases processes owned by removed roots;
    ``close`` stops every process and empties the registry.
    """

    def __init__(
        self,
        folder: str | Path,
        *,
        config: AppConfig | None = None,
        backend: SessionBackend | None = None,
        registry: RootRegistry | None = None,
    ) -> None:
        self.folder = Path(folder).expanduser().resolve()
        self.config = config or AppConfig()
        self.registry = registry or RootRegistry(default_package_manager=self.config.default_package_manager)
        self.lifecycle = ProcessLifecycleManager(
            self.registry.launch_spec,
            backend=backend or SessionBackend(shell=self.config.shell),
        )
        self.graph_builder = GraphBuilder()
        self.pending_folder: str | None = None
        self.registry.add_remove_listener(self._release_root)

    @property
    def roots_path(self) -> Path:
        return get_roots_path(self.folder, self.config.roots_file)

    def load(self) -> list[RootConfig]:
        model = load_roots_file(self.roots_path)
        restored = restore_registry(self.registry, model, base=self.folder)
        logger.info("Workspace loaded roots=%s path=%s", len(restored), self.roots_path)
        return restored

    def save(self) -> Path:
        saved = save_roots_file(dump_registry(self.registry), self.roots_path)
        logger.info("Workspace saved roots=%s path=%s", len(self.registry), saved)
        return saved

    def graph(self) -> Graph:
        return self.graph_builder.build(self.registry.snapshot())

    def suggested_commands(self, path: str | Path) -> SuggestedCommands:
        config = self.registry.get(path)
        config_type = config.config_type if config.configured else ConfigType.WEBPACK
        return suggest_commands(config.path, config_type, package_manager=config.package_manager)

    def on_config_file_changed(self, root_path: str | Path) -> RootConfig:
        return self.registry.on_config_file_changed(root_path)

    def on_folder_selected(self, path: str | Path) -> RootConfig:
        config = self.registry.add_root(path)
        self.pending_folder = config.path
        if not config.configured:
            logger.info("Selected folder has no federation config path=%s", config.path)
        return config

    def on_config_type_chosen(self, config_type: ConfigType) -> RootConfig:
        """Apply a config type to the last selected folder.

        An unconfigured folder gets a starter config file for the chosen type.
        """
        if self.pending_folder is None:
            raise MFExplorerError(
                "No folder selected.",
                code=ExitCode.VALIDATION_ERROR,
                hint="Select a folder before choosing a config type.",
            )
        if config_type not in STARTER_FILES:
            raise MFExplorerError(
                f"Cannot apply config type {config_type.value}",
                code=ExitCode.VALIDATION_ERROR,
                hint="Choose webpack, vite or modernjs.",
            )
        folder = self.pending_folder
        config = self.registry.get(folder)
        if config.configured:
            updated = self.registry.configure_root(folder, config_type=config_type)
        else:
            content = starter_config(config_type, Path(folder).name)
            target = Path(folder) / STARTER_FILES[config_type]
            if not target.exists():
                try:
                    target.write_text(content, encoding="utf-8")
                except OSError as exc:
                    raise MFExplorerError(
                        f"Cannot write starter config: {target}",
                        code=ExitCode.CONFIG_ERROR,
                        hint=str(exc) or "Check folder permissions.",
                    ) from exc
                logger.info("Starter config written path=%s type=%s", target, config_type.value)
            updated = self.registry.add_root(folder, target, config_type=config_type)
        self.pending_folder = None
        return updated

    def close(self) -> None:
        self.lifecycle.clear_all()
        self.registry.clear()

    def _release_root(self, config: RootConfig) -> None:
        self.lifecycle.release_root(config, still_declared=self.registry.declared_remote_names())
