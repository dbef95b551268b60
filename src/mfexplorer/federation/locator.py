"""Config file discovery for a federation root."""

from __future__ import annotations

import logging as py_logging
from dataclasses import dataclass
from pathlib import Path

from mfexplorer.federation.models import ConfigType

logger = py_logging.getLogger(__name__)

CONFIG_CANDIDATES: tuple[tuple[str, ConfigType], ...] = (
    ("module-federation.config.js", ConfigType.MODERNJS),
    ("module-federation.config.ts", ConfigType.MODERNJS),
    ("webpack.config.js", ConfigType.WEBPACK),
    ("webpack.config.ts", ConfigType.WEBPACK),
    ("vite.config.js", ConfigType.VITE),
    ("vite.config.ts", ConfigType.VITE),
)


@dataclass(frozen=True)
class LocatedConfig:
    path: Path
    config_type: ConfigType


def config_type_for(path: str | Path) -> ConfigType:
    name = Path(path).name.lower()
    if name.startswith("module-federation"):
        return ConfigType.MODERNJS
    if "vite" in name:
        return ConfigType.VITE
    return ConfigType.WEBPACK


def locate_config(
    root: str | Path,
    pinned: str | Path | None = None,
    *,
    config_type: ConfigType | None = None,
) -> LocatedConfig | None:
    """Pick the single config file for ``root``, or ``None`` when unconfigured.

    ``config_type`` overrides the type inferred from the file name. When it
    came with a pinned file that no longer exists, discovery infers the type.
    """
    override = config_type
    if pinned:
        pinned_path = Path(pinned).expanduser()
        if not pinned_path.is_absolute():
            pinned_path = Path(root) / pinned_path
        if pinned_path.is_file():
            return LocatedConfig(pinned_path, config_type or config_type_for(pinned_path))
        logger.info("Pinned config file missing, falling back to discovery path=%s", pinned_path)
        override = None

    base = Path(root)
    for filename, detected in CONFIG_CANDIDATES:
        candidate = base / filename
        if candidate.is_file():
            logger.debug("Located config root=%s file=%s", base, filename)
            return LocatedConfig(candidate, override or detected)
    logger.debug("No federation config found root=%s", base)
    return None
