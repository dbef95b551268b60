"""Module Federation config discovery and static extraction."""

from .locator import CONFIG_CANDIDATES, LocatedConfig, config_type_for, locate_config
from .models import (
    ConfigType,
    ExposedModule,
    FederationFields,
    PackageManager,
    RemoteDescriptor,
    RootConfig,
)
from .package_manager import SuggestedCommands, detect_package_manager, suggest_commands
from .parser import parse_config, parse_config_file, split_remote

__all__ = [
    "CONFIG_CANDIDATES",
    "config_type_for",
    "ConfigType",
    "detect_package_manager",
    "ExposedModule",
    "FederationFields",
    "LocatedConfig",
    "locate_config",
    "PackageManager",
    "parse_config",
    "parse_config_file",
    "RemoteDescriptor",
    "RootConfig",
    "split_remote",
    "SuggestedCommands",
    "suggest_commands",
]
