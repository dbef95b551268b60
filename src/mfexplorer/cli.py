"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import json
import logging as py_logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

from .config import AppConfig, load_config
from .errors import ExitCode, MFExplorerError, user_facing_error
from .federation.models import RootConfig
from .graph import GraphBuilder
from .logging import configure_logging, default_log_path, runtime_log_path
from .registry import RootRegistry
from .store import get_roots_path, load_roots_file, restore_registry

_VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARN", "ERROR")


def _log_level_type(value: str) -> str:
    normalized = value.upper()
    if normalized == "WARNING":
        normalized = "WARN"
    if normalized not in _VALID_LOG_LEVELS:
        accepted = ", ".join(_VALID_LOG_LEVELS)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mfexplorer")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument("--roots-file", type=Path, default=None, help="Persisted roots JSON file")
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)

    commands = parser.add_subparsers(dest="command", required=True)
    scan = commands.add_parser("scan", help="Summarize federation config per root")
    scan.add_argument("roots", nargs="*", type=Path)
    scan.add_argument("--json", action="store_true", help="Emit JSON instead of text")

    graph = commands.add_parser("graph", help="Print the host/remote graph payload")
    graph.add_argument("roots", nargs="*", type=Path)
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def load_registry(namespace: argparse.Namespace, config: AppConfig) -> RootRegistry:
    registry = RootRegistry(default_package_manager=config.default_package_manager)
    roots_file = namespace.roots_file
    if roots_file is None and not namespace.roots:
        roots_file = get_roots_path(Path.cwd(), config.roots_file)
    if roots_file is not None:
        resolved = roots_file.expanduser()
        restore_registry(registry, load_roots_file(resolved), base=_workspace_for(resolved))
    for root in namespace.roots:
        registry.add_root(root)
    if not len(registry):
        registry.add_root(Path.cwd())
    return registry


def _workspace_for(roots_file: Path) -> Path:
    parent = roots_file.resolve().parent
    return parent.parent if parent.name == ".vscode" else parent


def describe_root(config: RootConfig, error: MFExplorerError | None = None) -> dict[str, object]:
    return {
        "path": config.path,
        "configFile": config.config_file,
        "configType": config.config_type.value,
        "name": config.app_name,
        "filename": config.filename,
        "packageManager": config.package_manager.value,
        "exposes": dict(config.exposes),
        "remotes": {name: remote.url for name, remote in config.remotes.items()},
        "shared": list(config.shared),
        "notes": [str(note) for note in config.notes],
        "error": str(error) if error is not None else None,
    }


def _write_scan_text(items: list[dict[str, object]], stream: TextIO) -> None:
    for item in items:
        print(f"{item['path']} [{item['configType']}]", file=stream)
        if item["configFile"]:
            print(f"  config: {item['configFile']}", file=stream)
        if item["name"]:
            print(f"  name: {item['name']}", file=stream)
        for key, value in dict(item["exposes"]).items():
            print(f"  exposes {key} -> {value}", file=stream)
        for key, value in dict(item["remotes"]).items():
            print(f"  remote {key} -> {value or '-'}", file=stream)
        if item["shared"]:
            print(f"  shared: {', '.join(item['shared'])}", file=stream)
        for note in item["notes"]:
            print(f"  note: {note}", file=stream)
        if item["error"]:
            print(f"  error: {item['error']}", file=stream)


def run_scan(namespace: argparse.Namespace, registry: RootRegistry, stream: TextIO) -> int:
    items: list[dict[str, object]] = []
    failed = False
    for config in registry.snapshot():
        error = registry.parse_error(config.path)
        failed = failed or error is not None
        items.append(describe_root(config, error))
    if namespace.json:
        print(json.dumps({"roots": items}, indent=2), file=stream)
    else:
        _write_scan_text(items, stream)
    return int(ExitCode.PARSE_ERROR if failed else ExitCode.SUCCESS)


def run_graph(registry: RootRegistry, stream: TextIO) -> int:
    graph = GraphBuilder().build(registry.snapshot())
    print(json.dumps(graph.to_payload(), indent=2), file=stream)
    return int(ExitCode.SUCCESS)


def run_cli_flow(namespace: argparse.Namespace, config: AppConfig, stream: TextIO | None = None) -> int:
    output = stream or sys.stdout
    registry = load_registry(namespace, config)
    if namespace.command == "graph":
        return run_graph(registry, output)
    return run_scan(namespace, registry, output)


def main(argv: Sequence[str] | None = None, *, stream: TextIO | None = None) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    config = load_config(namespace.config)
    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    logger = configure_logging(
        level=namespace.log_level or config.log_level,
        log_file=log_path,
        runtime_log_file=runtime_log_path(log_path),
    )

    try:
        logger.debug("Starting CLI flow command=%s", namespace.command)
        return run_cli_flow(namespace, config, stream)
    except MFExplorerError as exc:
        logger.error(
            "Handled MFExplorerError (code=%s): %s",
            int(exc.code),
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        hint = f"Inspect logs: {log_path}"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
