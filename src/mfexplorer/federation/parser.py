"""Static extraction of Module Federation fields from config sources."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Callable
from pathlib import Path

from tree_sitter import Node

from mfexplorer.errors import ExitCode, MFExplorerError, ParseError, ResolutionAmbiguity
from mfexplorer.federation.models import (
    DEFAULT_REMOTE_ENTRY,
    ConfigType,
    FederationFields,
    RemoteDescriptor,
)
from mfexplorer.federation.syntax import (
    IDENTIFIER_TYPES,
    JAVASCRIPT,
    Binding,
    ModuleScope,
    dialect_for,
    find_property,
    first_argument,
    first_error,
    node_text,
    object_entries,
    parse_source,
    string_value,
    unwrap,
    walk,
)

logger = py_logging.getLogger(__name__)

FEDERATION_PLUGIN_EXPORTS = frozenset({"ModuleFederationPlugin", "NextFederationPlugin"})
VITE_FACTORY_EXPORTS = frozenset({"federation", "default"})

OptionsLocator = Callable[[ModuleScope, list[ResolutionAmbiguity]], Node | None]


def split_remote(key: str, literal: str) -> tuple[str, str]:
    """Split ``name@url`` on the first ``@``; a bare literal is all url."""
    name, sep, url = literal.partition("@")
    if not sep:
        return key, literal
    return name.strip() or key, url.strip()


def _is_federation_plugin(binding: Binding | None) -> bool:
    if binding is None:
        return False
    exported = binding.exported_name
    if exported is not None:
        return exported in FEDERATION_PLUGIN_EXPORTS
    return binding.module_basename in FEDERATION_PLUGIN_EXPORTS


def _is_vite_federation_factory(binding: Binding | None) -> bool:
    if binding is None or "federation" not in binding.source.lower():
        return False
    exported = binding.exported_name
    return exported is None or exported in VITE_FACTORY_EXPORTS


def _plugins_array(
    scope: ModuleScope,
    config: Node,
    notes: list[ResolutionAmbiguity],
) -> Node | None:
    plugins = find_property(config, "plugins")
    if plugins is None:
        return None
    resolved = scope.resolve(plugins, notes, subject="plugins")
    if resolved is None or resolved.type != "array":
        return None
    return resolved


def _options_object(
    scope: ModuleScope,
    call: Node,
    notes: list[ResolutionAmbiguity],
    subject: str,
) -> Node | None:
    argument = first_argument(call)
    if argument is None:
        notes.append(ResolutionAmbiguity("non-literal", subject, "called without options"))
        return None
    options = scope.resolve(argument, notes, subject=subject)
    if options is None:
        return None
    if options.type != "object":
        notes.append(ResolutionAmbiguity("non-literal", subject, f"options are a {options.type}"))
        return None
    return options


def _locate_webpack_options(scope: ModuleScope, notes: list[ResolutionAmbiguity]) -> Node | None:
    for config in scope.exported_objects(notes):
        plugins = _plugins_array(scope, config, notes)
        if plugins is None:
            continue
        for node in walk(plugins):
            if node.type != "new_expression":
                continue
            if not _is_federation_plugin(scope.reference(node.child_by_field_name("constructor"))):
                continue
            options = _options_object(scope, node, notes, "federation plugin")
            if options is not None:
                return options
    return None


def _locate_vite_options(scope: ModuleScope, notes: list[ResolutionAmbiguity]) -> Node | None:
    for config in scope.exported_objects(notes):
        plugins = _plugins_array(scope, config, notes)
        if plugins is None:
            continue
        for node in walk(plugins):
            if node.type != "call_expression":
                continue
            if not _is_vite_federation_factory(scope.reference(node.child_by_field_name("function"))):
                continue
            options = _options_object(scope, node, notes, "federation plugin")
            if options is not None:
                return options
    return None


def _locate_modernjs_options(scope: ModuleScope, notes: list[ResolutionAmbiguity]) -> Node | None:
    objects = scope.exported_objects(notes)
    return objects[0] if objects else None


_LOCATORS: dict[ConfigType, OptionsLocator] = {
    ConfigType.WEBPACK: _locate_webpack_options,
    ConfigType.VITE: _locate_vite_options,
    ConfigType.MODERNJS: _locate_modernjs_options,
}


def _resolved_string(
    scope: ModuleScope,
    node: Node,
    notes: list[ResolutionAmbiguity],
    subject: str,
    *,
    hopped: bool = False,
) -> str | None:
    resolved = scope.resolve(node, notes, subject=subject, hopped=hopped)
    if resolved is None:
        return None
    value = string_value(resolved)
    if value is None:
        notes.append(ResolutionAmbiguity("non-literal", subject, node_text(resolved)[:60]))
    return value


def _string_field(
    scope: ModuleScope,
    options: Node,
    name: str,
    notes: list[ResolutionAmbiguity],
) -> str | None:
    node = find_property(options, name)
    if node is None:
        return None
    return _resolved_string(scope, node, notes, name)


def _object_field(
    scope: ModuleScope,
    options: Node,
    name: str,
    notes: list[ResolutionAmbiguity],
) -> Node | None:
    node = find_property(options, name)
    if node is None:
        return None
    resolved = scope.resolve(node, notes, subject=name)
    if resolved is None:
        return None
    if resolved.type not in {"object", "array"}:
        notes.append(ResolutionAmbiguity("non-literal", name, f"value is a {resolved.type}"))
        return None
    return resolved


def _expose_path(
    scope: ModuleScope,
    value: Node,
    notes: list[ResolutionAmbiguity],
    subject: str,
) -> str | None:
    resolved = scope.resolve(value, notes, subject=subject)
    if resolved is None:
        return None
    if resolved.type != "object":
        return _resolved_string(scope, resolved, notes, subject)
    target = find_property(resolved, "import")
    if target is None:
        notes.append(ResolutionAmbiguity("non-literal", subject, "object without 'import'"))
        return None
    # An object reached through a variable has used up its lookup.
    hopped = unwrap(value).type in IDENTIFIER_TYPES
    return _resolved_string(scope, target, notes, subject, hopped=hopped)


def _extract_exposes(
    scope: ModuleScope,
    options: Node,
    notes: list[ResolutionAmbiguity],
) -> dict[str, str]:
    container = _object_field(scope, options, "exposes", notes)
    exposes: dict[str, str] = {}
    if container is None or container.type != "object":
        return exposes
    for key, value in object_entries(container):
        if key is None:
            notes.append(ResolutionAmbiguity("non-literal", "exposes[?]"))
            continue
        path = _expose_path(scope, value, notes, f"exposes[{key}]")
        if path is not None:
            exposes[key] = path
    return exposes


def _extract_remotes(
    scope: ModuleScope,
    options: Node,
    notes: list[ResolutionAmbiguity],
    config_source: str | None,
) -> dict[str, RemoteDescriptor]:
    container = _object_field(scope, options, "remotes", notes)
    remotes: dict[str, RemoteDescriptor] = {}
    if container is None or container.type != "object":
        return remotes
    for key, value in object_entries(container):
        if key is None:
            notes.append(ResolutionAmbiguity("non-literal", "remotes[?]"))
            continue
        literal = _resolved_string(scope, value, notes, f"remotes[{key}]")
        if literal is None:
            continue
        name, url = split_remote(key, literal)
        if name in remotes:
            notes.append(ResolutionAmbiguity("duplicate-remote", name, f"declared again under '{key}'"))
            continue
        remotes[name] = RemoteDescriptor(name=name, url=url, config_source=config_source)
    return remotes


def _extract_shared(
    scope: ModuleScope,
    options: Node,
    notes: list[ResolutionAmbiguity],
) -> tuple[str, ...]:
    container = _object_field(scope, options, "shared", notes)
    if container is None:
        return ()
    names: list[str] = []
    if container.type == "object":
        names = [key for key, _ in object_entries(container) if key is not None]
    else:
        for element in container.named_children:
            resolved = scope.resolve(element, notes, subject="shared")
            literal = string_value(resolved)
            if literal is not None:
                names.append(literal)
    return tuple(dict.fromkeys(names))


def extract_fields(
    scope: ModuleScope,
    options: Node,
    notes: list[ResolutionAmbiguity],
    *,
    config_source: str | None = None,
) -> FederationFields:
    name = _string_field(scope, options, "name", notes)
    filename = _string_field(scope, options, "filename", notes) or DEFAULT_REMOTE_ENTRY
    return FederationFields(
        name=name,
        filename=filename,
        exposes=_extract_exposes(scope, options, notes),
        remotes=_extract_remotes(scope, options, notes, config_source),
        shared=_extract_shared(scope, options, notes),
        notes=tuple(notes),
    )


def parse_config(
    source: str,
    config_type: ConfigType,
    *,
    dialect: str = JAVASCRIPT,
    path: str | None = None,
) -> FederationFields:
    """Extract name/filename/exposes/remotes/shared from one config source.

    Raises ParseError only for syntactically invalid sources; a missing or
    dynamic federation declaration yields empty or partial fields.
    """
    locator = _LOCATORS.get(config_type)
    if locator is None:
        raise MFExplorerError(
            f"Cannot parse config of type {config_type.value}",
            code=ExitCode.VALIDATION_ERROR,
            hint="Use webpack, vite or modernjs.",
        )

    tree = parse_source(source, dialect)
    broken = first_error(tree.root_node)
    if broken is not None:
        row, column = broken.start_point[0] + 1, broken.start_point[1] + 1
        raise ParseError(
            f"Syntax error in {path or 'config source'} at line {row}, column {column}",
            hint="Fix the config file syntax and reload the root.",
            path=path or "",
        )

    scope = ModuleScope(tree.root_node)
    notes: list[ResolutionAmbiguity] = []
    options = locator(scope, notes)
    if options is None:
        logger.info("No federation options found type=%s path=%s", config_type.value, path)
        return FederationFields(notes=tuple(notes))

    fields = extract_fields(scope, options, notes, config_source=path)
    logger.debug(
        "Extracted federation config type=%s path=%s name=%s remotes=%s exposes=%s",
        config_type.value,
        path,
        fields.name,
        len(fields.remotes),
        len(fields.exposes),
    )
    for note in fields.notes:
        logger.info("Partial federation config path=%s note=%s", path, note)
    return fields


def parse_config_file(path: str | Path, config_type: ConfigType) -> FederationFields:
    resolved = Path(path)
    try:
        source = resolved.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ParseError(
            f"Config file is not valid UTF-8: {resolved}",
            hint="Save the config file with UTF-8 encoding.",
            path=str(resolved),
        ) from exc
    except OSError as exc:
        raise MFExplorerError(
            f"Cannot read config file: {resolved}",
            code=ExitCode.CONFIG_ERROR,
            hint=str(exc) or "Check file permissions.",
        ) from exc
    return parse_config(source, config_type, dialect=dialect_for(resolved), path=str(resolved))
