from __future__ import annotations

from pathlib import Path

import pytest

from mfexplorer.errors import ExitCode, MFExplorerError, ParseError
from mfexplorer.federation import ConfigType, parse_config, parse_config_file, split_remote
from mfexplorer.federation.syntax import TYPESCRIPT

WEBPACK_SOURCE = """
const { ModuleFederationPlugin } = require('webpack').container;

module.exports = {
  // other webpack options
  plugins: [
    new ModuleFederationPlugin({
      name: 'webpackHost',
      filename: 'remoteEntry.js',
      exposes: {
        './Button': './src/components/Button',
        './Dropdown': './src/components/Dropdown'
      },
      remotes: {
        webpackRemote: 'webpackRemote@http://localhost:3001/remoteEntry.js'
      },
      shared: { react: { singleton: true }, 'react-dom': { singleton: true } }
    })
  ]
};
"""

VITE_SOURCE = """
import { defineConfig } from 'vite';
import federation from '@originjs/vite-plugin-federation';

export default defineConfig({
  plugins: [
    federation({
      name: 'viteHost',
      filename: 'remoteEntry.js',
      exposes: {
        './Button': './src/components/Button',
        './Card': './src/components/Card'
      },
      remotes: {
        viteRemote: 'http://localhost:3002/remoteEntry.js'
      },
      shared: ['react', 'react-dom', 'react']
    })
  ]
});
"""

MODERNJS_SOURCE = """
module.exports = {
  name: 'modernJsHost',
  filename: 'remoteEntry.js',
  exposes: {
    './Header': './src/components/Header',
    './Footer': './src/components/Footer'
  },
  remotes: {
    modernJsRemote: 'modernJsRemote@http://localhost:3003/remoteEntry.js'
  }
};
"""


def _kinds(notes: object) -> list[str]:
    return [note.kind for note in notes]  # type: ignore[attr-defined]


def test_webpack_plugin_options_are_extracted() -> None:
    fields = parse_config(WEBPACK_SOURCE, ConfigType.WEBPACK)

    assert fields.name == "webpackHost"
    assert fields.filename == "remoteEntry.js"
    assert fields.exposes == {
        "./Button": "./src/components/Button",
        "./Dropdown": "./src/components/Dropdown",
    }
    remote = fields.remotes["webpackRemote"]
    assert remote.url == "http://localhost:3001/remoteEntry.js"
    assert remote.external is False
    assert fields.shared == ("react", "react-dom")
    assert fields.notes == ()


def test_vite_factory_options_are_extracted() -> None:
    fields = parse_config(VITE_SOURCE, ConfigType.VITE)

    assert fields.name == "viteHost"
    assert list(fields.exposes) == ["./Button", "./Card"]
    assert fields.remotes["viteRemote"].url == "http://localhost:3002/remoteEntry.js"
    assert fields.shared == ("react", "react-dom")


def test_modernjs_exported_object_is_the_federation_config() -> None:
    fields = parse_config(MODERNJS_SOURCE, ConfigType.MODERNJS)

    assert fields.name == "modernJsHost"
    assert fields.exposes["./Header"] == "./src/components/Header"
    assert fields.remotes["modernJsRemote"].url == "http://localhost:3003/remoteEntry.js"


def test_webpack_plugin_options_follow_one_identifier_hop() -> None:
    source = """
const webpack = require('webpack');
const { ModuleFederationPlugin } = webpack.container;

const federationConfig = {
  name: 'altHost',
  filename: 'remoteEntry.js',
  exposes: {
    './AltComponent': './src/components/AltComponent'
  }
};

module.exports = {
  plugins: [
    new ModuleFederationPlugin(federationConfig)
  ]
};
"""
    fields = parse_config(source, ConfigType.WEBPACK)

    assert fields.name == "altHost"
    assert fields.exposes == {"./AltComponent": "./src/components/AltComponent"}


def test_webpack_plugin_is_recognized_through_aliases_and_member_access() -> None:
    aliased = """
const { ModuleFederationPlugin: MFP } = require('webpack').container;
module.exports = { plugins: [new MFP({ name: 'aliased' })] };
"""
    member = """
const webpack = require('webpack');
module.exports = {
  plugins: [new webpack.container.ModuleFederationPlugin({ name: 'member' })],
};
"""
    direct = """
const ModuleFederationPlugin = require('webpack/lib/container/ModuleFederationPlugin');
module.exports = { plugins: [new ModuleFederationPlugin({ name: 'direct' })] };
"""
    assert parse_config(aliased, ConfigType.WEBPACK).name == "aliased"
    assert parse_config(member, ConfigType.WEBPACK).name == "member"
    assert parse_config(direct, ConfigType.WEBPACK).name == "direct"


def test_unbound_constructor_named_like_the_plugin_is_ignored() -> None:
    source = """
class ModuleFederationPlugin {}
module.exports = { plugins: [new ModuleFederationPlugin({ name: 'fake' })] };
"""
    fields = parse_config(source, ConfigType.WEBPACK)

    assert fields.name is None
    assert fields.remotes == {}


def test_webpack_config_factory_returning_object_is_unwrapped() -> None:
    source = """
const { ModuleFederationPlugin } = require('webpack').container;
module.exports = (env, argv) => {
  const mode = argv.mode;
  return {
    mode,
    plugins: [new ModuleFederationPlugin({ name: 'factory', remotes: { shop: 'shop@http://localhost:3005/remoteEntry.js' } })],
  };
};
"""
    fields = parse_config(source, ConfigType.WEBPACK)

    assert fields.name == "factory"
    assert list(fields.remotes) == ["shop"]


def test_scalar_values_follow_one_identifier_hop() -> None:
    source = """
const { ModuleFederationPlugin } = require('webpack').container;
const APP_NAME = 'host';
const ENTRY = 'hostEntry.js';
const SHOP = 'shop@http://localhost:3001/remoteEntry.js';
const BUTTON = './src/Button';
const CARD = { import: './src/Card' };
module.exports = {
  plugins: [
    new ModuleFederationPlugin({
      name: APP_NAME,
      filename: ENTRY,
      exposes: { './Button': BUTTON, './Card': CARD },
      remotes: { shop: SHOP },
    }),
  ],
};
"""
    fields = parse_config(source, ConfigType.WEBPACK)

    assert fields.name == "host"
    assert fields.filename == "hostEntry.js"
    assert fields.exposes == {"./Button": "./src/Button", "./Card": "./src/Card"}
    assert fields.remotes["shop"].url == "http://localhost:3001/remoteEntry.js"
    assert fields.notes == ()


def test_shorthand_name_property_is_resolved() -> None:
    source = """
const name = 'shorthandHost';
module.exports = { name, remotes: {} };
"""
    fields = parse_config(source, ConfigType.MODERNJS)

    assert fields.name == "shorthandHost"


def test_scalar_second_hop_is_reported_not_followed() -> None:
    source = """
const BASE = 'deep@http://localhost:3009/remoteEntry.js';
const DEEP = BASE;
const IMPORT = './src/Deep';
const ENTRY = { import: IMPORT };
module.exports = { remotes: { deep: DEEP }, exposes: { './Deep': ENTRY } };
"""
    fields = parse_config(source, ConfigType.MODERNJS)

    assert fields.remotes == {}
    assert fields.exposes == {}
    assert _kinds(fields.notes).count("multi-hop") == 2


def test_second_identifier_hop_is_reported_not_followed() -> None:
    source = """
const { ModuleFederationPlugin } = require('webpack').container;
const base = { name: 'deep' };
const options = base;
module.exports = { plugins: [new ModuleFederationPlugin(options)] };
"""
    fields = parse_config(source, ConfigType.WEBPACK)

    assert fields.name is None
    assert "multi-hop" in _kinds(fields.notes)


def test_unknown_identifier_is_reported_as_unresolved() -> None:
    source = """
import federation from '@originjs/vite-plugin-federation';
import { remotes } from './remotes';
export default {
  plugins: [federation({ name: 'host', remotes })],
};
"""
    fields = parse_config(source, ConfigType.VITE)

    assert fields.name == "host"
    assert fields.remotes == {}
    assert "unresolved" in _kinds(fields.notes)


def test_non_literal_values_are_skipped_with_a_note() -> None:
    source = """
module.exports = {
  name: process.env.APP_NAME,
  exposes: {
    './Static': './src/Static',
    './Dynamic': path.join(__dirname, 'src/Dynamic'),
    './Object': { import: './src/Object' },
  },
  remotes: { computed: `${host}/remoteEntry.js`, plain: 'plain@http://localhost:4000/remoteEntry.js' },
};
"""
    fields = parse_config(source, ConfigType.MODERNJS)

    assert fields.name is None
    assert fields.exposes == {"./Static": "./src/Static", "./Object": "./src/Object"}
    assert list(fields.remotes) == ["plain"]
    assert _kinds(fields.notes).count("non-literal") == 3


def test_remote_name_comes_from_the_literal_not_the_key() -> None:
    source = """
module.exports = {
  remotes: {
    cart: 'checkout@http://localhost:3010/remoteEntry.js',
    legacy: 'http://localhost:3020/remoteEntry.js',
  },
};
"""
    fields = parse_config(source, ConfigType.MODERNJS)

    assert fields.remotes["checkout"].url == "http://localhost:3010/remoteEntry.js"
    assert fields.remotes["legacy"].url == "http://localhost:3020/remoteEntry.js"


def test_missing_plugin_yields_empty_fields() -> None:
    source = "module.exports = { mode: 'production', plugins: [] };"

    fields = parse_config(source, ConfigType.WEBPACK)

    assert fields.name is None
    assert fields.filename == "remoteEntry.js"
    assert fields.exposes == {}
    assert fields.remotes == {}


def test_typescript_config_is_parsed_with_type_annotations() -> None:
    source = """
import type { UserConfig } from 'vite';
import { defineConfig } from 'vite';
import federation from '@originjs/vite-plugin-federation';

const remotes = {
  cart: 'cart@http://localhost:5001/assets/remoteEntry.js',
} as const;

export default defineConfig({
  plugins: [federation({ name: 'tsHost', remotes } satisfies Record<string, unknown>)],
} as UserConfig);
"""
    fields = parse_config(source, ConfigType.VITE, dialect=TYPESCRIPT)

    assert fields.name == "tsHost"
    assert fields.remotes["cart"].url == "http://localhost:5001/assets/remoteEntry.js"


def test_syntax_error_raises_parse_error_with_location() -> None:
    source = "module.exports = { plugins: [ new Plugin( };\n"

    with pytest.raises(ParseError) as excinfo:
        parse_config(source, ConfigType.WEBPACK, path="/repo/webpack.config.js")

    assert excinfo.value.code == ExitCode.PARSE_ERROR
    assert excinfo.value.path == "/repo/webpack.config.js"
    assert "line" in excinfo.value.message


def test_unconfigured_type_is_rejected() -> None:
    with pytest.raises(MFExplorerError) as excinfo:
        parse_config(MODERNJS_SOURCE, ConfigType.UNCONFIGURED)

    assert excinfo.value.code == ExitCode.VALIDATION_ERROR


def test_parse_config_file_infers_dialect_and_records_source(tmp_path: Path) -> None:
    config = tmp_path / "module-federation.config.ts"
    config.write_text(
        "const config: Record<string, unknown> = { name: 'typed', remotes: { a: 'a@http://x/remoteEntry.js' } };\n"
        "export default config;\n",
        encoding="utf-8",
    )

    fields = parse_config_file(config, ConfigType.MODERNJS)

    assert fields.name == "typed"
    assert fields.remotes["a"].config_source == str(config)


def test_parse_config_file_rejects_non_utf8(tmp_path: Path) -> None:
    config = tmp_path / "webpack.config.js"
    config.write_bytes(b"module.exports = { name: '\xff\xfe' };")

    with pytest.raises(ParseError):
        parse_config_file(config, ConfigType.WEBPACK)


@pytest.mark.parametrize(
    ("key", "literal", "expected"),
    [
        ("app1", "app1@http://localhost:3001/remoteEntry.js", ("app1", "http://localhost:3001/remoteEntry.js")),
        ("viteRemote", "http://localhost:3002/remoteEntry.js", ("viteRemote", "http://localhost:3002/remoteEntry.js")),
        ("alias", "real@http://u@host/entry.js", ("real", "http://u@host/entry.js")),
        ("fallback", "@http://localhost/remoteEntry.js", ("fallback", "http://localhost/remoteEntry.js")),
    ],
)
def test_split_remote(key: str, literal: str, expected: tuple[str, str]) -> None:
    assert split_remote(key, literal) == expected
