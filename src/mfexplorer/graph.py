"""Host/remote dependency graph derived from registry snapshots."""

from __future__ import annotations

import logging as py_logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from mfexplorer.errors import ResolutionAmbiguity
from mfexplorer.federation.models import RootConfig

logger = py_logging.getLogger(__name__)

HOST = "host"
REMOTE = "remote"
IMPORTS = "imports"


@dataclass(frozen=True)
class GraphNode:
    id: str
    type: str
    label: str
    url: str = ""


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    type: str = IMPORTS


@dataclass
class Graph:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    notes: list[ResolutionAmbiguity] = field(default_factory=list)

    def node(self, node_id: str) -> GraphNode | None:
        for item in self.nodes:
            if item.id == node_id:
                return item
        return None

    def dangling_edges(self) -> list[GraphEdge]:
        ids = {item.id for item in self.nodes}
        return [edge for edge in self.edges if edge.source not in ids or edge.target not in ids]

    def to_payload(self) -> dict[str, list[dict[str, str]]]:
        return {
            "nodes": [{"id": item.id, "type": item.type, "label": item.label} for item in self.nodes],
            "links": [
                {"source": edge.source, "target": edge.target, "type": edge.type}
                for edge in self.edges
            ],
        }


def host_id(config: RootConfig) -> str:
    return config.app_name or config.path


class GraphBuilder:
    """Builds a fresh graph per call; holds no state between builds."""

    def build(self, roots: Iterable[RootConfig]) -> Graph:
        configs = list(roots)
        nodes: dict[str, GraphNode] = {}
        edges: dict[tuple[str, str], GraphEdge] = {}
        notes: list[ResolutionAmbiguity] = []

        hosts: dict[str, RootConfig] = {}
        for config in configs:
            node_id = host_id(config)
            if node_id in hosts:
                notes.append(
                    ResolutionAmbiguity(
                        "duplicate-remote",
                        node_id,
                        f"app name shared by {hosts[node_id].path} and {config.path}",
                    )
                )
                continue
            hosts[node_id] = config
            nodes[node_id] = GraphNode(id=node_id, type=HOST, label=config.app_name or node_id)

        # Remote urls settle in root order, so the last declaring root wins.
        for config in configs:
            for name, remote in config.remotes.items():
                if name in hosts:
                    continue
                known = nodes.get(name)
                if known is None:
                    nodes[name] = GraphNode(id=name, type=REMOTE, label=name, url=remote.url)
                    continue
                if known.url and remote.url and known.url != remote.url:
                    notes.append(
                        ResolutionAmbiguity(
                            "duplicate-remote",
                            name,
                            f"url {known.url} replaced by {remote.url} from {config.path}",
                        )
                    )
                if remote.url:
                    nodes[name] = replace(known, url=remote.url)

        visited: set[str] = set()

        def visit(config: RootConfig) -> None:
            source = host_id(config)
            if config.path in visited:
                return
            visited.add(config.path)
            for name in config.remotes:
                if source == name:
                    continue
                edges.setdefault((source, name), GraphEdge(source=source, target=name))
                if name in hosts:
                    visit(hosts[name])

        for config in configs:
            visit(config)

        graph = Graph(nodes=list(nodes.values()), edges=list(edges.values()), notes=notes)
        logger.debug("Graph built nodes=%s edges=%s notes=%s", len(graph.nodes), len(graph.edges), len(notes))
        return graph
