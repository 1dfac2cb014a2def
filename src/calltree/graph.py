"""
Call graph construction.

Both directions of the graph are `CallIndex` objects: lists of CallerNode
filed under a qualified name, plus an alias table so the trailing simple
name finds the same nodes without storing them twice.
"""

import logging
from dataclasses import dataclass, field

from .models import CallerNode, simple_name

log = logging.getLogger(__name__)


class CallIndex:
    """Name -> [CallerNode], addressable by qualified or simple name."""

    def __init__(self) -> None:
        self._entries: dict[str, list[CallerNode]] = {}
        self._aliases: dict[str, list[str]] = {}

    def add(self, key: str, node: CallerNode) -> None:
        self._entries.setdefault(key, []).append(node)
        alias = simple_name(key)
        # an alias spelled like its key would only duplicate the entry
        if alias != key:
            keys = self._aliases.setdefault(alias, [])
            if key not in keys:
                keys.append(key)

    def get(self, name: str) -> list[CallerNode]:
        """Nodes filed under `name`, then under every key aliased by it, deduplicated."""
        nodes: list[CallerNode] = []
        seen: set[int] = set()
        groups = [self._entries.get(name, [])]
        groups.extend(self._entries[key] for key in self._aliases.get(name, []))
        for group in groups:
            for node in group:
                if id(node) not in seen:
                    seen.add(id(node))
                    nodes.append(node)
        return nodes

    def __contains__(self, name: str) -> bool:
        return name in self._entries or name in self._aliases

    def __len__(self) -> int:
        return len(self._entries)

    def keys(self) -> list[str]:
        """Every lookup key, qualified and alias, sorted."""
        return sorted(set(self._entries) | set(self._aliases))

    def entries(self) -> dict[str, list[CallerNode]]:
        return self._entries

    def aliases(self) -> dict[str, list[str]]:
        return self._aliases

    @classmethod
    def from_parts(
        cls,
        entries: dict[str, list[CallerNode]],
        aliases: dict[str, list[str]],
    ) -> "CallIndex":
        index = cls()
        index._entries = entries
        index._aliases = aliases
        return index


@dataclass
class CallGraph:
    definitions_of: CallIndex = field(default_factory=CallIndex)    # name -> its definitions
    callers_of: CallIndex = field(default_factory=CallIndex)        # callee -> nodes calling it


def build_graph(nodes: list[CallerNode]) -> CallGraph:
    """File every node under its own name and under each name it calls."""
    graph = CallGraph()
    for node in nodes:
        graph.definitions_of.add(node.name, node)
        for callee in node.callee_names:
            graph.callers_of.add(callee, node)

    log.info(
        "Graph: %d defined names, %d called names",
        len(graph.definitions_of), len(graph.callers_of),
    )
    return graph
