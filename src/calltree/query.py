"""
Call-tree queries over a CallGraph.

A query walks the graph depth first from a root name and returns a pruned
TreeNode tree. A walk stops at a name with no further edges ("outmost"), at
the depth limit ("deep"), or at a name already on the current path
("recursive"). Such a leaf survives only if its name matches the filter;
an inner node survives only if one of its children did. Every leaf of the
result therefore matches the filter.
"""

import logging
import re
from enum import IntEnum
from typing import Iterator

from .errors import InvalidPatternError
from .graph import CallGraph, CallIndex
from .models import TreeNode, simple_name

log = logging.getLogger(__name__)

DEFAULT_DEPTH = 100000


class Direction(IntEnum):
    CALLING = 0     # what does this function call
    CALLED = 1      # who calls this function

    @classmethod
    def from_flag(cls, flag: int) -> "Direction":
        return cls.CALLED if flag == 1 else cls.CALLING


def compile_pattern(pattern: str) -> re.Pattern:
    try:
        return re.compile(pattern)
    except re.error as e:
        raise InvalidPatternError(f"Invalid pattern {pattern!r}: {e}") from e


class _Walker:
    def __init__(self, graph: CallGraph, direction: Direction, depth: int, filter_re: re.Pattern) -> None:
        self.graph = graph
        self.direction = direction
        self.depth = depth
        self.filter_re = filter_re

    @property
    def index(self) -> CallIndex:
        if self.direction == Direction.CALLED:
            return self.graph.callers_of
        return self.graph.definitions_of

    def children(self, name: str) -> list[tuple[str, str]]:
        if self.direction == Direction.CALLED:
            return [(node.name, node.file_info) for node in self.graph.callers_of.get(name)]
        seen: dict[str, str] = {}
        for node in self.graph.definitions_of.get(name):
            for callee in node.callee_names:
                if callee not in seen:
                    seen[callee] = definition_site(self.graph, callee)
        return list(seen.items())

    def _enter(self, name: str, file_info: str, level: int, path: set[str], stack: list) -> TreeNode | None:
        """Return a terminal leaf that passes the filter, or push a frame to expand `name`."""
        node = TreeNode(name=name, file_info=file_info)
        simple = simple_name(name)

        if simple not in self.index:
            node.leaf = "outmost"
        elif level >= self.depth:
            node.leaf = "deep"
        elif simple in path:
            node.leaf = "recursive"
        if node.leaf is not None:
            return node if self.filter_re.search(name) else None

        path.add(simple)
        stack.append((node, simple, level, iter(self.children(simple))))
        return None

    def walk(self, name: str, file_info: str) -> TreeNode | None:
        """Depth-first walk from `name` (level 1) with an explicit stack.

        Chains may be far longer than the interpreter's recursion limit.
        """
        path: set[str] = set()
        stack: list[tuple[TreeNode, str, int, Iterator[tuple[str, str]]]] = []
        result = self._enter(name, file_info, 1, path, stack)

        while stack:
            node, simple, level, pending = stack[-1]
            nxt = next(pending, None)
            if nxt is not None:
                leaf = self._enter(nxt[0], nxt[1], level + 1, path, stack)
                if leaf is not None:
                    node.children.append(leaf)
                continue

            stack.pop()
            path.discard(simple)
            if not node.children:
                continue
            if stack:
                stack[-1][0].children.append(node)
            else:
                result = node

        return result


def definition_site(graph: CallGraph, name: str) -> str:
    """`path:line` of the first definition of `name`, or ""."""
    nodes = graph.definitions_of.get(name) or graph.definitions_of.get(simple_name(name))
    return nodes[0].file_info if nodes else ""


def build_tree(
    graph: CallGraph,
    name: str,
    filter_pattern: str = "",
    depth: int = DEFAULT_DEPTH,
    direction: Direction = Direction.CALLED,
) -> TreeNode:
    """
    Build the call tree for `name`.

    An exact key of the graph anchors the tree at that name. Anything else is
    a regex: every matching key, in sorted order, becomes a subtree of a
    synthetic root named after the pattern. Either way a root is returned,
    possibly without children.
    """
    filter_re = compile_pattern(filter_pattern or ".*")
    walker = _Walker(graph, direction, depth, filter_re)

    if name in walker.index:
        root = walker.walk(name, definition_site(graph, name))
        return root if root is not None else TreeNode(name=name, file_info=definition_site(graph, name))

    name_re = compile_pattern(name)
    root = TreeNode(name=name)
    for key in walker.index.keys():
        if not name_re.search(key):
            continue
        child = walker.walk(key, definition_site(graph, key))
        if child is not None:
            root.children.append(child)
    log.debug("Pattern %r: %d matching subtrees", name, len(root.children))
    return root
