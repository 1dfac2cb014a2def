"""
Function and call extraction from sanitized sources.

The search tool reports the lines covered by function definitions; adjacent
lines are merged back into spans, each span is re-matched to find the
definitions (and their qualified names) it holds, and every call expression
inside a definition is collected. Callees that are blacklisted, called too
often, or too short to mean anything are dropped as noise.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from typing import Iterable

from .errors import MalformedGrepLine
from .graph import CallGraph, build_graph
from .models import (
    CallerNode,
    CalltreeConfig,
    ExtractStats,
    FunctionDefinition,
    GrepHit,
    simple_name,
)
from .patterns import FUNCTION_DEFINITION, extract_calls
from .search import SearchTool

log = logging.getLogger(__name__)

_GREP_LINE_RE = re.compile(r"^([^:]+):(\d+):(.*)$", re.DOTALL)


@dataclass
class SourceSpan:
    path: str
    line: int           # first line of the span
    text: str


def parse_grep_line(raw: str) -> GrepHit:
    """Split a raw `path:line:content` search result."""
    m = _GREP_LINE_RE.match(raw)
    if m is None:
        raise MalformedGrepLine(f"Cannot split search result into path, line, content: {raw!r}")
    return GrepHit(m.group(1), int(m.group(2)), m.group(3))


def merge_lines(hits: Iterable[GrepHit | str]) -> list[SourceSpan]:
    """Join runs of consecutive lines from the same file into spans."""
    spans: list[SourceSpan] = []
    current: SourceSpan | None = None
    last_line = 0
    for hit in hits:
        if isinstance(hit, str):
            hit = parse_grep_line(hit)
        if current is not None and hit.path == current.path and hit.line == last_line + 1:
            current.text += "\n" + hit.content
        else:
            current = SourceSpan(hit.path, hit.line, hit.content)
            spans.append(current)
        last_line = hit.line
    return spans


def find_definitions(span: SourceSpan) -> list[tuple[FunctionDefinition, list[str]]]:
    """Definitions in one span, each with the names it calls (noise included)."""
    found = []
    for m in FUNCTION_DEFINITION.finditer(span.text):
        name = m.name
        line = span.line + span.text.count("\n", 0, m.name_start)
        definition = FunctionDefinition(
            qualified_name=name,
            simple_name=simple_name(name),
            path=span.path,
            line=line,
            body_text=span.text[m.start:m.end],
        )
        # scan after the name so the definition does not count as its own call
        found.append((definition, extract_calls(span.text[m.name_end:m.end])))
    return found


def find_trivials(
    callee_lists: Iterable[list[str]],
    trivial_threshold: int,
    length_threshold: int,
) -> set[str]:
    """Names called more than `trivial_threshold` times or shorter than `length_threshold`."""
    counts: Counter[str] = Counter()
    for callees in callee_lists:
        counts.update(callees)
    return {
        name for name, count in counts.items()
        if count > trivial_threshold or len(name) < length_threshold
    }


def make_caller_node(definition: FunctionDefinition, callees: list[str], ignored: set[str]) -> CallerNode:
    callee_names = list(dict.fromkeys(c for c in callees if c not in ignored))
    present = set(callee_names)
    simple_names = dict.fromkeys(simple_name(c) for c in callee_names)
    return CallerNode(
        name=definition.qualified_name,
        simple_name=definition.simple_name,
        file_info=definition.file_info,
        callee_names=callee_names,
        callee_simple_names=[s for s in simple_names if s not in present],
    )


def extract_call_graph(search: SearchTool, config: CalltreeConfig) -> tuple[CallGraph, ExtractStats]:
    """
    Build the call graph of the (already sanitized) tree behind `search`.

    Returns the graph plus diagnostic counters.
    """
    stats = ExtractStats()

    hits = search.grep(FUNCTION_DEFINITION, config.extension_pattern, config.ignore_globs)
    stats.lines_matched = len(hits)
    log.info("extract lines: %d", stats.lines_matched)

    spans = merge_lines(hits)
    stats.spans_merged = len(spans)
    log.info("spans after merge: %d", stats.spans_merged)

    found: list[tuple[FunctionDefinition, list[str]]] = []
    for span in spans:
        found.extend(find_definitions(span))
    stats.definitions = len(found)
    log.info("function definitions: %d", stats.definitions)

    trivials = find_trivials(
        (callees for _, callees in found),
        config.trivial_threshold,
        config.length_threshold,
    )
    stats.trivial_names = len(trivials)
    ignored = set(config.ignored) | trivials

    nodes = [
        make_caller_node(definition, callees, ignored)
        for definition, callees in found
        if definition.qualified_name not in ignored
    ]
    stats.definitions_kept = len(nodes)
    log.info(
        "kept %d of %d definitions (%d trivial names)",
        stats.definitions_kept, stats.definitions, stats.trivial_names,
    )
    return build_graph(nodes), stats
