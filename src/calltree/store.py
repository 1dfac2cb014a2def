"""Graph cache: persists a built call graph next to the sources it came from.

Three files per (trivial threshold, length threshold) pair:

    .calltree_ignored.<t>.<l>   plain-text signature of the extraction settings
    .calltree_calling.<t>.<l>   DuckDB database holding definitions_of
    .calltree_called.<t>.<l>    DuckDB database holding callers_of

A signature mismatch means "rebuild". A graph file that exists but cannot
be read is corruption and raises CacheCorruptError.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import duckdb

from .errors import CacheCorruptError
from .graph import CallGraph, CallIndex
from .models import CallerNode, CalltreeConfig

log = logging.getLogger(__name__)

_DDL = """
CREATE TABLE nodes (
    id                  INTEGER PRIMARY KEY,
    name                VARCHAR NOT NULL,
    simple_name         VARCHAR NOT NULL,
    file_info           VARCHAR NOT NULL,
    callee_names        VARCHAR NOT NULL,   -- JSON list
    callee_simple_names VARCHAR NOT NULL    -- JSON list
);

CREATE TABLE entries (
    name_key    VARCHAR NOT NULL,
    seq         INTEGER NOT NULL,
    node_id     INTEGER NOT NULL,
    PRIMARY KEY (name_key, seq)
);

CREATE TABLE aliases (
    alias_name  VARCHAR NOT NULL,
    seq         INTEGER NOT NULL,
    name_key    VARCHAR NOT NULL,
    PRIMARY KEY (alias_name, seq)
);
"""


@dataclass(frozen=True)
class CacheKey:
    ignored: frozenset[str]
    trivial_threshold: int
    length_threshold: int

    @classmethod
    def from_config(cls, config: CalltreeConfig) -> "CacheKey":
        return cls(
            ignored=frozenset(config.ignored),
            trivial_threshold=int(config.trivial_threshold),
            length_threshold=int(config.length_threshold),
        )

    @property
    def signature(self) -> str:
        return ",".join(sorted(self.ignored)) + f"|{self.trivial_threshold}|{self.length_threshold}"

    @property
    def suffix(self) -> str:
        return f".{self.trivial_threshold}.{self.length_threshold}"


def write_index(path: Path, index: CallIndex) -> None:
    """Write `index` to a fresh DuckDB file at `path`."""
    for stale in (path, path.with_name(path.name + ".wal")):
        if stale.exists():
            stale.unlink()

    node_ids: dict[int, int] = {}
    node_rows = []
    entry_rows = []
    for key, nodes in index.entries().items():
        for position, node in enumerate(nodes):
            if id(node) not in node_ids:
                node_ids[id(node)] = len(node_rows)
                node_rows.append((
                    len(node_rows), node.name, node.simple_name, node.file_info,
                    json.dumps(node.callee_names), json.dumps(node.callee_simple_names),
                ))
            entry_rows.append((key, position, node_ids[id(node)]))
    alias_rows = [
        (alias, position, key)
        for alias, keys in index.aliases().items()
        for position, key in enumerate(keys)
    ]

    con = duckdb.connect(str(path))
    try:
        for stmt in _DDL.strip().split(";"):
            stmt = stmt.strip()
            if stmt:
                con.execute(stmt)
        if node_rows:
            con.executemany("INSERT INTO nodes VALUES (?, ?, ?, ?, ?, ?)", node_rows)
        if entry_rows:
            con.executemany("INSERT INTO entries VALUES (?, ?, ?)", entry_rows)
        if alias_rows:
            con.executemany("INSERT INTO aliases VALUES (?, ?, ?)", alias_rows)
    finally:
        con.close()


def read_index(path: Path) -> CallIndex:
    """Load a CallIndex written by write_index. Raises CacheCorruptError."""
    try:
        con = duckdb.connect(str(path), read_only=True)
    except duckdb.Error as e:
        raise CacheCorruptError(f"Fail to parse '{path}': {e}") from e
    try:
        nodes: dict[int, CallerNode] = {}
        for row in con.execute(
            "SELECT id, name, simple_name, file_info, callee_names, callee_simple_names "
            "FROM nodes ORDER BY id"
        ).fetchall():
            nodes[row[0]] = CallerNode(
                name=row[1],
                simple_name=row[2],
                file_info=row[3],
                callee_names=json.loads(row[4]),
                callee_simple_names=json.loads(row[5]),
            )

        entries: dict[str, list[CallerNode]] = {}
        for key, node_id in con.execute(
            "SELECT name_key, node_id FROM entries ORDER BY name_key, seq"
        ).fetchall():
            entries.setdefault(key, []).append(nodes[node_id])

        aliases: dict[str, list[str]] = {}
        for alias, key in con.execute(
            "SELECT alias_name, name_key FROM aliases ORDER BY alias_name, seq"
        ).fetchall():
            if key not in entries:
                raise CacheCorruptError(f"Fail to parse '{path}': alias {alias!r} -> unknown key {key!r}")
            aliases.setdefault(alias, []).append(key)
    except (duckdb.Error, ValueError, KeyError) as e:
        raise CacheCorruptError(f"Fail to parse '{path}': {e}") from e
    finally:
        con.close()
    return CallIndex.from_parts(entries, aliases)


class GraphCache:
    def __init__(self, cache_dir: str | Path, key: CacheKey) -> None:
        self.key = key
        cache_dir = Path(cache_dir)
        self.signature_path = cache_dir / f".calltree_ignored{key.suffix}"
        self.calling_path = cache_dir / f".calltree_calling{key.suffix}"
        self.called_path = cache_dir / f".calltree_called{key.suffix}"

    def load(self) -> CallGraph | None:
        """Return the cached graph, or None when absent or built with other settings."""
        if not self.signature_path.is_file():
            log.info("No cached graph at %s", self.signature_path)
            return None
        saved = self.signature_path.read_text(encoding="utf-8")
        if saved != self.key.signature:
            log.info("Cached graph signature changed, rebuilding")
            return None
        if not (self.calling_path.is_file() and self.called_path.is_file()):
            log.info("Cached graph incomplete, rebuilding")
            return None

        graph = CallGraph(
            definitions_of=read_index(self.calling_path),
            callers_of=read_index(self.called_path),
        )
        self.touch()
        log.info("Loaded cached graph from %s", self.called_path)
        return graph

    def save(self, graph: CallGraph) -> None:
        # signature last: an interrupted save leaves no valid-looking cache
        if self.signature_path.exists():
            self.signature_path.unlink()
        write_index(self.calling_path, graph.definitions_of)
        write_index(self.called_path, graph.callers_of)
        self.signature_path.write_text(self.key.signature, encoding="utf-8")
        log.info("Saved graph to %s", self.called_path)

    def touch(self) -> None:
        for path in (self.signature_path, self.calling_path, self.called_path):
            os.utime(path)
