"""Core data structures for calltree."""

import re
from dataclasses import dataclass, field

_SIMPLE_NAME_RE = re.compile(r"(\b\w+\b)$")

DEFAULT_EXTENSION_PATTERN = r"\.(c|cc|cpp|C|h|hh|hpp|H)$"

DEFAULT_IGNORE_GLOBS = [
    "*test*", "*benchmark*", "*CMakeFiles*",
    "*contrib/", "*thirdparty/", "*3rdparty/",
]

DEFAULT_IGNORED = [
    "for", "if", "while", "switch", "catch",
    "log", "warn", "trace", "debug", "defined", "error", "fatal",
    "static_cast", "reinterpret_cast", "const_cast", "dynamic_cast",
    "return", "assert", "sizeof", "alignas",
    "constexpr",
    "set", "get",
]


def simple_name(name: str) -> str:
    """Trailing identifier segment: "ns::Foo::bar" -> "bar"."""
    m = _SIMPLE_NAME_RE.search(name)
    return m.group(1) if m else name


@dataclass(frozen=True)
class GrepHit:
    path: str                   # relative to project root
    line: int                   # 1-based
    content: str                # line text without the trailing newline


@dataclass(frozen=True)
class FunctionDefinition:
    qualified_name: str         # "ns::Foo::bar" or "bar"
    simple_name: str            # "bar"
    path: str
    line: int                   # line of the qualified name
    body_text: str              # signature + body, as matched

    @property
    def file_info(self) -> str:
        return f"{self.path}:{self.line}"


@dataclass
class CallerNode:
    name: str                   # qualified name of the defining function
    simple_name: str
    file_info: str              # "path:line"
    callee_names: list[str] = field(default_factory=list)
    callee_simple_names: list[str] = field(default_factory=list)


@dataclass
class TreeNode:
    name: str
    file_info: str = ""
    children: list["TreeNode"] = field(default_factory=list)
    leaf: str | None = None     # None | "outmost" | "deep" | "recursive"


@dataclass
class ExtractStats:
    lines_matched: int = 0
    spans_merged: int = 0
    definitions: int = 0        # definitions found inside merged spans
    definitions_kept: int = 0   # after dropping ignored names
    trivial_names: int = 0


@dataclass
class CalltreeConfig:
    project_root: str
    extension_pattern: str = DEFAULT_EXTENSION_PATTERN
    ignore_globs: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_GLOBS))
    ignored: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORED))
    trivial_threshold: int = 50
    length_threshold: int = 3
    workers: int = 10
    cache_dir: str | None = None    # defaults to project_root
