"""File search: list source files under a project root and grep them line by line."""

import bisect
import logging
import re
import shutil
import subprocess
from pathlib import Path

import pathspec

from .errors import CalltreeError, SearchToolMissing
from .models import GrepHit

log = logging.getLogger(__name__)


def _line_starts(text: str) -> list[int]:
    starts = [0]
    pos = text.find("\n")
    while pos >= 0:
        starts.append(pos + 1)
        pos = text.find("\n", pos + 1)
    return starts


def grep_text(path: str, text: str, matcher) -> list[GrepHit]:
    """Report each line covered by a match of `matcher` in `text`, once, in order."""
    starts = _line_starts(text)
    covered: set[int] = set()
    for m in matcher.finditer(text):
        start, end = m.span()
        first = bisect.bisect_right(starts, start) - 1
        last = bisect.bisect_right(starts, max(start, end - 1)) - 1
        covered.update(range(first, last + 1))
    if not covered:
        return []
    lines = text.split("\n")
    return [GrepHit(path, i + 1, lines[i].rstrip("\r")) for i in sorted(covered)]


class SearchTool:
    """
    Line-oriented search over the files of one project.

    `calls` counts list_files/grep invocations, which is how callers tell a
    cached run from one that rescanned the tree.
    """

    name = "search"

    def __init__(self, root: str) -> None:
        self.root = Path(root).resolve()
        self.calls = 0

    def _list_files(self, extension_re: re.Pattern, ignore_globs: list[str]) -> list[str]:
        raise NotImplementedError

    def list_files(self, extension_pattern: str, ignore_globs: list[str]) -> list[str]:
        """Relative paths of files matching `extension_pattern`, minus ignored ones."""
        self.calls += 1
        files = self._list_files(re.compile(extension_pattern), ignore_globs)
        log.info("%s: %d files under %s", self.name, len(files), self.root)
        return files

    def grep(self, pattern, extension_pattern: str, ignore_globs: list[str]) -> list[GrepHit]:
        """
        Return (path, line, content) for every line covered by a match.

        `pattern` is a regex string (compiled MULTILINE), a compiled pattern,
        or any matcher whose finditer() yields objects with span().
        """
        self.calls += 1
        matcher = re.compile(pattern, re.MULTILINE) if isinstance(pattern, str) else pattern
        hits: list[GrepHit] = []
        for rel in self._list_files(re.compile(extension_pattern), ignore_globs):
            text = (self.root / rel).read_text(encoding="utf-8", errors="surrogateescape")
            hits.extend(grep_text(rel, text, matcher))
        return hits


class BuiltinSearch(SearchTool):
    """Walks the tree in-process; ignore globs use gitwildmatch semantics."""

    name = "builtin"

    def _list_files(self, extension_re: re.Pattern, ignore_globs: list[str]) -> list[str]:
        spec = pathspec.PathSpec.from_lines("gitwildmatch", ignore_globs)
        results: list[str] = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file():
                continue
            rel_str = path.relative_to(self.root).as_posix()
            if spec.match_file(rel_str):
                continue
            if not extension_re.search(rel_str):
                continue
            results.append(rel_str)
        return results


class RipgrepSearch(SearchTool):
    """Lists files with `rg --files`, which also honours .gitignore."""

    name = "rg"

    def __init__(self, root: str) -> None:
        ensure_installed("rg")
        super().__init__(root)

    def _list_files(self, extension_re: re.Pattern, ignore_globs: list[str]) -> list[str]:
        cmd = ["rg", "--files"]
        for glob in ignore_globs:
            cmd.extend(["-g", f"!{glob}"])
        result = subprocess.run(cmd, cwd=self.root, capture_output=True, text=True)
        # rc 1 means "no files", anything else is a real failure
        if result.returncode not in (0, 1):
            raise CalltreeError(f"rg --files failed (rc={result.returncode}): {result.stderr.strip()}")
        return sorted(
            line for line in result.stdout.splitlines()
            if line and extension_re.search(line)
        )


def ensure_installed(tool: str) -> str:
    path = shutil.which(tool)
    if path is None:
        raise SearchToolMissing(
            f"{tool} is missing, please install ripgrep first, "
            "refer to https://github.com/BurntSushi/ripgrep"
        )
    return path


_SEARCH_TOOLS = {
    "builtin": BuiltinSearch,
    "rg": RipgrepSearch,
}


def make_search(kind: str, root: str) -> SearchTool:
    try:
        cls = _SEARCH_TOOLS[kind]
    except KeyError:
        raise CalltreeError(f"Unknown search tool: {kind}") from None
    return cls(root)
