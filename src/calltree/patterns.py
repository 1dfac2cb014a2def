"""
Matchers for C/C++ function definitions and call expressions.

Balanced delimiter groups cannot be written with the `re` module, so
`Balanced` counts nesting depth over a single left-to-right scan and the
composite matchers below stitch plain regexes and balanced scans together.
Everything here is a heuristic over sanitized text (see `sanitize`): no
preprocessor, no overload resolution.
"""

import re
from dataclasses import dataclass

NAME = r"\b[A-Za-z_]\w*\b"
SCOPE = "::"
QUALIFIED_NAME = rf"(?:{SCOPE})?(?:{NAME}{SCOPE})*{NAME}"

_WS = re.compile(r"\s*")


class Balanced:
    """Balanced(L, R): a span opening at L and closing at its matching R.

    Any run of other characters may sit between the delimiters and L/R pairs
    nest to any depth. A character in `stops` aborts the scan, which keeps
    heuristic groups (template argument lists) from running across
    statements.
    """

    def __init__(self, left: str, right: str, stops: str = "") -> None:
        self.left = left
        self.right = right
        self.stops = stops
        self._delims = re.compile("[" + re.escape(left + right + stops) + "]")

    def match(self, text: str, pos: int) -> int | None:
        """Return the index just past the R closing the L at `pos`, else None."""
        if pos >= len(text) or text[pos] != self.left:
            return None
        depth = 0
        for m in self._delims.finditer(text, pos):
            ch = m.group()
            if ch == self.left:
                depth += 1
            elif ch == self.right:
                depth -= 1
                if depth == 0:
                    return m.end()
            else:
                return None
        return None

    def search(self, text: str, pos: int = 0) -> tuple[int, int] | None:
        """Return (start, end) of the first balanced span at or after `pos`."""
        while True:
            start = text.find(self.left, pos)
            if start < 0:
                return None
            end = self.match(text, start)
            if end is not None:
                return start, end
            pos = start + 1

    def __repr__(self) -> str:
        return f"Balanced({self.left!r}, {self.right!r})"


NESTED_PARENS = Balanced("(", ")")
NESTED_BRACES = Balanced("{", "}")
NESTED_ANGLES = Balanced("<", ">", stops=";{}")

QUALIFIED_NAME_RE = re.compile(QUALIFIED_NAME)

# cv/ref/exception qualifiers allowed between ")" and the body
_TRAILING_QUALIFIERS = re.compile(
    r"(?:\s*(?:\b(?:const|volatile|override|final|noexcept)\b|&&|&))*"
)
_INITIALIZER_COLON = re.compile(r"\s*:(?!:)\s*")
_INITIALIZER_NAME = re.compile(rf"({QUALIFIED_NAME})\s*(?=\()")
_INITIALIZER_SEP = re.compile(r"\s*,\s*")

_DEFINITION_HEAD = re.compile(rf"(?P<name>{QUALIFIED_NAME})\s*\(")
_CALL_HEAD = re.compile(rf"(?P<name>{QUALIFIED_NAME})\s*(?=[(<])")


def match_initializer_list(text: str, pos: int) -> int | None:
    """Match a constructor initializer list `: id(args), id(args)` at `pos`."""
    m = _INITIALIZER_COLON.match(text, pos)
    if m is None:
        return None
    cur = m.end()
    while True:
        init = _INITIALIZER_NAME.match(text, cur)
        if init is None:
            return None
        end = NESTED_PARENS.match(text, init.end())
        if end is None:
            return None
        sep = _INITIALIZER_SEP.match(text, end)
        if sep is None:
            return end
        cur = sep.end()


@dataclass(frozen=True)
class DefinitionMatch:
    start: int          # start of the line holding the name (or end of the previous match)
    end: int            # just past the closing brace of the body
    name: str
    name_start: int
    name_end: int
    body_start: int

    def span(self) -> tuple[int, int]:
        return self.start, self.end


class DefinitionMatcher:
    """Function signature + body: `<qualifiers> name (params) [: inits] {body}`.

    Whatever precedes the name on its line is taken as leading qualifiers
    (return type, storage class, template header). A trailing brace group
    is required, so bare declarations never match.
    """

    def match_at(self, text: str, head: re.Match, floor: int = 0) -> DefinitionMatch | None:
        params_end = NESTED_PARENS.match(text, head.end() - 1)
        if params_end is None:
            return None
        cur = _TRAILING_QUALIFIERS.match(text, params_end).end()
        inits_end = match_initializer_list(text, cur)
        if inits_end is not None:
            cur = inits_end
        cur = _WS.match(text, cur).end()
        body_end = NESTED_BRACES.match(text, cur)
        if body_end is None:
            return None
        line_start = text.rfind("\n", 0, head.start()) + 1
        return DefinitionMatch(
            start=max(line_start, floor),
            end=body_end,
            name=head.group("name"),
            name_start=head.start("name"),
            name_end=head.end("name"),
            body_start=cur,
        )

    def finditer(self, text: str):
        """Yield non-overlapping definitions, leftmost first."""
        pos = 0
        while True:
            head = _DEFINITION_HEAD.search(text, pos)
            if head is None:
                return
            found = self.match_at(text, head, floor=pos)
            if found is None:
                pos = head.end()
                continue
            yield found
            pos = found.end

    def search(self, text: str) -> DefinitionMatch | None:
        return next(self.finditer(text), None)


FUNCTION_DEFINITION = DefinitionMatcher()


def extract_calls(text: str) -> list[str]:
    """Return every called name in `text`, in order, duplicates kept.

    A call is a (qualified) name followed by `(`, optionally with a template
    argument list in between. The argument list of each call is scanned
    recursively, so `f(g(h(x)))` yields f, g and h.
    """
    names: list[str] = []
    pos = 0
    while True:
        m = _CALL_HEAD.search(text, pos)
        if m is None:
            return names
        open_at = m.end()
        if text[open_at] == "<":
            angles_end = NESTED_ANGLES.match(text, open_at)
            if angles_end is None:
                pos = open_at
                continue
            open_at = _WS.match(text, angles_end).end()
            if open_at >= len(text) or text[open_at] != "(":
                pos = m.end()
                continue
        names.append(m.group("name"))
        close_at = NESTED_PARENS.match(text, open_at)
        if close_at is None:
            pos = open_at + 1
            continue
        names.extend(extract_calls(text[open_at + 1:close_at - 1]))
        pos = close_at
