from pathlib import Path

import pytest

from calltree.graph import build_graph
from calltree.models import CallerNode, CalltreeConfig, simple_name


def caller(name: str, *callees: str, file_info: str | None = None) -> CallerNode:
    return CallerNode(
        name=name,
        simple_name=simple_name(name),
        file_info=file_info or f"{name}.cc:1",
        callee_names=list(callees),
    )


@pytest.fixture
def make_graph():
    """Build a CallGraph from {caller: [callee, ...]}."""
    def _make(edges: dict[str, list[str]]):
        return build_graph([caller(name, *callees) for name, callees in edges.items()])
    return _make


@pytest.fixture
def write_corpus(tmp_path: Path):
    """Write {relative_path: text} under tmp_path and return the root."""
    def _write(files: dict[str, str]) -> Path:
        for rel, text in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return tmp_path
    return _write


@pytest.fixture
def config(tmp_path: Path) -> CalltreeConfig:
    return CalltreeConfig(project_root=str(tmp_path), workers=2)


CHAIN_CORPUS = {
    "src/app.cc": (
        "int main() {\n"
        "  foo();\n"
        "  return 0;\n"
        "}\n"
        "\n"
        "void foo() {\n"
        "  bar();\n"
        "}\n"
        "\n"
        "void bar() {\n"
        "  baz();\n"
        "}\n"
    ),
}


@pytest.fixture
def chain_root(write_corpus) -> Path:
    """main -> foo -> bar -> baz, with baz never defined."""
    return write_corpus(CHAIN_CORPUS)
