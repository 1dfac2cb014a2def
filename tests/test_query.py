import pytest

from calltree.errors import InvalidPatternError
from calltree.query import Direction, build_tree
from calltree.render import render


def leaves(node):
    if not node.children:
        return [node]
    return [leaf for child in node.children for leaf in leaves(child)]


def depth_of(node):
    return 1 + max((depth_of(c) for c in node.children), default=0)


@pytest.fixture
def chain(make_graph):
    # main -> foo -> bar -> baz
    return make_graph({"main": ["foo"], "foo": ["bar"], "bar": ["baz"]})


def test_who_calls(chain):
    tree = build_tree(chain, "bar")
    assert render(tree) == "bar\n└── foo\n    └── main\n"
    assert tree.children[0].children[0].leaf == "outmost"


def test_what_it_calls(chain):
    tree = build_tree(chain, "main", direction=Direction.CALLING)
    assert render(tree) == "main\n└── foo\n    └── bar\n        └── baz\n"


def test_recursion_stops_at_first_repeat(make_graph):
    graph = make_graph({"a": ["b"], "b": ["c"], "c": ["a"]})
    tree = build_tree(graph, "a", direction=Direction.CALLING)
    assert render(tree) == "a\n└── b\n    └── c\n        └── a\n"
    assert leaves(tree)[0].leaf == "recursive"


def test_depth_limit(make_graph):
    edges = {f"fn{i:02d}": [f"fn{i + 1:02d}"] for i in range(19)}
    graph = make_graph(edges)
    tree = build_tree(graph, "fn00", depth=5, direction=Direction.CALLING)
    (leaf,) = leaves(tree)
    assert leaf.name == "fn04"
    assert leaf.leaf == "deep"
    assert depth_of(tree) == 5


def test_who_calls_stops_at_cycle(make_graph):
    graph = make_graph({"a": ["b"], "b": ["c"], "c": ["a"]})
    tree = build_tree(graph, "a", depth=10)
    assert render(tree) == "a\n└── c\n    └── b\n        └── a\n"
    assert leaves(tree)[0].leaf == "recursive"


def test_who_calls_depth_limit(make_graph):
    edges = {f"fn{i + 1:02d}": [f"fn{i:02d}"] for i in range(19)}
    graph = make_graph(edges)
    tree = build_tree(graph, "fn00", depth=5)
    (leaf,) = leaves(tree)
    assert leaf.name == "fn04"
    assert leaf.leaf == "deep"
    assert depth_of(tree) == 5


def test_long_caller_chain(make_graph):
    # deeper than the interpreter recursion limit
    graph = make_graph({f"fn{i + 1}": [f"fn{i}"] for i in range(1500)})
    tree = build_tree(graph, "fn0")

    names = []
    node = tree
    while node.children:
        (child,) = node.children
        names.append(node.name)
        node = child
    names.append(node.name)
    assert names == [f"fn{i}" for i in range(1501)]
    assert node.leaf == "outmost"

    lines = render(tree).splitlines()
    assert len(lines) == 1501
    assert lines[-1] == " " * 4 * 1499 + "└── fn1500"


def test_filter_prunes_to_matching_leaves(chain):
    assert render(build_tree(chain, "baz", "mai")) == "baz\n└── bar\n    └── foo\n        └── main\n"
    pruned = build_tree(chain, "baz", "xyz")
    assert pruned.name == "baz"
    assert pruned.children == []


def test_every_leaf_matches_filter(make_graph):
    graph = make_graph({
        "main": ["run", "init_a"],
        "run": ["step_x", "init_b"],
        "cli": ["run"],
    })
    tree = build_tree(graph, "main", "^init_", direction=Direction.CALLING)
    assert sorted(leaf.name for leaf in leaves(tree)) == ["init_a", "init_b"]


def test_fuzzy_root(make_graph):
    graph = make_graph({"main": ["read_a", "read_b", "write_c"]})
    tree = build_tree(graph, "^read_")
    assert tree.name == "^read_"
    assert [c.name for c in tree.children] == ["read_a", "read_b"]
    assert all(c.children[0].name == "main" for c in tree.children)


def test_fuzzy_root_without_matches(chain):
    tree = build_tree(chain, "^nothing")
    assert tree.name == "^nothing"
    assert tree.children == []


def test_qualified_callers_are_found_by_simple_name(make_graph):
    graph = make_graph({"ns::Loader::load": ["parse"], "main": ["ns::Loader::load"]})
    tree = build_tree(graph, "parse")
    assert render(tree) == "parse\n└── ns::Loader::load\n    └── main\n"


def test_invalid_patterns(chain):
    with pytest.raises(InvalidPatternError):
        build_tree(chain, "foo(")
    with pytest.raises(InvalidPatternError):
        build_tree(chain, "bar", "[")


def test_direction_from_flag():
    assert Direction.from_flag(1) is Direction.CALLED
    assert Direction.from_flag(0) is Direction.CALLING
    assert Direction.from_flag(7) is Direction.CALLING
