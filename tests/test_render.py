from calltree.models import TreeNode
from calltree.render import format_tree, node_label, render


def test_box_drawing():
    root = TreeNode("root", children=[
        TreeNode("a", children=[TreeNode("a1"), TreeNode("a2")]),
        TreeNode("b", children=[TreeNode("b1")]),
    ])
    assert format_tree(root) == [
        "root",
        "├── a",
        "│   ├── a1",
        "│   └── a2",
        "└── b",
        "    └── b1",
    ]


def test_single_node():
    assert render(TreeNode("alone")) == "alone\n"


def test_verbose_shows_file_info():
    root = TreeNode("bar", "src/app.cc:10", children=[TreeNode("foo", "src/app.cc:6")])
    assert format_tree(root, verbose=True) == [
        "bar\t[src/app.cc:10]",
        "└── foo\t[src/app.cc:6]",
    ]
    assert node_label(TreeNode("baz"), verbose=True) == "baz"


def test_annotate_marks_leaves():
    node = TreeNode("main", "a.cc:1", leaf="outmost")
    assert node_label(node) == "main"
    assert node_label(node, annotate=True) == "main (outmost)"
    assert node_label(node, verbose=True, annotate=True) == "main (outmost)\t[a.cc:1]"
