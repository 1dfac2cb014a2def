"""Render a TreeNode tree as box-drawing text, in the style of the `tree` utility."""

from .models import TreeNode


def node_label(node: TreeNode, verbose: bool = False, annotate: bool = False) -> str:
    label = node.name
    if annotate and node.leaf:
        label += f" ({node.leaf})"
    if verbose and node.file_info:
        label += f"\t[{node.file_info}]"
    return label


def format_tree(root: TreeNode, verbose: bool = False, annotate: bool = False) -> list[str]:
    """Lines of `root` and its descendants, depth first, pre-order."""
    lines: list[str] = []
    # (node, prefix of its own line, prefix of its children's lines)
    stack = [(root, "", "")]
    while stack:
        node, lead, indent = stack.pop()
        lines.append(lead + node_label(node, verbose, annotate))
        last = len(node.children) - 1
        for i in range(last, -1, -1):
            if i == last:
                stack.append((node.children[i], indent + "└── ", indent + "    "))
            else:
                stack.append((node.children[i], indent + "├── ", indent + "│   "))
    return lines


def render(root: TreeNode, verbose: bool = False, annotate: bool = False) -> str:
    return "".join(f"{line}\n" for line in format_tree(root, verbose, annotate))
