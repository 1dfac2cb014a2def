"""CLI entry point for calltree.

    calltree <name|regex> [filter] [direction] [verbose] [depth]

- name: an exact function name anchors the tree; anything else is a regex
  and every matching name gets its own subtree.
- filter: regex; subtrees whose leaves do not match are pruned (default: all).
- direction: 1 (default) shows who calls the function; any other value
  shows what it calls.
- verbose: 0 (default) hides file locations; any other value shows them.
- depth: maximum tree depth.

Examples:

    # every function, one level deep
    calltree '\\w+' '' 1 1 1

    # who ends up calling fdatasync, three levels up
    calltree fdatasync '' 1 1 3
"""

import argparse
import logging
import sys
from pathlib import Path

from .errors import CalltreeError, SearchToolMissing
from .indexer import load_call_graph
from .models import DEFAULT_IGNORE_GLOBS, DEFAULT_IGNORED, CalltreeConfig
from .query import DEFAULT_DEPTH, Direction, build_tree
from .render import format_tree
from .search import make_search

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="calltree",
        description="Show the call hierarchy of a C/C++ project as a tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:" + __doc__.split("Examples:", 1)[1],
    )
    parser.add_argument("name", help="Function name (exact) or regex (fuzzy)")
    parser.add_argument("filter", nargs="?", default="", help="Regex leaves must match (default: all)")
    parser.add_argument("direction", nargs="?", type=int, default=1,
                        help="1: who calls it (default); otherwise: what it calls")
    parser.add_argument("verbose", nargs="?", type=int, default=0,
                        help="0: no file locations (default); otherwise show them")
    parser.add_argument("depth", nargs="?", type=int, default=DEFAULT_DEPTH, help="Maximum tree depth")

    parser.add_argument("--path", default=".", help="Project root (default: .)")
    parser.add_argument("--search", choices=["rg", "builtin"], default="rg",
                        help="File search backend (default: rg)")
    parser.add_argument("--trivial-threshold", type=int, default=50,
                        help="Ignore names called more often than this (default: 50)")
    parser.add_argument("--length-threshold", type=int, default=3,
                        help="Ignore names shorter than this (default: 3)")
    parser.add_argument("--workers", type=int, default=10,
                        help="Sanitizer worker processes (default: 10)")
    parser.add_argument("--ignore", action="append", default=[], metavar="NAME",
                        help="Extra function name to ignore (repeatable)")
    parser.add_argument("--exclude", action="append", default=[], metavar="GLOB",
                        help="Extra path glob to skip (repeatable)")
    parser.add_argument("--cache-dir", help="Where cache files live (default: project root)")
    parser.add_argument("--force", action="store_true", help="Rebuild the graph even if cached")
    parser.add_argument("--annotate", action="store_true", help="Mark leaves as outmost/deep/recursive")
    parser.add_argument("--progress", action="store_true", help="Log progress to stderr")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    return parser


def cmd_tree(args: argparse.Namespace) -> int:
    root = str(Path(args.path).resolve())
    config = CalltreeConfig(
        project_root=root,
        ignore_globs=DEFAULT_IGNORE_GLOBS + args.exclude,
        ignored=DEFAULT_IGNORED + args.ignore,
        trivial_threshold=args.trivial_threshold,
        length_threshold=args.length_threshold,
        workers=args.workers,
        cache_dir=args.cache_dir,
    )

    try:
        search = make_search(args.search, root)
        graph = load_call_graph(config, search, force=args.force)
        tree = build_tree(
            graph,
            args.name,
            args.filter,
            depth=args.depth,
            direction=Direction.from_flag(args.direction),
        )
    except SearchToolMissing as e:
        print(e, file=sys.stderr)
        return 1
    except (CalltreeError, OSError) as e:
        log.error("%s", e)
        return 1

    for line in format_tree(tree, verbose=args.verbose != 0, annotate=args.annotate):
        print(line)
    return 0


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    args = build_parser().parse_args(argv)

    if args.debug:
        logging.getLogger("calltree").setLevel(logging.DEBUG)
    elif args.progress:
        logging.getLogger("calltree").setLevel(logging.INFO)

    sys.exit(cmd_tree(args))


if __name__ == "__main__":
    main()
