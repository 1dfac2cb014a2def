"""
Main pipeline: crash recovery, cache lookup, then sanitize and extract on a miss.
"""

import logging

from .extract import extract_call_graph
from .graph import CallGraph
from .models import CalltreeConfig
from .sanitize import restore_saved_files, sanitized_sources
from .search import SearchTool
from .store import CacheKey, GraphCache

log = logging.getLogger(__name__)


def build_call_graph(config: CalltreeConfig, search: SearchTool) -> CallGraph:
    """Sanitize the whole tree, extract the graph, and put the sources back."""
    files = search.list_files(config.extension_pattern, config.ignore_globs)
    with sanitized_sources(config.project_root, files, workers=config.workers):
        log.info("extract_all_funcs: begin")
        graph, stats = extract_call_graph(search, config)
        log.info("extract_all_funcs: end")
    log.debug("Extraction stats: %s", stats)
    return graph


def load_call_graph(config: CalltreeConfig, search: SearchTool, force: bool = False) -> CallGraph:
    """
    Return the call graph for config.project_root, from cache when the
    extraction settings are unchanged, otherwise by a full rebuild.
    """
    restored = restore_saved_files(config.project_root)
    if restored:
        log.warning("Restored %d files left sanitized by an interrupted run", restored)

    cache = GraphCache(config.cache_dir or config.project_root, CacheKey.from_config(config))
    if not force:
        graph = cache.load()
        if graph is not None:
            return graph

    log.info("Full extraction of %s", config.project_root)
    graph = build_call_graph(config, search)
    cache.save(graph)
    return graph
