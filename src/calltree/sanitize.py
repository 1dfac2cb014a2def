"""
In-place source sanitization with guaranteed restoration.

Each file is renamed to `<file>.saved_by_calltree` before anything touches
it, the sanitized text is written to `<file>.tmp.created_by_calltree` and
then moved over the working name. Restoration renames the backup back, so
the original bytes and mtime come back untouched. The suffixes are fixed so
a later run can recover from a crash (`restore_saved_files`).

Sanitization never changes the number of lines in a file: line numbers
reported by the search tool still point into the original source.
"""

import logging
import multiprocessing
import os
import re
import signal
import threading
from concurrent.futures import ProcessPoolExecutor
from contextlib import contextmanager
from pathlib import Path

log = logging.getLogger(__name__)

BACKUP_SUFFIX = ".saved_by_calltree"
TEMP_SUFFIX = ".tmp.created_by_calltree"

# Workers own disjoint file groups. 'spawn' keeps them from inheriting the
# parent's signal handlers and lock state.
_MP_CONTEXT = multiprocessing.get_context("spawn")

_TERMINATION_SIGNALS = [
    getattr(signal, name)
    for name in ("SIGINT", "SIGTERM", "SIGQUIT", "SIGABRT", "SIGHUP")
    if hasattr(signal, name)
]

# Alternation order is the precedence: a block comment, string or char
# literal that starts first wins, so "//" inside a string survives and a
# quote inside a comment is ignored.
_LITERALS_RE = re.compile(
    r"""
      (?P<block>/\*.*?\*/)
    | (?P<string>"(?:\\.|[^"\\\n])*")
    | (?P<char>'(?:\\[^\n][^'\n]{0,7}|[^'\\\n])')
    | (?P<line>//[^\n]*)
    """,
    re.DOTALL | re.VERBOSE,
)
_NESTED_CHAR_RE = re.compile(r"'[{}<>()]'")
_LEFT_ANGLES_RE = re.compile(r"<[<=]+")
_LESS_THAN_RE = re.compile(r"[ \t]+<[ \t]+")


def _blank_literal(m: re.Match) -> str:
    kind = m.lastgroup
    newlines = "\n" * m.group().count("\n")
    if kind == "block":
        return newlines or " "
    if kind == "string":
        return '""' + newlines
    if kind == "char":
        return "'x'"
    return ""


def blank_literals(text: str) -> str:
    """Blank block comments, string literals, char literals and line comments."""
    return _LITERALS_RE.sub(_blank_literal, text)


def defuse_angles(line: str) -> str:
    """Rewrite one line so `<` only survives where it may open a template list."""
    line = _NESTED_CHAR_RE.sub("'x'", line)
    line = _LEFT_ANGLES_RE.sub("++", line)
    return _LESS_THAN_RE.sub(" + ", line)


def sanitize_text(text: str) -> str:
    text = blank_literals(text)
    return "\n".join(defuse_angles(line) for line in text.split("\n"))


def backup_path(path: Path) -> Path:
    return path.with_name(path.name + BACKUP_SUFFIX)


def temp_path(path: Path) -> Path:
    return path.with_name(path.name + TEMP_SUFFIX)


def sanitize_file(path: Path) -> bool:
    """Back up and sanitize one file in place. Returns False when skipped."""
    path = Path(path)
    if not path.is_file():
        return False
    backup = backup_path(path)
    if backup.exists():
        log.warning("Backup already present, not sanitizing again: %s", path)
        return False
    data = path.read_bytes()
    if not data or b"\0" in data[:8192]:
        return False
    cleaned = sanitize_text(data.decode("utf-8", errors="surrogateescape"))

    os.rename(path, backup)
    tmp = temp_path(path)
    tmp.write_bytes(cleaned.encode("utf-8", errors="surrogateescape"))
    os.replace(tmp, path)
    return True


def restore_file(path: Path) -> bool:
    """Put the backup of `path` back. A missing backup is a no-op."""
    path = Path(path)
    backup = backup_path(path)
    tmp = temp_path(path)
    if tmp.exists():
        tmp.unlink()
    if not backup.exists():
        return False
    os.replace(backup, path)
    return True


def restore_saved_files(root: str | Path) -> int:
    """Restore every backup and drop every temp file left under `root`."""
    root = Path(root)
    for tmp in root.rglob("*" + TEMP_SUFFIX):
        tmp.unlink()
    restored = 0
    for backup in root.rglob("*" + BACKUP_SUFFIX):
        original = backup.with_name(backup.name[: -len(BACKUP_SUFFIX)])
        os.replace(backup, original)
        restored += 1
    if restored:
        log.info("Restored %d sanitized files under %s", restored, root)
    return restored


def group_files(files: list[str], num_groups: int) -> list[list[str]]:
    """Deal files round-robin into at most `num_groups` non-empty groups."""
    if num_groups < 1:
        raise ValueError(f"Illegal num_groups({num_groups})")
    if not files:
        return []
    num_groups = min(num_groups, len(files))
    groups: list[list[str]] = [[] for _ in range(num_groups)]
    for i, f in enumerate(files):
        groups[i % num_groups].append(f)
    return groups


def _ignore_termination_signals() -> None:
    # The parent owns shutdown: it waits for the workers, then restores.
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, signal.SIG_IGN)


def _sanitize_group(root: str, files: list[str]) -> int:
    count = 0
    for rel in files:
        if sanitize_file(Path(root) / rel):
            count += 1
    return count


def sanitize_files(root: str, files: list[str], workers: int = 10) -> int:
    """Sanitize `files` (relative to `root`) with one process per file group."""
    groups = group_files(files, workers)
    if not groups:
        return 0
    with ProcessPoolExecutor(
        max_workers=len(groups),
        mp_context=_MP_CONTEXT,
        initializer=_ignore_termination_signals,
    ) as executor:
        futures = [executor.submit(_sanitize_group, str(root), group) for group in groups]
        count = sum(f.result() for f in futures)
    log.info("Sanitized %d of %d files in %d groups", count, len(files), len(groups))
    return count


def _abnormal_shutdown(signum, frame) -> None:
    for sig in _TERMINATION_SIGNALS:
        signal.signal(sig, signal.SIG_IGN)
    log.warning("Abnormal exit caused by %s", signal.Signals(signum).name)
    # Unwinds through sanitized_sources(), which restores before exiting.
    raise SystemExit(0)


def _install_shutdown_handlers() -> dict:
    if threading.current_thread() is not threading.main_thread():
        return {}
    previous = {}
    for sig in _TERMINATION_SIGNALS:
        previous[sig] = signal.signal(sig, _abnormal_shutdown)
    return previous


def _uninstall_shutdown_handlers(previous: dict) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler if handler is not None else signal.SIG_DFL)


@contextmanager
def sanitized_sources(root: str, files: list[str], workers: int = 10):
    """Keep `files` sanitized on disk for the duration of the block.

    Originals are restored on every way out: normal exit, exceptions and
    termination signals (which end the process with status 0 afterwards).
    """
    previous = _install_shutdown_handlers()
    try:
        yield sanitize_files(root, files, workers)
    finally:
        for sig in previous:
            signal.signal(sig, signal.SIG_IGN)
        try:
            restore_saved_files(root)
        finally:
            _uninstall_shutdown_handlers(previous)
