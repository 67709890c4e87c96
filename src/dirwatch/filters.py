"""Ready-made path filters for WatchConfig.filter."""

import fnmatch
import re
from pathlib import Path
from typing import Iterable

from pathspec import PathSpec

from .config import PathFilter


DEFAULT_IGNORE_PATTERNS = [
    "*.tmp",
    "*.swp",
    "*.swo",
    "*~",
    ".git/*",
    ".git",
    "__pycache__/*",
    "__pycache__",
    "*.pyc",
    ".DS_Store",
    "Thumbs.db",
]


def _matches_pattern(path: Path, pattern: str) -> bool:
    path_str = path.as_posix()
    if fnmatch.fnmatch(path.name, pattern):
        return True
    if fnmatch.fnmatch(path_str, f"*/{pattern}"):
        return True
    return fnmatch.fnmatch(path_str, pattern)


def include_glob(*patterns: str) -> PathFilter:
    """
    Accept paths matching any of the given glob patterns.
    
    ``*`` and ``?`` stay within one path segment and ``**`` spans
    segments. A pattern without a slash matches the file name in any
    folder; a pattern with a slash is matched against the whole path, so
    ``/data/in/*.xml`` accepts ``/data/in/a.xml`` but not ``/data/in/old/a.xml``.
    """
    spec = PathSpec.from_lines("gitwildmatch", patterns)

    def accept(path: Path) -> bool:
        return spec.match_file(path.as_posix())
    return accept


def include_regex(*patterns: str) -> PathFilter:
    """Accept paths whose full string form matches any of the given regular expressions."""
    compiled = [re.compile(pattern) for pattern in patterns]

    def accept(path: Path) -> bool:
        path_str = str(path)
        return any(regex.fullmatch(path_str) for regex in compiled)
    return accept


def ignore_patterns(patterns: Iterable[str] = DEFAULT_IGNORE_PATTERNS) -> PathFilter:
    """
    Reject paths matching any of the given glob patterns.
    
    Args:
        patterns: Glob patterns for paths to ignore; defaults to editor
            swap files, VCS and bytecode directories and OS metadata files
    """
    patterns = list(patterns)

    def accept(path: Path) -> bool:
        return not any(_matches_pattern(path, pattern) for pattern in patterns)
    return accept


def exclude_files(path: Path) -> bool:
    """Reject regular files (directories and vanished paths pass)."""
    return not path.is_file()


def exclude_directories(path: Path) -> bool:
    """Reject directories (files and vanished paths pass)."""
    return not path.is_dir()


def any_of(*filters: PathFilter) -> PathFilter:
    def accept(path: Path) -> bool:
        return any(f(path) for f in filters)
    return accept


def all_of(*filters: PathFilter) -> PathFilter:
    def accept(path: Path) -> bool:
        return all(f(path) for f in filters)
    return accept
