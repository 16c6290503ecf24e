"""
Helper utilities for the Detection Archive.

Common path functions used across domains.
"""

from pathlib import Path
from typing import List


def normalise_path(path: Path) -> Path:
    """Return a resolved version of ``path`` without forcing existence."""
    try:
        return path.expanduser().resolve()
    except FileNotFoundError:
        return path.expanduser().absolute()


def is_hidden(path: Path) -> bool:
    """Check if path is hidden (starts with dot)."""
    return path.name.startswith('.')


def should_exclude_path(path: Path, exclude_patterns: List[str] = None) -> bool:
    """
    Check if path should be excluded based on patterns.

    Args:
        path: Path to check
        exclude_patterns: List of glob patterns to exclude

    Returns:
        True if should exclude, False otherwise
    """
    if exclude_patterns is None:
        exclude_patterns = [
            '*.tmp',
            '*.part',
            '*.swp',
            '.DS_Store',
            '@eaDir',
        ]

    path_str = str(path)

    for pattern in exclude_patterns:
        if path.match(pattern) or pattern in path_str:
            return True

    return False
