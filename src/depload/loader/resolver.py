"""Expansion of dependency globs into an ordered list of file units."""

import glob
import logging
import os
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


def resolve_paths(globs: Iterable[str | Path]) -> list[Path]:
    """Expand glob patterns into a deduplicated, sorted list of files.

    Patterns support ``**`` for recursive matching. A pattern that matches
    nothing contributes nothing; directories are never returned.

    Args:
        globs: Ordered glob patterns (absolute, or relative to the cwd).

    Returns:
        Absolute file paths, unique and sorted lexicographically.
    """
    found: dict[str, Path] = {}

    for pattern in globs:
        for match in glob.glob(str(pattern), recursive=True):
            if not os.path.isfile(match):
                continue
            path = Path(os.path.abspath(match))
            found.setdefault(str(path), path)

    units = [found[key] for key in sorted(found)]
    logger.debug(f"Resolved {len(units)} units from dependency globs")
    return units
