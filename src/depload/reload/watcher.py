"""Change tracking for reload.

Tracks the dependency units that were loaded and reports, per unit:
- New files matching the dependency globs
- Modified files (content hash changed)
- Unchanged files
- Removed files

Detection never commits state by itself. A unit's recorded state only
moves forward once it has been reloaded successfully, so a unit whose
reload failed is reported again on the next pass.
"""

import asyncio
import contextlib
import hashlib
import importlib.util
import inspect
import logging
import sys
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from depload.loader.resolver import resolve_paths

logger = logging.getLogger(__name__)


class ChangeStatus(Enum):
    """Status of a unit relative to the last recorded state."""

    NEW = "new"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    REMOVED = "removed"


@dataclass
class FileChange:
    """Represents the detected status of one unit."""

    path: Path
    status: ChangeStatus
    digest: str | None = None  # current content hash, None when removed
    detected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def actionable(self) -> bool:
        return self.status is not ChangeStatus.UNCHANGED


class ChangeTracker:
    """Watches the dependency units of a loaded project.

    Uses modification times and file hashes for accurate detection, and
    remembers which module names each unit defined so they can be torn
    down before the unit is executed again.
    """

    def __init__(self, ignore_patterns: list[str] | None = None):
        self.ignore_patterns = ignore_patterns or [
            "__pycache__",
            ".git",
            ".venv",
            ".egg-info",
        ]

        # State tracking
        self.globs: list[str] = []
        self._file_states: dict[Path, tuple[float, str]] = {}  # path -> (mtime, hash)
        self._definitions: dict[Path, list[str]] = {}  # path -> module names
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def _should_ignore(self, path: Path) -> bool:
        """Check if path should be ignored."""
        path_str = str(path)
        return any(pattern in path_str for pattern in self.ignore_patterns)

    def _compute_hash(self, path: Path) -> str:
        """Compute SHA256 hash of file content."""
        content = path.read_bytes()
        return hashlib.sha256(content).hexdigest()

    def _stat(self, path: Path) -> tuple[float, str]:
        return path.stat().st_mtime, self._compute_hash(path)

    def _scan_files(self) -> dict[Path, tuple[float, str]]:
        """Scan every unit matching the tracked globs."""
        files: dict[Path, tuple[float, str]] = {}

        for path in resolve_paths(self.globs):
            if self._should_ignore(path):
                continue

            try:
                files[path] = self._stat(path)
            except OSError as e:
                logger.debug(f"Error scanning {path}: {e}")

        return files

    def lock(
        self,
        globs: Iterable[str],
        definitions: Mapping[Path, str | Iterable[str]] | None = None,
    ) -> None:
        """Start tracking from the current state of the filesystem.

        Args:
            globs: Dependency globs whose matches are tracked.
            definitions: Module name(s) defined by each already-loaded unit.
        """
        self.globs = list(globs)
        self._file_states = self._scan_files()
        self._definitions = {}
        for path, names in (definitions or {}).items():
            self._definitions[path] = [names] if isinstance(names, str) else list(names)
        self._locked = True
        logger.info(f"ChangeTracker locked with {len(self._file_states)} files")

    def track(self, globs: Iterable[str]) -> None:
        """Replace the tracked globs, keeping recorded state.

        Files that only the new globs match are reported as NEW by the
        next detection pass.
        """
        self.globs = list(globs)

    def detect_changes(self) -> list[FileChange]:
        """Compare the filesystem with the recorded state.

        Returns:
            One FileChange per current or previously recorded unit, ordered
            by path. Empty if the tracker has not been locked yet.
        """
        if not self._locked:
            return []

        current_files = self._scan_files()
        changes: list[FileChange] = []

        for path, (_mtime, file_hash) in current_files.items():
            if path not in self._file_states:
                status = ChangeStatus.NEW
            elif file_hash != self._file_states[path][1]:
                status = ChangeStatus.MODIFIED
            else:
                status = ChangeStatus.UNCHANGED
            changes.append(FileChange(path=path, status=status, digest=file_hash))

        for path in self._file_states:
            if path not in current_files:
                changes.append(FileChange(path=path, status=ChangeStatus.REMOVED))

        changes.sort(key=lambda change: str(change.path))
        return changes

    def record(self, path: Path, module_name: str | None = None) -> None:
        """Commit the current on-disk state of a successfully loaded unit."""
        try:
            self._file_states[path] = self._stat(path)
        except OSError as e:
            logger.debug(f"Error recording {path}: {e}")
            return

        if module_name:
            names = self._definitions.setdefault(path, [])
            if module_name not in names:
                names.append(module_name)

    def definitions(self, path: Path) -> list[str]:
        return list(self._definitions.get(path, []))

    def unload_definitions(self, path: Path) -> list[str]:
        """Remove every module a unit defined from ``sys.modules``.

        Returns:
            The module names that were unloaded.
        """
        names = self._definitions.pop(path, [])
        for name in names:
            if sys.modules.pop(name, None) is not None:
                logger.debug(f"Unloaded module {name} defined by {path}")

        # Cached bytecode is keyed on mtime and size; drop it so edits
        # within the same second still recompile
        with contextlib.suppress(NotImplementedError, ValueError, OSError):
            Path(importlib.util.cache_from_source(str(path))).unlink(missing_ok=True)

        if not path.exists():
            self._file_states.pop(path, None)
        return names

    def clear(self) -> None:
        """Forget all tracked state."""
        self.globs = []
        self._file_states = {}
        self._definitions = {}
        self._locked = False

    async def watch_loop(
        self,
        callback: Callable[[list[FileChange]], Any],
        poll_interval: float = 2.0,
        debounce_seconds: float = 1.0,
    ) -> None:
        """Run a continuous watch loop.

        The callback receives the actionable changes once they have been
        stable for ``debounce_seconds``. The same set of changes is not
        delivered twice, so a reload that keeps failing is retried only
        after the files change again.

        Args:
            callback: Sync or async function called with the list of changes.
            poll_interval: Seconds between scans.
            debounce_seconds: Seconds to wait for additional changes before triggering.
        """
        pending_changes: list[FileChange] = []
        pending_key: frozenset = frozenset()
        handled_key: frozenset = frozenset()
        last_change_time: datetime | None = None

        while True:
            changes = [c for c in self.detect_changes() if c.actionable]
            key = frozenset((c.path, c.status, c.digest) for c in changes)

            if key != pending_key:
                pending_changes = changes
                pending_key = key
                last_change_time = datetime.now(UTC)
                if not changes:
                    handled_key = frozenset()

            # Debounce: wait for changes to settle
            if (
                pending_changes
                and pending_key != handled_key
                and last_change_time
                and (datetime.now(UTC) - last_change_time).total_seconds()
                >= debounce_seconds
            ):
                logger.info(f"Detected {len(pending_changes)} file changes")
                handled_key = pending_key
                result = callback(pending_changes)
                if inspect.isawaitable(result):
                    await result

            await asyncio.sleep(poll_interval)
