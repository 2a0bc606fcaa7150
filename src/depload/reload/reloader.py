"""Change-aware reloading of dependency units.

Handles:
- Skipping units whose content did not change
- Tearing down modules of modified and removed units
- Re-running the fixpoint loader over what changed
- Keeping a history of reload outcomes
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from depload import __version__
from depload.loader.errors import DependencyLoadError, StalledLoadError
from depload.loader.fixpoint import require_dependencies
from depload.loader.units import LoadOutcome, LoadStatus, UnitLoader
from depload.reload.watcher import ChangeStatus, ChangeTracker, FileChange

logger = logging.getLogger(__name__)


class ReloadStatus(Enum):
    """Status of a reload operation."""

    SUCCESS = "success"
    NOT_LOADED = "not_loaded"
    STALLED = "stalled"
    FATAL = "fatal"


@dataclass
class ReloadResult:
    """Result of a reload operation."""

    status: ReloadStatus
    changes: list[FileChange] = field(default_factory=list)
    reloaded_units: list[Path] = field(default_factory=list)
    skipped_units: list[Path] = field(default_factory=list)
    removed_units: list[Path] = field(default_factory=list)
    error_message: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class ChangeAwareUnitLoader:
    """Unit loader used during reload.

    Looks up each unit's status from a detection pass, skips unchanged
    units, unloads the previous definitions of modified ones, and delegates
    the actual execution to the plain loader.
    """

    def __init__(self, tracker: ChangeTracker, plain: UnitLoader, changes: list[FileChange]):
        self.tracker = tracker
        self.plain = plain
        self._statuses = {change.path: change.status for change in changes}

    def load(self, unit: Path) -> LoadOutcome:
        status = self._statuses.get(unit, ChangeStatus.NEW)

        if status is ChangeStatus.UNCHANGED:
            return LoadOutcome(unit=unit, status=LoadStatus.SKIPPED)

        if status is ChangeStatus.MODIFIED:
            self.tracker.unload_definitions(unit)

        outcome = self.plain.load(unit)
        if outcome.succeeded:
            self.tracker.record(unit, outcome.module_name)
        return outcome


class HotReloader:
    """Applies a detection pass to the running program.

    Flow:
    1. Unload modules of removed units
    2. Run the fixpoint loader over the remaining units in change-aware mode
    3. Record the outcome in the reload history
    """

    def __init__(self, tracker: ChangeTracker, plain: UnitLoader, max_history: int = 100):
        self.tracker = tracker
        self.plain = plain

        # Track reload history, oldest entries dropped past max_history
        self.max_history = max_history
        self._reload_history: list[ReloadResult] = []

    def process_changes(self, changes: list[FileChange]) -> ReloadResult:
        """Reload the units described by a detection pass.

        Args:
            changes: Output of ``ChangeTracker.detect_changes``.

        Returns:
            ReloadResult describing the outcome.

        Raises:
            StalledLoadError: Changed units could not be resolved.
            FatalLoadError: A changed unit failed with a non-retryable error.
        """
        removed = [c.path for c in changes if c.status is ChangeStatus.REMOVED]
        units = [c.path for c in changes if c.status is not ChangeStatus.REMOVED]
        actionable = [c for c in changes if c.actionable]
        logger.info(f"Processing {len(actionable)} changed units")

        for path in removed:
            self.tracker.unload_definitions(path)

        unit_loader = ChangeAwareUnitLoader(self.tracker, self.plain, changes)
        try:
            outcome = require_dependencies(units, unit_loader)
        except DependencyLoadError as e:
            status = ReloadStatus.STALLED if isinstance(e, StalledLoadError) else ReloadStatus.FATAL
            self._record(
                ReloadResult(
                    status=status,
                    changes=changes,
                    removed_units=removed,
                    error_message=str(e),
                )
            )
            raise

        reloaded = [o.unit for o in outcome.loaded if o.status is LoadStatus.LOADED]
        skipped = [o.unit for o in outcome.loaded if o.status is LoadStatus.SKIPPED]

        logger.info(
            f"Reload complete: {len(reloaded)} units reloaded, {len(removed)} removed "
            f"(depload v{__version__})"
        )
        result = ReloadResult(
            status=ReloadStatus.SUCCESS,
            changes=changes,
            reloaded_units=reloaded,
            skipped_units=skipped,
            removed_units=removed,
        )
        self._record(result)
        return result

    def _record(self, result: ReloadResult) -> None:
        self._reload_history.append(result)
        del self._reload_history[: -self.max_history]

    def get_reload_history(self, limit: int = 10) -> list[ReloadResult]:
        """Get recent reload history.

        Args:
            limit: Maximum number of results to return.

        Returns:
            List of recent ReloadResults.
        """
        return self._reload_history[-limit:]

    def clear_history(self) -> None:
        self._reload_history.clear()
