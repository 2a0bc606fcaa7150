"""Retry-to-fixpoint loading of units with unknown load order.

The true dependency order between units is never computed. Every pending
unit is attempted once per pass; units that fail for load-order reasons
stay pending for the next pass. A pass that loads nothing while units
remain means the rest can never resolve, so the last failure is raised.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from depload.loader.errors import FatalLoadError, StalledLoadError
from depload.loader.units import LoadOutcome, LoadStatus, UnitLoader

logger = logging.getLogger(__name__)


@dataclass
class FixpointResult:
    """Summary of a successful fixpoint run."""

    passes: int = 0
    attempts: int = 0
    loaded: list[LoadOutcome] = field(default_factory=list)

    @property
    def units(self) -> list[Path]:
        return [outcome.unit for outcome in self.loaded]


def require_dependencies(units: Iterable[Path], unit_loader: UnitLoader) -> FixpointResult:
    """Load every unit, retrying load-order failures until nothing changes.

    Args:
        units: Units in enumeration order (normally sorted).
        unit_loader: Strategy performing one load attempt.

    Returns:
        FixpointResult with pass/attempt counts and outcomes in load order.

    Raises:
        FatalLoadError: A unit failed with a non-retryable error. Units after
            it in the same pass are not attempted.
        StalledLoadError: A pass completed without loading any unit.
    """
    pending = list(units)
    result = FixpointResult()

    while pending:
        result.passes += 1
        size_at_start = len(pending)
        last_failure: LoadOutcome | None = None

        # Iterate over a copy so successes can be removed from pending
        for unit in list(pending):
            outcome = unit_loader.load(unit)
            result.attempts += 1

            if outcome.status is LoadStatus.FATAL:
                logger.error(f"Fatal error loading {unit}: {outcome.cause}")
                raise FatalLoadError(unit, outcome.cause) from outcome.cause

            if outcome.status is LoadStatus.RETRYABLE:
                last_failure = outcome
                continue

            pending.remove(unit)
            result.loaded.append(outcome)

        logger.debug(
            f"Pass {result.passes}: {size_at_start - len(pending)} loaded, {len(pending)} pending"
        )

        if pending and len(pending) == size_at_start and last_failure is not None:
            logger.error(f"Dependency loading stalled with {len(pending)} unit(s) pending")
            raise StalledLoadError(last_failure.unit, last_failure.cause, pending) from last_failure.cause

    return result
