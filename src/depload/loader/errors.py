"""Exceptions raised by the dependency loader."""

from pathlib import Path


class DependencyLoadError(Exception):
    """Base class for failures surfaced by a load or reload cycle."""

    def __init__(self, unit: Path, cause: BaseException | None, message: str):
        self.unit = unit
        self.cause = cause
        super().__init__(message)


class StalledLoadError(DependencyLoadError):
    """Raised when a full pass loads nothing while units are still pending.

    ``unit`` and ``cause`` describe the last retryable failure observed in
    the stalled pass; ``pending`` lists every unit that never loaded.
    """

    def __init__(self, unit: Path, cause: BaseException | None, pending: list[Path]):
        self.pending = list(pending)
        super().__init__(
            unit,
            cause,
            f"Could not resolve {len(self.pending)} unit(s); last failure in {unit}: "
            f"{type(cause).__name__}: {cause}",
        )


class FatalLoadError(DependencyLoadError):
    """Raised when a unit fails with an error that is not load-order related."""

    def __init__(self, unit: Path, cause: BaseException | None):
        super().__init__(
            unit,
            cause,
            f"Failed to load {unit}: {type(cause).__name__}: {cause}",
        )


class ConfigurationError(ValueError):
    """Raised when loader settings cannot be read or are invalid."""

    def __init__(self, source: Path | str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid loader configuration in {source}: {reason}")
