"""Per-file load operation used by the fixpoint loader.

A unit loader turns one file into executed code and reports what happened
as a tagged ``LoadOutcome`` instead of raising:
- LOADED / SKIPPED: the unit is done
- RETRYABLE: a load-order failure (unresolved name or import)
- FATAL: anything else
"""

import hashlib
import importlib.util
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import Protocol

logger = logging.getLogger(__name__)

DEFAULT_RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    NameError,
    ImportError,
    FileNotFoundError,
)


class LoadStatus(Enum):
    """Classification of a single load attempt."""

    LOADED = "loaded"
    SKIPPED = "skipped"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class LoadOutcome:
    """Result of attempting to load one unit."""

    unit: Path
    status: LoadStatus
    cause: BaseException | None = None
    module_name: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in (LoadStatus.LOADED, LoadStatus.SKIPPED)


class UnitLoader(Protocol):
    """Capability the fixpoint loader drives, one unit at a time."""

    def load(self, unit: Path) -> LoadOutcome: ...


def module_name_for(
    path: Path,
    roots: Sequence[Path],
    namespace: str | None = None,
) -> str:
    """Derive the module name a unit is registered under.

    The name is relative to the first root containing the file, falling
    back to the bare file stem. ``__init__.py`` names its package.

    Args:
        path: Absolute path of the unit.
        roots: Candidate roots, most specific first.
        namespace: Optional dotted prefix for every name.

    Returns:
        Dotted module name (e.g., "models.user").
    """
    parts: tuple[str, ...] = (path.name,)
    for root in roots:
        try:
            parts = path.relative_to(root).parts
            break
        except ValueError:
            continue

    if parts[-1] == "__init__.py" and len(parts) > 1:
        parts = parts[:-1]
    else:
        parts = (*parts[:-1], Path(parts[-1]).stem)

    name = ".".join(parts)
    return f"{namespace}.{name}" if namespace else name


class ModuleUnitLoader:
    """Executes each unit as a Python module registered in ``sys.modules``.

    Loading a file whose module is already registered from the same path
    is a no-op, so units imported as a side effect of an earlier unit are
    not executed twice.

    Each unit keeps one module name for the lifetime of the loader. When
    the name derived from the load paths is already bound to another file
    (a second unit, or an importable module such as ``json``), the unit
    falls back to its name relative to the project root, then to a
    name suffixed with a digest of its path.
    """

    def __init__(
        self,
        roots: Sequence[str | Path] = (),
        namespace: str | None = None,
        retryable_errors: tuple[type[BaseException], ...] = DEFAULT_RETRYABLE_ERRORS,
    ):
        # Longest root first so nested load paths win over the project root
        self.roots = sorted((Path(r).absolute() for r in roots), key=lambda p: len(p.parts), reverse=True)
        self.namespace = namespace
        self.retryable_errors = retryable_errors
        self._names: dict[Path, str] = {}
        self._claims: dict[str, Path] = {}

    def module_name(self, unit: Path) -> str:
        """Module name the unit is registered under, assigned on first use."""
        name = self._names.get(unit)
        if name is None:
            name = self._free_name(unit)
            self._names[unit] = name
            self._claims[name] = unit
        return name

    def _free_name(self, unit: Path) -> str:
        preferred = module_name_for(unit, self.roots, self.namespace)
        if not self._bound_elsewhere(preferred, unit):
            return preferred

        relative = module_name_for(unit, self.roots[::-1])
        candidate = f"{self.namespace}.{relative}" if self.namespace else relative
        if not self._bound_elsewhere(candidate, unit):
            logger.debug(f"Module name {preferred} is taken, loading {unit} as {candidate}")
            return candidate

        digest = hashlib.sha256(str(unit).encode()).hexdigest()[:8]
        fallback = f"{relative.replace('.', '_')}_{digest}"
        fallback = f"{self.namespace}.{fallback}" if self.namespace else fallback
        logger.debug(f"Module name {preferred} is taken, loading {unit} as {fallback}")
        return fallback

    def _bound_elsewhere(self, name: str, unit: Path) -> bool:
        """Check whether a name belongs to a file other than the unit."""
        owner = self._claims.get(name)
        if owner is not None:
            return owner != unit

        module = sys.modules.get(name)
        if module is not None:
            module_file = getattr(module, "__file__", None)
            return module_file is None or Path(module_file).absolute() != unit

        return self._shadows_import(name.partition(".")[0])

    def _shadows_import(self, top_level: str) -> bool:
        """Check whether a top-level name resolves to code outside the roots."""
        try:
            spec = importlib.util.find_spec(top_level)
        except (ImportError, ValueError):
            return False
        if spec is None:
            return False

        if spec.has_location and spec.origin:
            locations = [spec.origin]
        else:
            locations = list(spec.submodule_search_locations or ())
        if not locations:
            # Built-in or frozen module
            return True
        return not all(self._within_roots(Path(location)) for location in locations)

    def _within_roots(self, path: Path) -> bool:
        path = path.absolute()
        return any(path.is_relative_to(root) for root in self.roots)

    def _already_loaded(self, name: str, unit: Path) -> bool:
        module = sys.modules.get(name)
        if module is None:
            return False
        module_file = getattr(module, "__file__", None)
        return module_file is not None and Path(module_file).absolute() == unit

    @staticmethod
    def _discard(name: str, module: ModuleType, previous: ModuleType | None) -> None:
        # Leave the entry alone if the unit replaced itself while executing
        if sys.modules.get(name) is not module:
            return
        if previous is None:
            del sys.modules[name]
        else:
            sys.modules[name] = previous

    def load(self, unit: Path) -> LoadOutcome:
        """Execute a unit, classifying any failure.

        Args:
            unit: Absolute path of the file to execute.

        Returns:
            LoadOutcome describing the attempt.
        """
        name = self.module_name(unit)

        if self._already_loaded(name, unit):
            logger.debug(f"Unit {unit} already loaded as {name}, skipping")
            return LoadOutcome(unit=unit, status=LoadStatus.SKIPPED, module_name=name)

        spec = importlib.util.spec_from_file_location(name, unit)
        if spec is None or spec.loader is None:
            return LoadOutcome(
                unit=unit,
                status=LoadStatus.FATAL,
                cause=ImportError(f"No loader available for {unit}"),
                module_name=name,
            )

        module = importlib.util.module_from_spec(spec)
        previous = sys.modules.get(name)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except self.retryable_errors as e:
            self._discard(name, module, previous)
            logger.debug(f"Unit {unit} not resolvable yet: {type(e).__name__}: {e}")
            return LoadOutcome(unit=unit, status=LoadStatus.RETRYABLE, cause=e, module_name=name)
        except Exception as e:
            self._discard(name, module, previous)
            return LoadOutcome(unit=unit, status=LoadStatus.FATAL, cause=e, module_name=name)

        logger.debug(f"Loaded {unit} as {name}")
        return LoadOutcome(unit=unit, status=LoadStatus.LOADED, module_name=name)
