"""Fixpoint dependency loading.

- Glob expansion into ordered file units
- Per-unit load strategies with tagged outcomes
- Retry-to-fixpoint driver with stall and fatal detection
"""

from depload.loader.errors import (
    ConfigurationError,
    DependencyLoadError,
    FatalLoadError,
    StalledLoadError,
)
from depload.loader.fixpoint import FixpointResult, require_dependencies
from depload.loader.resolver import resolve_paths
from depload.loader.units import LoadOutcome, LoadStatus, ModuleUnitLoader, UnitLoader

__all__ = [
    "ConfigurationError",
    "DependencyLoadError",
    "FatalLoadError",
    "FixpointResult",
    "LoadOutcome",
    "LoadStatus",
    "ModuleUnitLoader",
    "StalledLoadError",
    "UnitLoader",
    "require_dependencies",
    "resolve_paths",
]
