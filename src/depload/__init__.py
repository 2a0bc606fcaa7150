"""depload - iterative dependency loading and hot-reload for Python projects."""

__version__ = "0.1.0"

from depload.lifecycle.controller import LifecycleState, LoadController
from depload.loader.errors import DependencyLoadError, FatalLoadError, StalledLoadError

__all__ = [
    "__version__",
    "DependencyLoadError",
    "FatalLoadError",
    "LifecycleState",
    "LoadController",
    "StalledLoadError",
]
