"""Load/reload lifecycle of a project.

A ``LoadController`` owns everything a load cycle needs: the configured
load paths and dependency globs, the before/after hooks, and the change
tracker used by reload. States move as follows:

    UNLOADED -> LOADING -> LOADED
    LOADED -> RELOADING -> LOADED
    any -> UNLOADED (clear)

Transitions are serialized by a re-entrant lock. A concurrent ``load()``
waits for the running one and then sees the project as already loaded; a
hook calling back into the controller sees the cycle in progress and gets
a no-op.
"""

import logging
import sys
import threading
from enum import Enum
from pathlib import Path

from depload.config import LoaderSettings
from depload.lifecycle.hooks import Hook, HookRegistry
from depload.loader.fixpoint import FixpointResult, require_dependencies
from depload.loader.resolver import resolve_paths
from depload.loader.units import ModuleUnitLoader, UnitLoader
from depload.reload.reloader import HotReloader, ReloadResult, ReloadStatus
from depload.reload.watcher import ChangeTracker

logger = logging.getLogger(__name__)

_PACKAGE_DIR = Path(__file__).resolve().parents[1]


class LifecycleState(str, Enum):
    """Lifecycle states of a load controller."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    RELOADING = "reloading"


def first_caller() -> str | None:
    """Return ``file:line`` of the innermost frame outside this package."""
    frame = sys._getframe(1)
    while frame is not None:
        filename = frame.f_code.co_filename
        try:
            inside = Path(filename).resolve().is_relative_to(_PACKAGE_DIR)
        except OSError:
            inside = False
        if not inside:
            return f"{filename}:{frame.f_lineno}"
        frame = frame.f_back
    return None


class LoadController:
    """Loads a project's dependency units and keeps them reloadable.

    Args:
        settings: Root, load paths and dependency globs. Defaults to
            ``LoaderSettings()``.
        unit_loader: Strategy used to execute one unit. Defaults to a
            ``ModuleUnitLoader`` rooted at the load paths and project root.
        tracker: Change tracker consulted by ``reload()``.
    """

    def __init__(
        self,
        settings: LoaderSettings | None = None,
        unit_loader: UnitLoader | None = None,
        tracker: ChangeTracker | None = None,
    ):
        self.settings = settings or LoaderSettings()
        self.hooks = HookRegistry()
        self.tracker = tracker or ChangeTracker()
        self._unit_loader = unit_loader
        self._lock = threading.RLock()
        self._state = LifecycleState.UNLOADED
        self._origin: str | None = None
        self._sys_paths_added: list[str] = []
        self.last_result: FixpointResult | None = None
        self.load_paths: list[Path] = []
        self.dependency_paths: list[str] = []
        self.reloader: HotReloader | None = None
        self._reset_paths()

    def _reset_paths(self) -> None:
        self.load_paths = self.settings.resolved_load_paths()
        self.dependency_paths = self.settings.resolved_dependency_paths()

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def loaded(self) -> bool:
        """True once ``load()`` completed, including while reloading."""
        return self._state in (LifecycleState.LOADED, LifecycleState.RELOADING)

    @property
    def origin(self) -> str | None:
        return self._origin

    @property
    def called_from(self) -> str | None:
        """Call site captured by the first ``load()``, else the current caller."""
        return self._origin or first_caller()

    def before_load(self, hook: Hook) -> Hook:
        return self.hooks.before_load(hook)

    def after_load(self, hook: Hook) -> Hook:
        return self.hooks.after_load(hook)

    def set_load_paths(self, *paths: str | Path) -> None:
        """Add directories to ``sys.path`` and to the controller's load paths."""
        for entry in paths:
            path = Path(entry).absolute()
            if str(path) not in sys.path:
                sys.path.append(str(path))
                self._sys_paths_added.append(str(path))
            if path not in self.load_paths:
                self.load_paths.append(path)

    def _build_unit_loader(self) -> UnitLoader:
        if self._unit_loader is not None:
            return self._unit_loader
        return ModuleUnitLoader(
            roots=[*self.load_paths, self.settings.root],
            namespace=self.settings.namespace,
        )

    def load(self) -> bool:
        """Run a full load cycle.

        Returns:
            True if this call loaded the project, False if it was already
            loaded or a cycle is in progress.

        Raises:
            StalledLoadError: Some units could never be resolved.
            FatalLoadError: A unit failed with a non-retryable error.
            Exception: Whatever a hook raised.
        """
        with self._lock:
            if self._state is not LifecycleState.UNLOADED:
                logger.debug(f"load() ignored, controller is {self._state.value}")
                return False

            self._state = LifecycleState.LOADING
            try:
                if self._origin is None:
                    self._origin = first_caller()
                self.set_load_paths(*self.load_paths)

                self.hooks.run_before()
                units = resolve_paths(self.dependency_paths)
                plain = self._build_unit_loader()
                result = require_dependencies(units, plain)
                self.tracker.lock(
                    self.dependency_paths,
                    {o.unit: o.module_name for o in result.loaded if o.module_name},
                )
                self.reloader = HotReloader(self.tracker, plain)
                self.hooks.run_after()
            except BaseException:
                self._state = LifecycleState.UNLOADED
                raise

            self.last_result = result
            self._state = LifecycleState.LOADED
            logger.info(
                f"Loaded {len(result.loaded)} units in {result.passes} passes "
                f"({result.attempts} attempts)"
            )
            return True

    def reload(self) -> ReloadResult:
        """Reload the units that changed since the last (re)load.

        Returns:
            ReloadResult; status NOT_LOADED if the project was never loaded.

        Raises:
            StalledLoadError: Changed units could not be resolved.
            FatalLoadError: A changed unit failed with a non-retryable error.
        """
        with self._lock:
            if self._state is not LifecycleState.LOADED or self.reloader is None:
                logger.warning(f"reload() ignored, controller is {self._state.value}")
                return ReloadResult(status=ReloadStatus.NOT_LOADED)

            self._state = LifecycleState.RELOADING
            try:
                self.hooks.run_before()
                self.tracker.track(self.dependency_paths)
                changes = self.tracker.detect_changes()
                result = self.reloader.process_changes(changes)
                self.hooks.run_after()
                return result
            finally:
                self._state = LifecycleState.LOADED

    def get_reload_history(self, limit: int = 10) -> list[ReloadResult]:
        if self.reloader is None:
            return []
        return self.reloader.get_reload_history(limit)

    def clear(self) -> None:
        """Reset the controller so a later ``load()`` runs a full cycle."""
        with self._lock:
            for entry in self._sys_paths_added:
                if entry in sys.path:
                    sys.path.remove(entry)
            self._sys_paths_added = []
            self._reset_paths()
            self.hooks.clear()
            self.tracker.clear()
            self.reloader = None
            self.last_result = None
            self._origin = None
            self._state = LifecycleState.UNLOADED
            logger.debug("Controller cleared")
