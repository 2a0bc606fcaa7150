"""Before/after callbacks around a load or reload cycle."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

Hook = Callable[[], object]


class HookRegistry:
    """Ordered before-load and after-load callbacks.

    Each run invokes a snapshot of the list taken when the run starts, so a
    hook registered while hooks are running is only called from the next
    cycle on. A hook that raises aborts the run and propagates.
    """

    def __init__(self) -> None:
        self._before: list[Hook] = []
        self._after: list[Hook] = []

    def before_load(self, hook: Hook) -> Hook:
        """Register a hook to run before units are loaded.

        Returns the hook unchanged so this can be used as a decorator.
        """
        self._before.append(hook)
        return hook

    def after_load(self, hook: Hook) -> Hook:
        """Register a hook to run after every unit has loaded."""
        self._after.append(hook)
        return hook

    @property
    def before(self) -> list[Hook]:
        return list(self._before)

    @property
    def after(self) -> list[Hook]:
        return list(self._after)

    def _run(self, hooks: list[Hook], phase: str) -> None:
        for hook in hooks:
            logger.debug(f"Running {phase} hook {getattr(hook, '__qualname__', hook)!r}")
            hook()

    def run_before(self) -> None:
        self._run(list(self._before), "before-load")

    def run_after(self) -> None:
        self._run(list(self._after), "after-load")

    def clear(self) -> None:
        self._before.clear()
        self._after.clear()
