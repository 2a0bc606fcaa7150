"""Reload support for loaded projects.

- Change detection over the dependency units
- Module teardown for modified and removed units
- Change-aware fixpoint reloading
"""

from depload.reload.reloader import ChangeAwareUnitLoader, HotReloader, ReloadResult, ReloadStatus
from depload.reload.watcher import ChangeStatus, ChangeTracker, FileChange

__all__ = [
    "ChangeAwareUnitLoader",
    "ChangeStatus",
    "ChangeTracker",
    "FileChange",
    "HotReloader",
    "ReloadResult",
    "ReloadStatus",
]
