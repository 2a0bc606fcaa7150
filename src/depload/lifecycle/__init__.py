"""Lifecycle of a loaded project: hooks and the load/reload/clear state machine."""

from depload.lifecycle.controller import LifecycleState, LoadController, first_caller
from depload.lifecycle.hooks import HookRegistry

__all__ = [
    "HookRegistry",
    "LifecycleState",
    "LoadController",
    "first_caller",
]
