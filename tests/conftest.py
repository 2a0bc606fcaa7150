"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from uuid import uuid4

import pytest

from depload.loader.units import LoadOutcome, LoadStatus


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def restore_interpreter_state():
    """Drop modules and sys.path entries a test added."""
    modules_before = set(sys.modules)
    path_before = list(sys.path)
    yield
    for name in set(sys.modules) - modules_before:
        del sys.modules[name]
    sys.path[:] = path_before


@pytest.fixture
def namespace() -> str:
    """Unique module prefix so tests never collide in sys.modules."""
    return f"dltest_{uuid4().hex[:8]}"


@pytest.fixture
def write_units(tmp_path: Path):
    """Write a mapping of relative path -> source under tmp_path."""

    def write(files: dict[str, str]) -> dict[str, Path]:
        written = {}
        for rel, source in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source)
            written[rel] = path
        return written

    return write


class ScriptedLoader:
    """Unit loader whose units depend on each other by file name.

    A unit loads once every unit named in ``deps`` has loaded; until then
    it reports a retryable NameError. Units in ``fatal`` fail fatally.
    """

    def __init__(self, deps: dict[str, list[str]] | None = None, fatal: set[str] | None = None):
        self.deps = deps or {}
        self.fatal = fatal or set()
        self.attempts: list[str] = []
        self.loaded: list[str] = []

    def load(self, unit: Path) -> LoadOutcome:
        name = unit.name
        self.attempts.append(name)

        if name in self.fatal:
            return LoadOutcome(unit=unit, status=LoadStatus.FATAL, cause=SyntaxError(f"bad {name}"))

        missing = [dep for dep in self.deps.get(name, []) if dep not in self.loaded]
        if missing:
            return LoadOutcome(
                unit=unit,
                status=LoadStatus.RETRYABLE,
                cause=NameError(f"name '{missing[0]}' is not defined"),
            )

        self.loaded.append(name)
        return LoadOutcome(unit=unit, status=LoadStatus.LOADED, module_name=name)


@pytest.fixture
def scripted_loader():
    """Factory for ScriptedLoader instances."""
    return ScriptedLoader
