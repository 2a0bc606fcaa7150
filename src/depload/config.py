"""Loader settings.

Settings come from the ``[tool.depload]`` table of the project's
``pyproject.toml``; anything not set there falls back to the defaults
below. Relative load paths and dependency globs are resolved against the
project root.
"""

import logging
import os
from pathlib import Path
from typing import Final

from pydantic import BaseModel, Field, ValidationError

from depload.loader.errors import ConfigurationError

logger = logging.getLogger(__name__)

ROOT_ENV_VAR: Final = "DEPLOAD_ROOT"

DEFAULT_LOAD_PATHS: Final = ("lib", "models", "shared")

DEFAULT_DEPENDENCY_PATHS: Final = (
    "config/database.py",
    "lib/**/*.py",
    "shared/lib/**/*.py",
    "models/**/*.py",
    "shared/models/**/*.py",
    "config/apps.py",
)


def default_root() -> Path:
    """Project root from ``DEPLOAD_ROOT``, else the current directory."""
    return Path(os.environ.get(ROOT_ENV_VAR) or Path.cwd()).absolute()


class LoaderSettings(BaseModel):
    """Configuration consumed by the load controller."""

    root: Path = Field(default_factory=default_root)
    load_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_LOAD_PATHS))
    dependency_paths: list[str] = Field(default_factory=lambda: list(DEFAULT_DEPENDENCY_PATHS))
    namespace: str | None = None
    watch_interval: float = Field(default=2.0, gt=0)
    debounce_seconds: float = Field(default=1.0, ge=0)

    def _under_root(self, entry: str) -> str:
        path = Path(entry)
        return str(path if path.is_absolute() else self.root / path)

    def resolved_load_paths(self) -> list[Path]:
        return [Path(self._under_root(entry)) for entry in self.load_paths]

    def resolved_dependency_paths(self) -> list[str]:
        return [self._under_root(entry) for entry in self.dependency_paths]

    @classmethod
    def from_pyproject(cls, root: str | Path | None = None) -> "LoaderSettings":
        """Read settings from ``pyproject.toml`` under the project root.

        Args:
            root: Project root; defaults to ``DEPLOAD_ROOT`` or the cwd.

        Returns:
            Settings with the ``[tool.depload]`` values applied.

        Raises:
            ConfigurationError: If the file cannot be parsed or holds invalid values.
        """
        import tomli

        root_path = Path(root).absolute() if root is not None else default_root()
        pyproject = root_path / "pyproject.toml"

        table: dict = {}
        if pyproject.exists():
            try:
                data = tomli.loads(pyproject.read_text())
            except (OSError, tomli.TOMLDecodeError) as e:
                raise ConfigurationError(pyproject, str(e)) from e
            table = data.get("tool", {}).get("depload", {})
            logger.debug(f"Read {len(table)} settings from {pyproject}")

        try:
            return cls(**{**table, "root": root_path})
        except ValidationError as e:
            raise ConfigurationError(pyproject, str(e)) from e
