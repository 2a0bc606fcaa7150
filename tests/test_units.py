"""Tests for executing units as modules."""

import json
import string
import sys
from pathlib import Path
from types import ModuleType

import pytest

from depload.loader.fixpoint import require_dependencies
from depload.loader.resolver import resolve_paths
from depload.loader.units import LoadStatus, ModuleUnitLoader, module_name_for


class TestModuleNameFor:
    """Tests for module name derivation."""

    def test_relative_to_root(self, tmp_path: Path):
        """Names follow the path below the containing root."""
        path = tmp_path / "models" / "user.py"
        assert module_name_for(path, [tmp_path]) == "models.user"

    def test_first_matching_root_wins(self, tmp_path: Path):
        """A nested root takes precedence when listed first."""
        path = tmp_path / "models" / "user.py"
        assert module_name_for(path, [tmp_path / "models", tmp_path]) == "user"

    def test_package_init(self, tmp_path: Path):
        """__init__.py names its package."""
        path = tmp_path / "lib" / "helpers" / "__init__.py"
        assert module_name_for(path, [tmp_path]) == "lib.helpers"

    def test_outside_every_root(self, tmp_path: Path):
        """Files outside the roots fall back to their stem."""
        path = Path("/elsewhere/config/apps.py")
        assert module_name_for(path, [tmp_path]) == "apps"

    def test_namespace_prefix(self, tmp_path: Path):
        """A namespace prefixes every name."""
        path = tmp_path / "models" / "user.py"
        assert module_name_for(path, [tmp_path], namespace="app") == "app.models.user"


class TestModuleUnitLoader:
    """Tests for ModuleUnitLoader."""

    def test_loads_module(self, write_units, tmp_path: Path, namespace: str):
        """A unit is executed and registered in sys.modules."""
        files = write_units({"models/user.py": "NAME = 'user'\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        outcome = loader.load(files["models/user.py"])

        assert outcome.status is LoadStatus.LOADED
        assert outcome.module_name == f"{namespace}.models.user"
        assert sys.modules[outcome.module_name].NAME == "user"

    def test_second_load_is_skipped(self, write_units, tmp_path: Path, namespace: str):
        """A unit already registered from the same file is not executed again."""
        runs = tmp_path / "runs.log"
        files = write_units({"lib/counter.py": f"with open({str(runs)!r}, 'a') as f:\n    f.write('run\\n')\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        assert loader.load(files["lib/counter.py"]).status is LoadStatus.LOADED
        assert loader.load(files["lib/counter.py"]).status is LoadStatus.SKIPPED
        assert runs.read_text().splitlines() == ["run"]

    def test_missing_import_is_retryable(self, write_units, tmp_path: Path, namespace: str):
        """Importing a unit that has not loaded yet is a load-order failure."""
        files = write_units({"models/a.py": f"from {namespace}.models.b import B\n\nclass A(B):\n    pass\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        outcome = loader.load(files["models/a.py"])

        assert outcome.status is LoadStatus.RETRYABLE
        assert isinstance(outcome.cause, ImportError)
        assert outcome.module_name not in sys.modules

    def test_undefined_name_is_retryable(self, write_units, tmp_path: Path, namespace: str):
        """An unresolved name is a load-order failure."""
        files = write_units({"models/d.py": "VALUE = NeverDefined\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        outcome = loader.load(files["models/d.py"])

        assert outcome.status is LoadStatus.RETRYABLE
        assert isinstance(outcome.cause, NameError)

    def test_missing_file_is_retryable(self, tmp_path: Path, namespace: str):
        """A unit file that cannot be found is retryable."""
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        outcome = loader.load(tmp_path / "gone.py")

        assert outcome.status is LoadStatus.RETRYABLE
        assert isinstance(outcome.cause, FileNotFoundError)

    def test_syntax_error_is_fatal(self, write_units, tmp_path: Path, namespace: str):
        """Structural errors are not retried."""
        files = write_units({"models/broken.py": "def broken(:\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        outcome = loader.load(files["models/broken.py"])

        assert outcome.status is LoadStatus.FATAL
        assert isinstance(outcome.cause, SyntaxError)
        assert outcome.module_name not in sys.modules

    def test_runtime_error_is_fatal(self, write_units, tmp_path: Path, namespace: str):
        """Errors unrelated to load order are fatal."""
        files = write_units({"lib/boom.py": "raise ValueError('boom')\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        outcome = loader.load(files["lib/boom.py"])

        assert outcome.status is LoadStatus.FATAL
        assert str(outcome.cause) == "boom"

    def test_custom_retryable_errors(self, write_units, tmp_path: Path, namespace: str):
        """The retryable classification can be narrowed."""
        files = write_units({"models/a.py": f"from {namespace}.models.b import B\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace, retryable_errors=(NameError,))

        outcome = loader.load(files["models/a.py"])

        assert outcome.status is LoadStatus.FATAL

    def test_fixpoint_over_real_files(self, write_units, tmp_path: Path, namespace: str):
        """Files importing each other load despite alphabetical order."""
        write_units(
            {
                "models/a.py": f"from {namespace}.models.b import B\n\nclass A(B):\n    pass\n",
                "models/b.py": f"from {namespace}.models.c import C\n\nclass B(C):\n    pass\n",
                "models/c.py": "class C:\n    pass\n",
            }
        )
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)

        result = require_dependencies(resolve_paths([str(tmp_path / "models/*.py")]), loader)

        assert result.passes == 3
        assert result.attempts == 6
        a_module = sys.modules[f"{namespace}.models.a"]
        c_module = sys.modules[f"{namespace}.models.c"]
        assert issubclass(a_module.A, c_module.C)


class TestModuleNameCollisions:
    """Units whose derived names are already bound to another file."""

    @pytest.fixture
    def loader(self, tmp_path: Path):
        """Default load paths, no namespace."""
        return ModuleUnitLoader(roots=[tmp_path / "lib", tmp_path / "models", tmp_path / "shared", tmp_path])

    def test_stdlib_name_is_not_replaced(self, write_units, loader):
        """A unit named like a stdlib module loads under its project path."""
        files = write_units({"lib/json.py": "LOCAL = True\n"})

        outcome = loader.load(files["lib/json.py"])

        assert outcome.status is LoadStatus.LOADED
        assert outcome.module_name == "lib.json"
        assert sys.modules["json"] is json
        assert sys.modules["lib.json"].LOCAL is True

    def test_same_stem_in_two_load_paths(self, write_units, loader):
        """Two units with the same file name get distinct modules."""
        files = write_units({"lib/user.py": "ROLE = 'lib'\n", "models/user.py": "ROLE = 'model'\n"})

        lib_outcome = loader.load(files["lib/user.py"])
        model_outcome = loader.load(files["models/user.py"])

        assert lib_outcome.module_name == "user"
        assert model_outcome.module_name == "models.user"
        assert sys.modules["user"].ROLE == "lib"
        assert sys.modules["models.user"].ROLE == "model"

    def test_name_is_stable_across_attempts(self, write_units, loader):
        """A retried unit keeps the name it was first given."""
        files = write_units({"lib/user.py": "ROLE = NeverDefined\n", "models/user.py": "ROLE = 'model'\n"})

        assert loader.load(files["lib/user.py"]).status is LoadStatus.RETRYABLE
        assert loader.load(files["models/user.py"]).module_name == "models.user"

        files["lib/user.py"].write_text("ROLE = 'lib'\n")
        assert loader.load(files["lib/user.py"]).module_name == "user"

    def test_failed_unit_keeps_existing_module(self, write_units, loader):
        """A failing unit never removes a module that was imported before it."""
        files = write_units({"lib/string.py": "X = NeverDefined\n"})

        outcome = loader.load(files["lib/string.py"])

        assert outcome.status is LoadStatus.RETRYABLE
        assert sys.modules["string"] is string
        assert outcome.module_name not in sys.modules

    def test_failed_unit_restores_previous_entry(self, write_units, tmp_path: Path, namespace: str, monkeypatch):
        """A module registered under the unit's name before a failed attempt is put back."""
        files = write_units({"models/a.py": "X = NeverDefined\n"})
        loader = ModuleUnitLoader(roots=[tmp_path], namespace=namespace)
        name = loader.module_name(files["models/a.py"])
        placeholder = ModuleType(name)
        placeholder.__file__ = str(files["models/a.py"])

        # Registered from the same file, but not yet executed
        monkeypatch.setattr(loader, "_already_loaded", lambda name, unit: False)
        sys.modules[name] = placeholder

        assert loader.load(files["models/a.py"]).status is LoadStatus.RETRYABLE
        assert sys.modules[name] is placeholder
