"""Test versioning."""

import sys
import tomllib
from pathlib import Path

from learnova.version import __version__


def test_version_pyproject() -> None:
    """Verify version in pyproject.toml matches package version."""
    pyproject_path = Path("pyproject.toml")
    with pyproject_path.open("rb") as f:
        pyproject_toml = tomllib.load(f)
    assert pyproject_toml.get("project", {}).get("version") == __version__, (
        "Version in pyproject.toml does not match package version."
    )



def test_python_floor_pyproject() -> None:
    """Type-only imports fall back to `object` at runtime, annotations must be evaluated lazily."""
    with Path("pyproject.toml").open("rb") as f:
        pyproject_toml = tomllib.load(f)
    assert pyproject_toml["project"]["requires-python"] == ">=3.14"
    assert sys.version_info >= (3, 14)
