"""Tests must never share an instance directory.

Every app built in a test gets its own tmp_path instance, otherwise tests
running together see each other's database and config file.
"""

from typing import TYPE_CHECKING

from learnova.constants import DEFAULT_INSTANCE_PATH

if TYPE_CHECKING:
    from pathlib import Path

    from fastapi import FastAPI
else:
    Path = object
    FastAPI = object


def test_default_instance_is_temporary() -> None:
    """TEST: conftest points the default instance away from the repo."""
    assert "learnova_test_" in DEFAULT_INSTANCE_PATH.name


def test_app_uses_its_instance_path(app: FastAPI, tmp_path: Path) -> None:
    paths = app.state.paths
    assert paths.instance_path == tmp_path / "instance"
    assert paths.database_file.is_file()
    assert paths.upload_tmp_dir.is_dir()
    assert not paths.settings_file.exists()  # Supplied settings are never written back
