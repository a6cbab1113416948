from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path
else:
    Path = object

SETTINGS_FILE_NAME = "config.json"
DATABASE_FILE_NAME = "learnova.db"


class AppPathsHelper:
    """Layout of one instance directory, created on construction."""

    def __init__(self, instance_path: Path) -> None:
        self.set_instance_path(instance_path)

    def set_instance_path(self, instance_path: Path) -> None:
        self._instance_path = instance_path
        self._ensure_dirs_exist()

    def _ensure_dirs_exist(self) -> None:
        dirs = [
            self._instance_path,
            self.upload_tmp_dir,
        ]
        for directory in dirs:
            directory.mkdir(parents=True, exist_ok=True)

    @property
    def instance_path(self) -> Path:
        return self._instance_path

    @property
    def upload_tmp_dir(self) -> Path:
        return self._instance_path / "upload_tmp"

    @property
    def settings_file(self) -> Path:
        return self._instance_path / SETTINGS_FILE_NAME

    @property
    def database_file(self) -> Path:
        return self._instance_path / DATABASE_FILE_NAME

    @property
    def database_url(self) -> str:
        return f"sqlite:///{self.database_file}"
