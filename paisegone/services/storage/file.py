"""
Local JSON file storage.

One file per key inside a data directory: ``<data_dir>/<key>.json``.
Writes go to a temporary file in the same directory and are moved into
place with os.replace, so a reader in another process sees either the
old blob or the new one, never half of each.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog

from paisegone.services.storage.interface import (
    KeyValueStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class JsonFileKeyValueStorage(KeyValueStorageInterface):
    """Key-value storage over a directory of JSON files."""

    SUFFIX = ".json"

    def __init__(self, data_dir: Union[str, Path]):
        self._dir = Path(data_dir).expanduser()

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._dir / f"{key}{self.SUFFIX}"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}")

    def write(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._dir, prefix=f".{key}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}")
        logger.debug("storage_write", key=key, path=str(path), size=len(value))

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}")

    def keys(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(
            p.name[:-len(self.SUFFIX)]
            for p in self._dir.iterdir()
            if p.is_file() and p.name.endswith(self.SUFFIX) and not p.name.startswith(".")
        )
