"""Durable key-value stores for persisting the task list."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol, Union

from qtask.errors import PersistenceError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal string key-value store, in the spirit of browser localStorage."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...

    def has_item(self, key: str) -> bool:
        ...


class MemoryStore:
    """Store that keeps values in a dict. Nothing survives the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def has_item(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """Store backed by a single JSON object on disk.

    Every key maps to a string value. Writes go to a temporary file in the
    same directory which then replaces the original, so a crash mid-write
    never leaves a truncated file behind.

    Missing file -> empty store. Reads of a corrupt file raise
    PersistenceError; writes move it aside and start over.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def _read_all(self, recover: bool = False) -> dict[str, str]:
        """Read the whole store.

        With recover=True an unparseable file is moved aside to
        '<name>.corrupt' and an empty store is returned, so writes can
        start over.
        """
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise PersistenceError(f"Could not read store file {self.path}: {e}") from e
        except ValueError as e:
            if recover:
                return self._set_aside(str(e))
            raise PersistenceError(f"Could not read store file {self.path}: {e}") from e

        if not isinstance(data, dict):
            if recover:
                return self._set_aside("not a JSON object")
            raise PersistenceError(f"Store file {self.path} does not contain a JSON object")
        return data

    def _set_aside(self, reason: str) -> dict[str, str]:
        corrupt_path = self.path.with_name(f"{self.path.name}.corrupt")
        try:
            os.replace(self.path, corrupt_path)
        except OSError as e:
            raise PersistenceError(f"Could not move corrupt store file {self.path}: {e}") from e
        logger.warning("Store file %s was corrupt (%s); moved it to %s", self.path, reason, corrupt_path)
        return {}

    def _write_all(self, data: dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise PersistenceError(f"Could not write store file {self.path}: {e}") from e
        logger.debug("Wrote store file %s (%d keys)", self.path, len(data))

    def get_item(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all(recover=True)
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all(recover=True)
        if key in data:
            del data[key]
            self._write_all(data)

    def has_item(self, key: str) -> bool:
        return key in self._read_all()
