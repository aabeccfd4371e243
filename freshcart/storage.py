# freshcart/storage.py
"""Key/value persistence for client-side state (cart, wishlist).

`LocalStorage` mirrors the browser API: string values under string keys.
`SnapshotRepository` sits on top of it and (de)serializes one snapshot per key,
reporting *why* a load came back empty instead of hiding it.
"""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from .config import STORAGE_DIR

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageError(Exception):
    pass


class LocalStorage(ABC):
    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage(LocalStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class FileStorage(LocalStorage):
    """One `<key>.json` file per key inside `directory`."""

    def __init__(self, directory):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"cannot read {path}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            # пишем во временный файл и подменяем, чтобы не оставить обрезанный JSON
            fd, tmp = tempfile.mkstemp(dir=str(self.directory), suffix=".tmp")
        except OSError as e:
            raise StorageError(f"cannot write {path}: {e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, path)
        except OSError as e:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
            raise StorageError(f"cannot write {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"cannot remove {key}: {e}") from e


def default_storage(directory=None) -> FileStorage:
    """File-backed storage under STORAGE_DIR unless another directory is given."""
    return FileStorage(STORAGE_DIR if directory is None else directory)


class LoadErrorKind(Enum):
    CORRUPTED = "corrupted"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class LoadResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[LoadErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def Ok(cls, value: T) -> "LoadResult[T]":
        return cls(value=value)

    @classmethod
    def Err(cls, kind: LoadErrorKind) -> "LoadResult[T]":
        return cls(error=kind)


class SnapshotRepository(Generic[T]):
    """Loads and saves one JSON snapshot under a fixed storage key.

    `parse` turns decoded JSON into the snapshot (raising on a schema mismatch),
    `dump` turns the snapshot back into JSON-compatible data, `empty` builds the
    value used when nothing is stored yet.
    """

    def __init__(
        self,
        storage: LocalStorage,
        key: str,
        parse: Callable[[Any], T],
        dump: Callable[[T], Any],
        empty: Callable[[], T],
    ):
        self.storage = storage
        self.key = key
        self._parse = parse
        self._dump = dump
        self._empty = empty

    def empty(self) -> T:
        return self._empty()

    def load(self) -> LoadResult[T]:
        try:
            raw = self.storage.get_item(self.key)
        except StorageError as e:
            logger.warning("storage read failed for %r: %s", self.key, e)
            return LoadResult.Err(LoadErrorKind.UNAVAILABLE)

        if raw is None:
            return LoadResult.Ok(self._empty())

        try:
            return LoadResult.Ok(self._parse(json.loads(raw)))
        except (ValueError, TypeError, PydanticValidationError) as e:
            logger.warning("persisted %r is corrupted, ignoring it: %s", self.key, e)
            return LoadResult.Err(LoadErrorKind.CORRUPTED)

    def save(self, snapshot: T) -> bool:
        """Write the full snapshot. Failures are logged, not raised; returns False on failure."""
        try:
            self.storage.set_item(self.key, json.dumps(self._dump(snapshot)))
        except (StorageError, TypeError, ValueError) as e:
            logger.warning("could not persist %r: %s", self.key, e)
            return False
        return True

    def clear(self) -> None:
        try:
            self.storage.remove_item(self.key)
        except StorageError as e:
            logger.warning("could not remove %r: %s", self.key, e)
