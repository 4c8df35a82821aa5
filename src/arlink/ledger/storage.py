"""Key-value stores backing the ledger.

The ledger persists one JSON-compatible record under one key.  Any object
with ``get(key)`` / ``set(key, value)`` works; two are provided:

* :class:`MemoryStore` -- process-local, for tests and ephemeral hosts.
* :class:`JsonFileStore` -- a JSON file rewritten atomically on every set.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from arlink.errors import ArlinkStorageError


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for the ledger's persistence port.

    ``set(key, None)`` removes *key*.
    """

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any | None) -> None: ...


class MemoryStore:
    """A dict-backed store.  Values are deep-copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Any | None:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any | None) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = copy.deepcopy(value)


class JsonFileStore:
    """A store kept in a single JSON object file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write leaves the previous contents intact.

    Parameters
    ----------
    path:
        The JSON file.  Created on first write.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, Any]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise ArlinkStorageError(
                message=f"Could not read {self.path}: {exc}",
                context={"path": str(self.path)},
                cause=exc,
            ) from exc
        if not text.strip():
            return {}
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ArlinkStorageError(
                message=f"Corrupt store file {self.path}: {exc}",
                context={"path": str(self.path)},
                cause=exc,
            ) from exc
        if not isinstance(data, dict):
            raise ArlinkStorageError(
                message=f"Store file {self.path} does not hold a JSON object",
                context={"path": str(self.path)},
            )
        return data

    def _write_all(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, sort_keys=True)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        except OSError as exc:
            Path(tmp).unlink(missing_ok=True)
            raise ArlinkStorageError(
                message=f"Could not write {self.path}: {exc}",
                context={"path": str(self.path)},
                cause=exc,
            ) from exc

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any | None) -> None:
        with self._lock:
            data = self._read_all()
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
            self._write_all(data)
