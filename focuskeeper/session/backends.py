from __future__ import annotations

"""Key-value backends for the session snapshot slot.

A backend stores opaque text under a key. Failures are raised as
`StorageError`; deciding what a failure means is the session store's job.
"""

import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from ..errors import StorageError, StorageQuotaExceeded


class PersistentStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store; `max_bytes` emulates a storage quota."""

    def __init__(self, max_bytes: Optional[int] = None) -> None:
        self.max_bytes = max_bytes
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if self.max_bytes is not None and size > self.max_bytes:
            raise StorageQuotaExceeded(key, size, self.max_bytes)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data


_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


class JsonFileStore:
    """One UTF-8 file per key under `directory`.

    Writes go to a temp file in the same directory and are moved into place
    with `os.replace`, so a crash mid-write leaves the previous snapshot.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_SAFE_KEY.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        p = self._path(key)
        try:
            return p.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Failed to read '{p}': {exc}") from exc

    def set(self, key: str, value: str) -> None:
        p = self._path(key)
        tmp_name: Optional[str] = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{p.stem}.", suffix=".tmp", dir=self.directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, p)
            tmp_name = None
        except OSError as exc:
            raise StorageError(f"Failed to write '{p}': {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def delete(self, key: str) -> None:
        p = self._path(key)
        try:
            p.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"Failed to delete '{p}': {exc}") from exc


def make_backend(storage_cfg: Dict) -> PersistentStore:
    backend = str(storage_cfg.get("backend", "file"))
    if backend == "memory":
        return MemoryStore()
    if backend == "file":
        return JsonFileStore(storage_cfg.get("path", "./.focuskeeper"))
    raise ValueError(f"Unknown storage backend: {backend}")
