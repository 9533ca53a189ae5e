"""JSON-file backed key/value store."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any

from pmpulse.contracts.exceptions import StoreError
from pmpulse.contracts.store import KeyValueStore

_LOG = logging.getLogger(__name__)


def _atomic_write(path: Path, content: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise


class JsonFileStore(KeyValueStore):
    """Single JSON document holding one namespace of keys.

    Each mutation re-reads the document, applies the change and rewrites the
    file through a temporary file, all under one lock.
    """

    def __init__(self, path: Path | str, *, namespace: str = "pmpulse") -> None:
        self._path = Path(path)
        self._namespace = namespace
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read()
            if data.pop(key, None) is not None:
                self._write(data)

    def list_keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._read() if key.startswith(prefix))

    def clear(self) -> None:
        with self._lock:
            self._write({})

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"invalid store file: {self._path}") from exc
        if not isinstance(document, dict):
            raise StoreError(f"invalid store file: {self._path} (expected a JSON object)")
        namespace = document.get(self._namespace, {})
        if not isinstance(namespace, dict):
            raise StoreError(f"invalid store namespace {self._namespace!r} in {self._path}")
        return namespace

    def _write(self, data: dict[str, Any]) -> None:
        try:
            document = json.loads(self._path.read_text(encoding="utf-8")) if self._path.exists() else {}
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"invalid store file: {self._path}") from exc
        document[self._namespace] = data
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            _atomic_write(self._path, json.dumps(document, indent=2, sort_keys=True) + "\n")
        except (OSError, TypeError) as exc:
            raise StoreError(f"failed to persist store: {self._path}") from exc
        _LOG.debug("Wrote store namespace %s to %s", self._namespace, self._path)
