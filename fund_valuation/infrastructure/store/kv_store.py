"""
Flat key-value persistence for user state.

One JSON document holds every key; writes replace the file atomically.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from tempfile import NamedTemporaryFile
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def set_many(self, values: Dict[str, Any]) -> None:
        ...


class MemoryStore:
    """In-process store for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def set_many(self, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            self.set(key, value)


class JsonFileStore:
    """
    Disk-backed store at `path`. A missing or corrupt file reads as empty.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    def _read_all(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning(f"⚠️  Unreadable store file {self.path}: {exc}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        tmp = None
        try:
            tmp = NamedTemporaryFile("w", encoding="utf-8", delete=False, dir=directory)
            json.dump(data, tmp, ensure_ascii=False, indent=2)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp.close()
            os.replace(tmp.name, self.path)
        finally:
            if tmp and not tmp.closed:
                tmp.close()
            if tmp and os.path.exists(tmp.name):
                os.unlink(tmp.name)

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: Dict[str, Any]) -> None:
        """Update several keys with a single read and a single atomic write."""
        data = self._read_all()
        data.update(values)
        self._write_all(data)
