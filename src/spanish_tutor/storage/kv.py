"""Key-value store: get/set/prefix-scan plus versioned compare-and-set.

Every key carries a version that starts at 0 (absent) and increases by one on
each write. ``compare_and_set_many`` commits several keys at once only when
all of them still have the expected versions.
"""

import copy
import fcntl
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

logger = structlog.get_logger()

ABSENT = 0


class KeyValueStore(ABC):
    @abstractmethod
    def get_versioned(self, key: str) -> tuple[Any | None, int]:
        """Return ``(value, version)``; ``(None, 0)`` when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> int:
        """Write unconditionally and return the new version."""

    @abstractmethod
    def get_by_prefix(self, prefix: str) -> list[Any]:
        """Return all values whose key starts with ``prefix``, in key order."""

    @abstractmethod
    def compare_and_set_many(self, updates: dict[str, tuple[Any, int]]) -> bool:
        """Atomically write ``{key: (value, expected_version)}``.

        Returns False and writes nothing if any key's current version differs.
        """

    def get(self, key: str) -> Any | None:
        return self.get_versioned(key)[0]

    def add(self, key: str, value: Any) -> bool:
        """Insert ``value`` only if ``key`` is absent."""
        return self.compare_and_set_many({key: (value, ABSENT)})


class InMemoryStore(KeyValueStore):
    """Process-local store, used for tests and ``store_backend=memory``."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get_versioned(self, key: str) -> tuple[Any | None, int]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, ABSENT
            return copy.deepcopy(entry["value"]), entry["version"]

    def set(self, key: str, value: Any) -> int:
        with self._lock:
            return _write(self._entries, key, value)

    def get_by_prefix(self, prefix: str) -> list[Any]:
        with self._lock:
            return [
                copy.deepcopy(self._entries[k]["value"])
                for k in sorted(self._entries)
                if k.startswith(prefix)
            ]

    def compare_and_set_many(self, updates: dict[str, tuple[Any, int]]) -> bool:
        with self._lock:
            if not _versions_match(self._entries, updates):
                return False
            for key, (value, _) in updates.items():
                _write(self._entries, key, value)
            return True


class JsonFileStore(KeyValueStore):
    """Single JSON document on disk (fcntl.flock + atomic replace)."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = self.path.with_name(self.path.name + ".lock")

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        return json.loads(self.path.read_text(encoding="utf-8") or "{}")

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        with tempfile.NamedTemporaryFile(
            "w", dir=self.path.parent, delete=False, suffix=".json", encoding="utf-8"
        ) as tmp:
            json.dump(entries, tmp, default=str)
        os.replace(tmp.name, self.path)

    def _locked(self, exclusive: bool):
        lock_file = open(self._lock_path, "w")
        fcntl.flock(lock_file, fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
        return lock_file

    def get_versioned(self, key: str) -> tuple[Any | None, int]:
        with self._locked(exclusive=False):
            entry = self._load().get(key)
        if entry is None:
            return None, ABSENT
        return entry["value"], entry["version"]

    def set(self, key: str, value: Any) -> int:
        with self._locked(exclusive=True):
            entries = self._load()
            version = _write(entries, key, value)
            self._save(entries)
        return version

    def get_by_prefix(self, prefix: str) -> list[Any]:
        with self._locked(exclusive=False):
            entries = self._load()
        return [entries[k]["value"] for k in sorted(entries) if k.startswith(prefix)]

    def compare_and_set_many(self, updates: dict[str, tuple[Any, int]]) -> bool:
        with self._locked(exclusive=True):
            entries = self._load()
            if not _versions_match(entries, updates):
                return False
            for key, (value, _) in updates.items():
                _write(entries, key, value)
            self._save(entries)
        return True


def _write(entries: dict[str, dict[str, Any]], key: str, value: Any) -> int:
    current = entries.get(key)
    version = (current["version"] if current else ABSENT) + 1
    entries[key] = {"value": copy.deepcopy(value), "version": version}
    return version


def _versions_match(
    entries: dict[str, dict[str, Any]], updates: dict[str, tuple[Any, int]]
) -> bool:
    for key, (_, expected) in updates.items():
        current = entries.get(key)
        if (current["version"] if current else ABSENT) != expected:
            return False
    return True


def build_store(settings) -> KeyValueStore:
    """Create the store selected by ``settings.store_backend``."""
    backend = settings.store_backend.lower()
    if backend == "memory":
        logger.info("store_initialized", backend="memory")
        return InMemoryStore()
    if backend == "file":
        path = settings.resolved_store_path
        logger.info("store_initialized", backend="file", path=str(path))
        return JsonFileStore(path)
    raise ValueError(f"Unknown store backend: {settings.store_backend}")
