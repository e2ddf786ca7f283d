from __future__ import annotations

import copy
import itertools
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from domain.repositories import KeyValueEntry, KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """
    Process-local `KeyValueStore`, used for tests and local development.

    Values are deep-copied on the way in and out so callers can never alter
    stored state without going through `set`/`commit`.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, Tuple[Any, int]] = {}
        self._versions = itertools.count(1)
        self._lock = threading.Lock()

    def get(self, key: str) -> KeyValueEntry:
        with self._lock:
            stored = self._entries.get(key)
            if stored is None:
                return KeyValueEntry(key=key, value=None, version=None)
            value, version = stored
            return KeyValueEntry(key=key, value=copy.deepcopy(value), version=version)

    def list_by_prefix(self, prefix: str) -> List[KeyValueEntry]:
        with self._lock:
            return [
                KeyValueEntry(key=key, value=copy.deepcopy(value), version=version)
                for key, (value, version) in sorted(self._entries.items())
                if key.startswith(prefix)
            ]

    def set(self, key: str, value: Any) -> None:
        self.commit({}, {key: value})

    def delete(self, key: str) -> None:
        self.commit({}, {key: None})

    def commit(
        self,
        checks: Mapping[str, Optional[int]],
        mutations: Mapping[str, Any],
    ) -> bool:
        with self._lock:
            for key, expected in checks.items():
                stored = self._entries.get(key)
                current = stored[1] if stored is not None else None
                if current != expected:
                    return False

            version = next(self._versions)
            for key, value in mutations.items():
                if value is None:
                    self._entries.pop(key, None)
                else:
                    self._entries[key] = (copy.deepcopy(value), version)
            return True
