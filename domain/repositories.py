from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol

from .events import Event


@dataclass(frozen=True)
class KeyValueEntry:
    """
    A stored value together with the version it was read at.

    `version` is None when the key does not exist. Versions only ever grow,
    so a changed version means somebody wrote the key in between.
    """

    key: str
    value: Any
    version: Optional[int]


class KeyValueStore(Protocol):
    """
    Abstraction over durable storage.

    Values are JSON-compatible structures. Implementations are responsible
    for:
    - Assigning a new, strictly larger version on every write.
    - Applying `commit` atomically: either every mutation is stored or
      none is.
    """

    def get(self, key: str) -> KeyValueEntry:
        """Return the entry for `key` (with `version=None` if absent)."""

        ...

    def set(self, key: str, value: Any) -> None:
        """Unconditionally store `value` under `key`."""

        ...

    def delete(self, key: str) -> None:
        ...

    def list_by_prefix(self, prefix: str) -> List[KeyValueEntry]:
        """Return all entries whose key starts with `prefix`, ordered by key."""

        ...

    def commit(
        self,
        checks: Mapping[str, Optional[int]],
        mutations: Mapping[str, Any],
    ) -> bool:
        """
        Atomically apply `mutations` if every key in `checks` still has the
        given version.

        A mutation value of None deletes the key. Returns False (and changes
        nothing) when a check fails.
        """

        ...


class NotificationSink(Protocol):
    """
    Delivers events to players.

    Delivery is best-effort: the core only calls the sink after state has
    been committed, and a failure never rolls anything back.
    """

    def notify(self, player_id: str, event: Event) -> Optional[object]:
        """
        Deliver `event` to `player_id`.

        May return an opaque handle to the rendered message (e.g. a chat
        message id) so later board updates can edit it in place.
        """

        ...

