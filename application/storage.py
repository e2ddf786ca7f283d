"""
Optimistic transactions over a `KeyValueStore`.

A unit of work reads through a `Transaction`, which remembers the version of
every key it saw and buffers every write. On commit the store applies the
buffered writes only if none of those keys changed meanwhile; otherwise the
whole unit of work is re-run from scratch against fresh data.

Units of work must therefore be free of side effects other than the
transaction itself: notifications are returned as data and delivered after
the commit succeeded.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, TypeVar

from domain.errors import ProfileNotFoundError, TransactionConflictError
from domain.models import Match, MatchKind, Profile, Queue, WithdrawalRequest
from domain.repositories import KeyValueStore

from . import records

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class Transaction:
    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._checks: Dict[str, Optional[int]] = {}
        self._values: Dict[str, Any] = {}
        self._mutations: Dict[str, Any] = {}

    # ---- raw access ----

    def read(self, key: str) -> Any:
        cached = self._values.get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        entry = self._store.get(key)
        self._checks[key] = entry.version
        self._values[key] = entry.value
        return entry.value

    def write(self, key: str, value: Any) -> None:
        if value is None:
            raise ValueError("Use remove() to delete a key.")
        self._values[key] = value
        self._mutations[key] = value

    def remove(self, key: str) -> None:
        self._values[key] = None
        self._mutations[key] = None

    def commit(self) -> bool:
        if not self._mutations:
            return True
        return self._store.commit(self._checks, self._mutations)

    # ---- typed access ----

    def profile(self, player_id: str) -> Optional[Profile]:
        key = records.profile_key(player_id)
        value = self.read(key)
        if value is None:
            return None
        return records.profile_from_record(key, value)

    def require_profile(self, player_id: str) -> Profile:
        profile = self.profile(player_id)
        if profile is None:
            raise ProfileNotFoundError(player_id)
        return profile

    def put_profile(self, profile: Profile) -> None:
        self.write(records.profile_key(profile.id), records.profile_to_record(profile))

    def queue(self, kind: MatchKind) -> Queue:
        key = records.queue_key(kind)
        return records.queue_from_record(key, kind, self.read(key))

    def put_queue(self, queue: Queue) -> None:
        self.write(records.queue_key(queue.kind), records.queue_to_record(queue))

    def match(self, match_id: str) -> Optional[Match]:
        key = records.match_key(match_id)
        value = self.read(key)
        if value is None:
            return None
        return records.match_from_record(key, value)

    def put_match(self, match: Match) -> None:
        self.write(records.match_key(match.id), records.match_to_record(match))

    def match_finished(self, match_id: str) -> bool:
        return self.read(records.finished_match_key(match_id)) is not None

    def withdrawal(self, request_id: str) -> Optional[WithdrawalRequest]:
        key = records.withdrawal_key(request_id)
        value = self.read(key)
        if value is None:
            return None
        return records.withdrawal_from_record(key, value)

    def put_withdrawal(self, request: WithdrawalRequest) -> None:
        self.write(records.withdrawal_key(request.id), records.withdrawal_to_record(request))

    def increment(self, counter: str, delta) -> None:
        """Add `delta` to a reporting counter (stored as a decimal string)."""

        key = records.stats_key(counter)
        current = Decimal(self.read(key) or "0")
        self.write(key, str(current + Decimal(delta)))


def run_in_transaction(
    store: KeyValueStore,
    work: Callable[[Transaction], T],
    max_attempts: int = 8,
) -> T:
    """
    Run `work` inside an optimistic transaction, retrying on conflicts.

    Errors raised by `work` abort the attempt without writing anything and
    propagate to the caller unchanged.
    """

    for attempt in range(1, max_attempts + 1):
        txn = Transaction(store)
        result = work(txn)
        if txn.commit():
            return result
        logger.debug(
            "Commit conflict in %s (attempt %d/%d), retrying",
            getattr(work, "__name__", "unit of work"),
            attempt,
            max_attempts,
        )

    logger.warning("Giving up after %d conflicting commits", max_attempts)
    raise TransactionConflictError(max_attempts)
