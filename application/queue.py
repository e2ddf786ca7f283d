"""
Queue manager: FIFO waiting lists per match kind.

A player is in at most one queue or match at a time. Star queues collect
the stake at join time; it is refunded on leave and carried into the match
otherwise.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from decimal import Decimal
from typing import List

from domain.errors import (
    AlreadyInMatchError,
    AlreadyQueuedError,
    InsufficientBalanceError,
    InvalidMatchKindError,
    NotQueuedError,
    SelfPairingError,
)
from domain.events import Notification, QueueJoined, QueueLeft
from domain.models import Idle, MatchKind, QueueEntry, Queued

from . import matches
from .settings import GameSettings
from .storage import Transaction

logger = logging.getLogger(__name__)


def parse_kind(kind) -> MatchKind:
    try:
        return MatchKind(kind)
    except ValueError:
        raise InvalidMatchKindError(f"Unknown match kind: {kind}") from None


def stake_for(kind: MatchKind, settings: GameSettings) -> Decimal:
    return settings.star_stake if kind == MatchKind.STAR else Decimal("0")


def join(
    txn: Transaction,
    player_id: str,
    kind: MatchKind,
    settings: GameSettings,
    now: datetime,
) -> List[Notification]:
    profile = txn.require_profile(player_id)
    if profile.queue_state is not None:
        raise AlreadyQueuedError(player_id, profile.queue_state.value)
    if profile.active_match_id is not None:
        raise AlreadyInMatchError(player_id, profile.active_match_id)

    stake = stake_for(kind, settings)
    if profile.stars < stake:
        raise InsufficientBalanceError(player_id, stake, profile.stars)

    queue = txn.queue(kind)
    if queue.position_of(player_id) is not None:
        # The profile says idle but the queue disagrees; trust the profile
        # and drop the stale entry before re-adding.
        logger.error("Stale %s queue entry for idle player %s", kind.value, player_id)
        for entry in queue.entries:
            if entry.player_id == player_id:
                profile.stars += entry.stake
        queue.entries = [e for e in queue.entries if e.player_id != player_id]

    profile.stars -= stake
    profile.availability = Queued(kind)
    queue.entries.append(QueueEntry(player_id=player_id, stake=stake, joined_at=now))
    txn.put_profile(profile)
    txn.put_queue(queue)

    logger.info("Player %s joined the %s queue", player_id, kind.value)
    return [Notification(player_id, QueueJoined(kind=kind, stake=stake))]


def leave(
    txn: Transaction,
    player_id: str,
    kind: MatchKind,
) -> List[Notification]:
    profile = txn.require_profile(player_id)
    if profile.queue_state != kind:
        raise NotQueuedError(player_id, kind.value)

    queue = txn.queue(kind)
    refund = Decimal("0")
    remaining = []
    for entry in queue.entries:
        if entry.player_id == player_id:
            refund += entry.stake
        else:
            remaining.append(entry)
    if len(remaining) == len(queue.entries):
        logger.error("Player %s marked as queued for %s but not in queue", player_id, kind.value)
    queue.entries = remaining

    profile.stars += refund
    profile.availability = Idle()
    txn.put_profile(profile)
    txn.put_queue(queue)

    logger.info("Player %s left the %s queue", player_id, kind.value)
    return [Notification(player_id, QueueLeft(kind=kind, refunded=refund))]


def try_pair(
    txn: Transaction,
    kind: MatchKind,
    settings: GameSettings,
    rng: random.Random,
    now: datetime,
) -> List[Notification]:
    """
    Pair the two front entries of the queue into matches until fewer than
    two remain. Calling it on a short queue is a no-op.
    """

    queue = txn.queue(kind)
    if len(queue.entries) < 2:
        return []

    notifications: List[Notification] = []
    changed = False
    while len(queue.entries) >= 2:
        first_entry, second_entry = queue.entries[0], queue.entries[1]

        if first_entry.player_id == second_entry.player_id:
            logger.error(str(SelfPairingError(first_entry.player_id)))
            # Keep one copy at the front, discard the duplicate.
            queue.entries = [first_entry] + queue.entries[2:]
            _refund(txn, second_entry)
            changed = True
            continue

        stale = [
            entry
            for entry in (first_entry, second_entry)
            if _is_stale(txn, entry.player_id, kind)
        ]
        if stale:
            for entry in stale:
                logger.error(
                    "Dropping stale %s queue entry for %s", kind.value, entry.player_id
                )
                queue.entries.remove(entry)
                _refund(txn, entry)
            changed = True
            continue

        queue.entries = queue.entries[2:]
        changed = True
        first = txn.require_profile(first_entry.player_id)
        second = txn.require_profile(second_entry.player_id)
        notifications.extend(
            matches.create(
                txn,
                first,
                second,
                kind,
                stake_for(kind, settings),
                settings,
                rng,
                now,
            )
        )

    if changed:
        txn.put_queue(queue)
    return notifications


def _is_stale(txn: Transaction, player_id: str, kind: MatchKind) -> bool:
    profile = txn.profile(player_id)
    return profile is None or profile.queue_state != kind


def _refund(txn: Transaction, entry: QueueEntry) -> None:
    """Return the stake held by a queue entry that is being discarded."""

    if not entry.stake:
        return
    profile = txn.profile(entry.player_id)
    if profile is None:
        logger.error(
            "Cannot refund %s stars to missing profile %s", entry.stake, entry.player_id
        )
        return
    profile.stars += entry.stake
    txn.put_profile(profile)
