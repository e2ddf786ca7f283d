"""
Withdrawal ledger.

Stars are debited when the request is made, which reserves them while the
admin processes the payout. Completing a request only flips its status.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Tuple

from domain.errors import (
    AlreadyCompletedError,
    BelowMinimumError,
    InsufficientBalanceError,
    InvalidAmountError,
    RequestNotFoundError,
)
from domain.events import Notification, WithdrawalCompleted, WithdrawalRequested
from domain.models import WithdrawalRequest, WithdrawalStatus
from domain.repositories import KeyValueStore

from . import records
from .profiles import parse_stars
from .settings import GameSettings
from .storage import Transaction

logger = logging.getLogger(__name__)


def request(
    txn: Transaction,
    player_id: str,
    amount,
    settings: GameSettings,
    now: datetime,
) -> Tuple[WithdrawalRequest, List[Notification]]:
    """Reserve `amount` stars and record a pending request for the admin."""

    amount = parse_stars(amount)
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than zero.")
    if amount < settings.min_withdrawal:
        raise BelowMinimumError(amount, settings.min_withdrawal)

    profile = txn.require_profile(player_id)
    if amount > profile.stars:
        raise InsufficientBalanceError(player_id, amount, profile.stars)

    profile.stars -= amount
    withdrawal = WithdrawalRequest(
        id=uuid.uuid4().hex,
        player_id=player_id,
        amount=amount,
        status=WithdrawalStatus.PENDING,
        requested_at=now,
    )
    txn.put_profile(profile)
    txn.put_withdrawal(withdrawal)

    logger.info("Withdrawal %s of %s requested by %s", withdrawal.id, amount, player_id)

    admin_chat = txn.read(records.ADMIN_CHAT_KEY)
    if not admin_chat:
        logger.warning("No admin chat registered; withdrawal %s not announced", withdrawal.id)
        return withdrawal, []
    event = WithdrawalRequested(withdrawal, profile.label)
    return withdrawal, [Notification(admin_chat, event)]


def complete(
    txn: Transaction,
    request_id: str,
    now: datetime,
) -> List[Notification]:
    withdrawal = txn.withdrawal(request_id)
    if withdrawal is None:
        raise RequestNotFoundError(request_id)
    if withdrawal.status == WithdrawalStatus.COMPLETED:
        raise AlreadyCompletedError(request_id)

    withdrawal.status = WithdrawalStatus.COMPLETED
    withdrawal.completed_at = now
    txn.put_withdrawal(withdrawal)

    logger.info("Withdrawal %s completed", request_id)
    return [Notification(withdrawal.player_id, WithdrawalCompleted(withdrawal))]


def list_pending(store: KeyValueStore) -> List[WithdrawalRequest]:
    pending = [
        records.withdrawal_from_record(entry.key, entry.value)
        for entry in store.list_by_prefix(records.WITHDRAWAL_PREFIX)
    ]
    pending = [w for w in pending if w.status == WithdrawalStatus.PENDING]
    pending.sort(key=lambda w: w.requested_at)
    return pending
