from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from domain.commands import (
    AdjustBalance,
    ClaimBonus,
    Command,
    CompleteWithdrawal,
    JoinQueue,
    LeaveQueue,
    Move,
    RequestWithdrawal,
    Surrender,
)
from domain.errors import GameError, IntegrityError, TransientError
from domain.events import BoardUpdated, MatchStarted, Notification
from domain.models import BotStats, Match, MatchKind, Profile, WithdrawalRequest
from domain.repositories import KeyValueStore, NotificationSink

from . import matches, profiles, queue, withdrawals
from .settings import GameSettings
from .storage import Transaction, run_in_transaction

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExternalContext:
    """
    Information about the caller from a particular channel (Telegram, ...).

    The application layer never depends on concrete SDK types; it only sees
    this small context object.
    """

    provider: str
    player_id: str
    username: Optional[str] = None
    language: str = "en"


@dataclass
class OperationResult:
    """
    Discriminated result of a core operation.

    On success `value` carries the operation's return value; on failure
    `error` holds the typed `GameError` and nothing was changed.
    """

    success: bool
    value: Any = None
    error: Optional[GameError] = None
    error_message: Optional[str] = None
    notifications: List[Notification] = field(default_factory=list)

    @classmethod
    def ok(cls, value: Any = None, notifications: Optional[List[Notification]] = None) -> OperationResult:
        return cls(success=True, value=value, notifications=list(notifications or []))

    @classmethod
    def failed(cls, error: GameError) -> OperationResult:
        return cls(success=False, error=error, error_message=str(error))


class GameService:
    """
    Entry point used by transports.

    Every mutating operation runs as one optimistic transaction against the
    store. Notifications are delivered through the sink only after the
    transaction committed; delivery failures are logged and otherwise
    ignored.
    """

    def __init__(
        self,
        store: KeyValueStore,
        sink: NotificationSink,
        settings: Optional[GameSettings] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._sink = sink
        self.settings = settings or GameSettings()
        self._rng = rng or random.Random()
        self._clock = clock

    # ---- plumbing ----

    def _run(self, name: str, work: Callable[[Transaction], Any]) -> OperationResult:
        """
        Run `work` transactionally and turn its outcome into a result.

        `work` returns either a list of notifications, or a tuple of
        (value, notifications).
        """

        try:
            outcome = run_in_transaction(
                self._store, work, self.settings.max_commit_attempts
            )
        except IntegrityError as exc:
            logger.error("%s aborted by integrity error: %s", name, exc)
            return OperationResult.failed(exc)
        except TransientError as exc:
            logger.warning("%s failed transiently: %s", name, exc)
            return OperationResult.failed(exc)
        except GameError as exc:
            logger.info("%s rejected: %s", name, exc)
            return OperationResult.failed(exc)

        if isinstance(outcome, tuple):
            value, notifications = outcome
        else:
            value, notifications = None, outcome

        self._deliver(notifications)
        return OperationResult.ok(value, notifications)

    def _deliver(self, notifications: List[Notification]) -> None:
        handles: Dict[str, Dict[str, object]] = {}
        for notification in notifications:
            try:
                handle = self._sink.notify(notification.player_id, notification.event)
            except Exception:
                logger.exception(
                    "Failed to deliver %s to %s",
                    type(notification.event).__name__,
                    notification.player_id,
                )
                continue
            if isinstance(notification.event, (MatchStarted, BoardUpdated)) and handle is not None:
                match_id = notification.event.view.match_id
                handles.setdefault(match_id, {})[notification.player_id] = handle

        for match_id, match_handles in handles.items():
            try:
                run_in_transaction(
                    self._store,
                    lambda txn: matches.remember_message_handles(txn, match_id, match_handles),
                    self.settings.max_commit_attempts,
                )
            except GameError as exc:
                logger.warning("Could not store message handles for %s: %s", match_id, exc)

    # ---- profiles ----

    def register_player(self, ctx: ExternalContext) -> OperationResult:
        """Create the profile on first contact, otherwise record activity."""

        def work(txn: Transaction):
            now = self._clock()
            profile, created = profiles.get_or_create(
                txn, ctx.player_id, ctx.username, ctx.language, self.settings, now
            )
            if not created:
                profile = profiles.touch(txn, ctx.player_id, ctx.username, now)
            return profile, []

        return self._run("register_player", work)

    def set_language(self, player_id: str, language: str) -> OperationResult:
        return self._run(
            "set_language",
            lambda txn: (profiles.set_language(txn, player_id, language), []),
        )

    def claim_daily_bonus(self, player_id: str) -> OperationResult:
        return self._run(
            "claim_daily_bonus",
            lambda txn: profiles.claim_daily_bonus(
                txn, player_id, self.settings, self._clock()
            ),
        )

    def adjust_balance(self, player_id: str, field, delta) -> OperationResult:
        """Admin-only; authorization is enforced by the transport."""

        return self._run(
            "adjust_balance",
            lambda txn: (profiles.adjust_balance(txn, player_id, field, delta), []),
        )

    def profile(self, player_id: str) -> Optional[Profile]:
        return Transaction(self._store).profile(player_id)

    def language_of(self, player_id: str) -> str:
        profile = self.profile(player_id)
        return profile.language if profile is not None else "en"

    def leaderboard(self, field) -> List[Profile]:
        return profiles.leaderboard(self._store, field, self.settings.leaderboard_size)

    def stats(self) -> BotStats:
        return profiles.bot_stats(self._store, self._clock())

    def remember_admin_chat(self, chat_id: str) -> OperationResult:
        return self._run(
            "remember_admin_chat",
            lambda txn: (profiles.remember_admin_chat(txn, chat_id), []),
        )

    def admin_chat(self) -> Optional[str]:
        return profiles.admin_chat(self._store)

    # ---- queue ----

    def join_queue(self, player_id: str, kind: MatchKind) -> OperationResult:
        """Join the queue and immediately try to pair, in one transaction."""

        def work(txn: Transaction):
            now = self._clock()
            match_kind = queue.parse_kind(kind)
            notifications = queue.join(txn, player_id, match_kind, self.settings, now)
            notifications += queue.try_pair(txn, match_kind, self.settings, self._rng, now)
            return notifications

        return self._run("join_queue", work)

    def leave_queue(self, player_id: str, kind: MatchKind) -> OperationResult:
        return self._run(
            "leave_queue",
            lambda txn: queue.leave(txn, player_id, queue.parse_kind(kind)),
        )

    def try_pair(self, kind: MatchKind) -> OperationResult:
        return self._run(
            "try_pair",
            lambda txn: queue.try_pair(
                txn, queue.parse_kind(kind), self.settings, self._rng, self._clock()
            ),
        )

    # ---- matches ----

    def submit_move(self, player_id: str, match_id: str, cell: int) -> OperationResult:
        return self._run(
            "submit_move",
            lambda txn: matches.move(
                txn, player_id, match_id, cell, self.settings, self._clock()
            ),
        )

    def surrender(self, player_id: str) -> OperationResult:
        return self._run(
            "surrender",
            lambda txn: matches.surrender(txn, player_id, self.settings, self._clock()),
        )

    def match(self, match_id: str) -> Optional[Match]:
        return Transaction(self._store).match(match_id)

    def prune_finished_matches(self) -> int:
        """Forget finished matches older than the configured retention."""

        cutoff = self._clock() - timedelta(days=self.settings.finished_match_retention_days)
        removed = matches.prune_finished(self._store, cutoff)
        if removed:
            logger.info("Pruned %d finished matches older than %s", removed, cutoff)
        return removed

    # ---- withdrawals ----

    def request_withdrawal(self, player_id: str, amount) -> OperationResult:
        return self._run(
            "request_withdrawal",
            lambda txn: withdrawals.request(
                txn, player_id, amount, self.settings, self._clock()
            ),
        )

    def complete_withdrawal(self, request_id: str) -> OperationResult:
        return self._run(
            "complete_withdrawal",
            lambda txn: withdrawals.complete(txn, request_id, self._clock()),
        )

    def pending_withdrawals(self) -> List[WithdrawalRequest]:
        return withdrawals.list_pending(self._store)

    # ---- command dispatch ----

    def execute(self, command: Command) -> OperationResult:
        """Run a decoded transport command."""

        if isinstance(command, JoinQueue):
            return self.join_queue(command.player_id, command.kind)
        if isinstance(command, LeaveQueue):
            return self.leave_queue(command.player_id, command.kind)
        if isinstance(command, Move):
            return self.submit_move(command.player_id, command.match_id, command.cell)
        if isinstance(command, Surrender):
            return self.surrender(command.player_id)
        if isinstance(command, RequestWithdrawal):
            return self.request_withdrawal(command.player_id, command.amount)
        if isinstance(command, CompleteWithdrawal):
            return self.complete_withdrawal(command.request_id)
        if isinstance(command, ClaimBonus):
            return self.claim_daily_bonus(command.player_id)
        if isinstance(command, AdjustBalance):
            return self.adjust_balance(command.player_id, command.field, command.delta)
        raise TypeError(f"Unknown command: {command!r}")
