"""
Match state machine.

    AwaitingMove(turn) --move--> AwaitingMove(other)          board not decided
                       --move--> RoundOver --> AwaitingMove   next round
                                           --> MatchOver      settled, deleted
    any state --surrender--> MatchOver

All functions except `prune_finished` run inside a `Transaction` and return
the notifications to deliver once it has been committed.
"""

from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from domain import board as board_engine
from domain.errors import (
    MatchInactiveError,
    MatchNotFoundError,
    NotInMatchError,
    NotYourTurnError,
    SelfPairingError,
)
from domain.events import (
    BoardUpdated,
    MatchFinished,
    MatchStarted,
    Notification,
    PlayerResult,
    RoundFinished,
    view_for,
)
from domain.models import InMatch, Match, MatchKind, MatchOutcome, Profile
from domain.repositories import KeyValueStore

from . import records
from .settings import GameSettings
from .settlement import settle
from .storage import Transaction

logger = logging.getLogger(__name__)


def create(
    txn: Transaction,
    first: Profile,
    second: Profile,
    kind: MatchKind,
    stake: Decimal,
    settings: GameSettings,
    rng: random.Random,
    now: datetime,
) -> List[Notification]:
    """
    Start a match between two queued players.

    The first-round starter is drawn uniformly at random and becomes
    `players[0]`; afterwards the starter alternates with round parity.
    """

    if first.id == second.id:
        raise SelfPairingError(first.id)

    if rng.random() >= 0.5:
        first, second = second, first

    match = Match(
        id=uuid.uuid4().hex,
        kind=kind,
        players=(first.id, second.id),
        board=board_engine.empty_board(),
        turn=first.id,
        round=1,
        round_wins={first.id: 0, second.id: 0},
        stake=stake,
        created_at=now,
        names={first.id: first.display_name, second.id: second.display_name},
    )
    txn.put_match(match)

    for profile in (first, second):
        profile.availability = InMatch(match.id)
        txn.put_profile(profile)

    logger.info(
        "Created %s match %s: %s vs %s", kind.value, match.id, first.id, second.id
    )
    return [
        Notification(pid, MatchStarted(view_for(match, pid, settings.round_limit)))
        for pid in match.players
    ]


def _load_active(txn: Transaction, match_id: str) -> Match:
    match = txn.match(match_id)
    if match is None:
        if txn.match_finished(match_id):
            raise MatchInactiveError(match_id)
        raise MatchNotFoundError(match_id)
    return match


def _finish(
    txn: Transaction,
    match: Match,
    outcome: MatchOutcome,
    settings: GameSettings,
    now: datetime,
) -> List[Notification]:
    deltas = settle(txn, match, outcome, settings, now)
    notifications = []
    for pid in match.players:
        if outcome.is_draw:
            result = PlayerResult.DRAW
        elif pid == outcome.winner:
            result = PlayerResult.WIN
        else:
            result = PlayerResult.LOSS
        opponent = match.opponent_of(pid)
        notifications.append(
            Notification(
                pid,
                MatchFinished(
                    match_id=match.id,
                    kind=match.kind,
                    result=result,
                    trophies_delta=deltas[pid].trophies,
                    stars_delta=deltas[pid].stars,
                    round_wins=match.round_wins[pid],
                    opponent_round_wins=match.round_wins[opponent],
                    surrendered=outcome.surrendered,
                ),
            )
        )
    return notifications


def _board_updates(match: Match, settings: GameSettings) -> List[Notification]:
    return [
        Notification(
            pid,
            BoardUpdated(
                view_for(match, pid, settings.round_limit),
                message_handle=match.message_handles.get(pid),
            ),
        )
        for pid in match.players
    ]


def _match_outcome(match: Match) -> MatchOutcome:
    first, second = match.players
    if match.round_wins[first] > match.round_wins[second]:
        return MatchOutcome(winner=first, loser=second)
    if match.round_wins[second] > match.round_wins[first]:
        return MatchOutcome(winner=second, loser=first)
    return MatchOutcome(winner=None, loser=None)


def move(
    txn: Transaction,
    player_id: str,
    match_id: str,
    cell: int,
    settings: GameSettings,
    now: datetime,
) -> List[Notification]:
    match = _load_active(txn, match_id)
    if player_id not in match.players:
        raise NotInMatchError(player_id, match_id)
    # Cell checks come first so a re-sent move reports the occupied cell.
    board = board_engine.apply_move(match.board, cell, match.mark_of(player_id))
    if match.turn != player_id:
        raise NotYourTurnError(player_id)

    match.board = board
    evaluation = board_engine.evaluate(match.board)

    if not evaluation.is_terminal:
        match.turn = match.opponent_of(player_id)
        txn.put_match(match)
        return _board_updates(match, settings)

    round_winner: Optional[str] = None
    if evaluation.winner is not None:
        round_winner = match.player_with(evaluation.winner)
        match.round_wins[round_winner] += 1

    notifications = []
    for pid in match.players:
        if round_winner is None:
            result = PlayerResult.DRAW
        elif round_winner == pid:
            result = PlayerResult.WIN
        else:
            result = PlayerResult.LOSS
        notifications.append(
            Notification(
                pid,
                RoundFinished(
                    round=match.round,
                    result=result,
                    round_wins=match.round_wins[pid],
                    opponent_round_wins=match.round_wins[match.opponent_of(pid)],
                ),
            )
        )

    decided = max(match.round_wins.values()) >= settings.rounds_to_win
    if decided or match.round >= settings.round_limit:
        outcome = _match_outcome(match)
        return notifications + _finish(txn, match, outcome, settings, now)

    match.round += 1
    match.board = board_engine.empty_board()
    match.turn = match.starter_for_round(match.round)
    txn.put_match(match)
    logger.debug("Match %s advanced to round %d", match.id, match.round)
    return notifications + _board_updates(match, settings)


def surrender(
    txn: Transaction,
    player_id: str,
    settings: GameSettings,
    now: datetime,
) -> List[Notification]:
    """Forfeit the player's active match regardless of the round tally."""

    profile = txn.require_profile(player_id)
    match_id = profile.active_match_id
    if match_id is None:
        raise MatchNotFoundError(f"for player {player_id}")

    match = _load_active(txn, match_id)
    if player_id not in match.players:
        raise NotInMatchError(player_id, match_id)

    outcome = MatchOutcome(
        winner=match.opponent_of(player_id), loser=player_id, surrendered=True
    )
    logger.info("Player %s surrendered match %s", player_id, match_id)
    return _finish(txn, match, outcome, settings, now)


def remember_message_handles(
    txn: Transaction, match_id: str, handles: Dict[str, object]
) -> None:
    """Store the transport's message handles so later updates edit in place."""

    match = txn.match(match_id)
    if match is None:
        return
    for player_id, handle in handles.items():
        if player_id in match.players and handle is not None:
            match.message_handles[player_id] = handle
    txn.put_match(match)


def prune_finished(store: KeyValueStore, cutoff: datetime) -> int:
    """
    Delete tombstones of matches settled before `cutoff`. Returns how many
    were removed. Moves for a pruned match report `MatchNotFoundError`.
    """

    removed = 0
    for entry in store.list_by_prefix(records.FINISHED_MATCH_PREFIX):
        if records.finished_match_time(entry.key, entry.value) >= cutoff:
            continue
        if store.commit({entry.key: entry.version}, {entry.key: None}):
            removed += 1
    return removed
