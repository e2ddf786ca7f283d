"""
Notifications produced by the core for delivery to a single player.

Events are plain data built from already-committed state. Turning them into
text, keyboards or edits of earlier messages is the transport's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple, Union

from .models import Mark, Match, MatchKind, WithdrawalRequest


class PlayerResult(str, Enum):
    WIN = "win"
    LOSS = "loss"
    DRAW = "draw"


@dataclass(frozen=True)
class MatchView:
    """A match as seen by one of its players."""

    match_id: str
    kind: MatchKind
    round: int
    round_limit: int
    board: Tuple[Optional[Mark], ...]
    mark: Mark
    your_turn: bool
    round_wins: int
    opponent_round_wins: int
    opponent_id: str
    opponent_name: Optional[str]


def view_for(match: Match, player_id: str, round_limit: int) -> MatchView:
    opponent_id = match.opponent_of(player_id)
    return MatchView(
        match_id=match.id,
        kind=match.kind,
        round=match.round,
        round_limit=round_limit,
        board=tuple(match.board),
        mark=match.mark_of(player_id),
        your_turn=match.turn == player_id,
        round_wins=match.round_wins[player_id],
        opponent_round_wins=match.round_wins[opponent_id],
        opponent_id=opponent_id,
        opponent_name=match.names.get(opponent_id),
    )


@dataclass(frozen=True)
class QueueJoined:
    kind: MatchKind
    stake: Decimal


@dataclass(frozen=True)
class QueueLeft:
    kind: MatchKind
    refunded: Decimal


@dataclass(frozen=True)
class MatchStarted:
    view: MatchView


@dataclass(frozen=True)
class BoardUpdated:
    view: MatchView
    message_handle: object = None


@dataclass(frozen=True)
class RoundFinished:
    round: int
    result: PlayerResult
    round_wins: int
    opponent_round_wins: int


@dataclass(frozen=True)
class MatchFinished:
    match_id: str
    kind: MatchKind
    result: PlayerResult
    trophies_delta: int
    stars_delta: Decimal
    round_wins: int
    opponent_round_wins: int
    surrendered: bool = False


@dataclass(frozen=True)
class BonusGranted:
    amount: Decimal
    stars: Decimal


@dataclass(frozen=True)
class WithdrawalRequested:
    """Sent to the admin chat when a player asks for a payout."""

    request: WithdrawalRequest
    player_label: str


@dataclass(frozen=True)
class WithdrawalCompleted:
    request: WithdrawalRequest


Event = Union[
    QueueJoined,
    QueueLeft,
    MatchStarted,
    BoardUpdated,
    RoundFinished,
    MatchFinished,
    BonusGranted,
    WithdrawalRequested,
    WithdrawalCompleted,
]


@dataclass(frozen=True)
class Notification:
    """An event addressed to one player (or chat)."""

    player_id: str
    event: Event
