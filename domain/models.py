from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class MatchKind(str, Enum):
    """What a match is played for: ranking trophies or staked stars."""

    TROPHY = "trophy"
    STAR = "star"


class Mark(str, Enum):
    X = "X"
    O = "O"


class WithdrawalStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class BalanceField(str, Enum):
    TROPHIES = "trophies"
    STARS = "stars"


SUPPORTED_LANGUAGES = ("en", "ru")


@dataclass(frozen=True)
class Idle:
    """The player is neither waiting in a queue nor playing."""


@dataclass(frozen=True)
class Queued:
    kind: MatchKind


@dataclass(frozen=True)
class InMatch:
    match_id: str


# A player is in at most one of {queue, match}; the variant makes the
# "queued and playing at once" state unrepresentable.
PlayerAvailability = Union[Idle, Queued, InMatch]


@dataclass
class Profile:
    """
    Durable per-player record.

    Balances are mutated by settlement, queue stakes, the daily bonus,
    withdrawals and admin adjustments. Profiles are never deleted.
    """

    id: str
    display_name: Optional[str]
    language: str
    trophies: int
    stars: Decimal
    matches_played: int
    wins: int
    created_at: datetime
    last_daily_bonus_at: datetime
    last_active_at: datetime
    availability: PlayerAvailability = field(default_factory=Idle)

    @property
    def queue_state(self) -> Optional[MatchKind]:
        if isinstance(self.availability, Queued):
            return self.availability.kind
        return None

    @property
    def active_match_id(self) -> Optional[str]:
        if isinstance(self.availability, InMatch):
            return self.availability.match_id
        return None

    @property
    def label(self) -> str:
        """Human readable name used in leaderboards and admin messages."""

        if self.display_name:
            return f"@{self.display_name}"
        return f"User{self.id[-4:]}"


@dataclass
class QueueEntry:
    player_id: str
    stake: Decimal
    joined_at: datetime


@dataclass
class Queue:
    """FIFO list of players waiting for an opponent of a given kind."""

    kind: MatchKind
    entries: list = field(default_factory=list)

    def position_of(self, player_id: str) -> Optional[int]:
        for index, entry in enumerate(self.entries):
            if entry.player_id == player_id:
                return index
        return None


@dataclass
class Match:
    """
    One active best-of-N game between two distinct players.

    `players[0]` plays X and starts odd rounds, `players[1]` plays O and
    starts even rounds.
    """

    id: str
    kind: MatchKind
    players: Tuple[str, str]
    board: Tuple[Optional[Mark], ...]
    turn: str
    round: int
    round_wins: Dict[str, int]
    stake: Decimal
    created_at: datetime
    names: Dict[str, Optional[str]] = field(default_factory=dict)
    message_handles: Dict[str, object] = field(default_factory=dict)

    def mark_of(self, player_id: str) -> Mark:
        return Mark.X if player_id == self.players[0] else Mark.O

    def player_with(self, mark: Mark) -> str:
        return self.players[0] if mark == Mark.X else self.players[1]

    def opponent_of(self, player_id: str) -> str:
        first, second = self.players
        return second if player_id == first else first

    def starter_for_round(self, round_number: int) -> str:
        return self.players[0] if round_number % 2 == 1 else self.players[1]


@dataclass
class MatchOutcome:
    """Final result of a match. Both ids are None for a drawn match."""

    winner: Optional[str]
    loser: Optional[str]
    surrendered: bool = False

    @property
    def is_draw(self) -> bool:
        return self.winner is None


@dataclass
class WithdrawalRequest:
    id: str
    player_id: str
    amount: Decimal
    status: WithdrawalStatus
    requested_at: datetime
    completed_at: Optional[datetime] = None


@dataclass
class BotStats:
    total_users: int
    total_matches: int
    stars_distributed: Decimal
    active_24h: int
