"""
Player and admin actions understood by the game core.

Transports decode their own payloads (callback data, slash commands, ...)
into one of these commands exactly once; the core never re-parses strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from .models import BalanceField, MatchKind


@dataclass(frozen=True)
class JoinQueue:
    player_id: str
    kind: MatchKind


@dataclass(frozen=True)
class LeaveQueue:
    player_id: str
    kind: MatchKind


@dataclass(frozen=True)
class Move:
    player_id: str
    match_id: str
    cell: int


@dataclass(frozen=True)
class Surrender:
    player_id: str


@dataclass(frozen=True)
class RequestWithdrawal:
    player_id: str
    amount: Decimal


@dataclass(frozen=True)
class CompleteWithdrawal:
    request_id: str


@dataclass(frozen=True)
class ClaimBonus:
    player_id: str


@dataclass(frozen=True)
class AdjustBalance:
    """Admin-only; the transport is responsible for authorization."""

    player_id: str
    field: BalanceField
    delta: Decimal


Command = Union[
    JoinQueue,
    LeaveQueue,
    Move,
    Surrender,
    RequestWithdrawal,
    CompleteWithdrawal,
    ClaimBonus,
    AdjustBalance,
]
