from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from domain.commands import Command, CompleteWithdrawal, JoinQueue, LeaveQueue, Move, Surrender
from domain.models import SUPPORTED_LANGUAGES, MatchKind


@dataclass(frozen=True)
class ChooseLanguage:
    language: str


@dataclass(frozen=True)
class MenuAction:
    """Navigation that only reads state: profile, leaderboards, admin views."""

    name: str


MENU_ACTIONS = (
    "main",
    "profile",
    "top_trophies",
    "top_stars",
    "withdraw",
    "admin_stats",
    "admin_pending",
)

Callback = Union[Command, ChooseLanguage, MenuAction]


def encode_language(language: str) -> str:
    """Format: lang:{code}"""

    return f"lang:{language}"


def encode_menu(name: str) -> str:
    """Format: menu:{name}"""

    return f"menu:{name}"


def encode_join(kind: MatchKind) -> str:
    """Format: play:{kind}"""

    return f"play:{kind.value}"


def encode_leave(kind: MatchKind) -> str:
    """Format: cancel:{kind}"""

    return f"cancel:{kind.value}"


def encode_move(match_id: str, cell: int) -> str:
    """Format: mv:{match_id}:{cell}"""

    return f"mv:{match_id}:{cell}"


def encode_surrender() -> str:
    return "surrender"


def encode_complete_withdrawal(request_id: str) -> str:
    """Format: complete:{request_id}"""

    return f"complete:{request_id}"


def parse_callback(data: str, player_id: str) -> Callback:
    """
    Decode callback data into a core command or a navigation action.

    Raises ValueError for anything that does not match a known format; the
    result is never re-parsed further down.
    """

    parts = data.split(":")
    head = parts[0]

    if head == "surrender" and len(parts) == 1:
        return Surrender(player_id=player_id)

    if head == "lang" and len(parts) == 2 and parts[1] in SUPPORTED_LANGUAGES:
        return ChooseLanguage(language=parts[1])

    if head == "menu" and len(parts) == 2 and parts[1] in MENU_ACTIONS:
        return MenuAction(name=parts[1])

    if head in ("play", "cancel") and len(parts) == 2:
        try:
            kind = MatchKind(parts[1])
        except ValueError:
            raise ValueError(f"Invalid match kind in callback data: {data}") from None
        if head == "play":
            return JoinQueue(player_id=player_id, kind=kind)
        return LeaveQueue(player_id=player_id, kind=kind)

    if head == "mv" and len(parts) == 3 and parts[1]:
        try:
            cell = int(parts[2])
        except ValueError:
            raise ValueError(f"Invalid cell in callback data: {data}") from None
        return Move(player_id=player_id, match_id=parts[1], cell=cell)

    if head == "complete" and len(parts) == 2 and parts[1]:
        return CompleteWithdrawal(request_id=parts[1])

    raise ValueError(f"Invalid callback data: {data}")
