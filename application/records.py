"""
Key layout and JSON record mapping for everything kept in the store.

Decimals are stored as strings and datetimes as ISO-8601 so that records
survive any JSON-capable backend unchanged.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional, TypeVar

from domain.errors import CorruptRecordError
from domain.models import (
    Idle,
    InMatch,
    Mark,
    Match,
    MatchKind,
    MatchOutcome,
    PlayerAvailability,
    Profile,
    Queue,
    QueueEntry,
    Queued,
    WithdrawalRequest,
    WithdrawalStatus,
)

T = TypeVar("T")

PROFILE_PREFIX = "profiles:"
MATCH_PREFIX = "matches:"
FINISHED_MATCH_PREFIX = "finished_matches:"
QUEUE_PREFIX = "queues:"
WITHDRAWAL_PREFIX = "withdrawals:"
STATS_PREFIX = "stats:"
ADMIN_CHAT_KEY = "config:admin_chat"


def profile_key(player_id: str) -> str:
    return f"{PROFILE_PREFIX}{player_id}"


def match_key(match_id: str) -> str:
    return f"{MATCH_PREFIX}{match_id}"


def finished_match_key(match_id: str) -> str:
    return f"{FINISHED_MATCH_PREFIX}{match_id}"


def queue_key(kind: MatchKind) -> str:
    return f"{QUEUE_PREFIX}{kind.value}"


def withdrawal_key(request_id: str) -> str:
    return f"{WITHDRAWAL_PREFIX}{request_id}"


def stats_key(name: str) -> str:
    return f"{STATS_PREFIX}{name}"


def _decode(key: str, value: Any, builder: Callable[[Dict[str, Any]], T]) -> T:
    try:
        return builder(value)
    except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
        raise CorruptRecordError(key, str(exc)) from exc


def _time(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


# ============ Profile ============

def _availability_to_record(availability: PlayerAvailability) -> Dict[str, Any]:
    if isinstance(availability, Queued):
        return {"state": "queued", "kind": availability.kind.value}
    if isinstance(availability, InMatch):
        return {"state": "in_match", "match_id": availability.match_id}
    return {"state": "idle"}


def _availability_from_record(value: Dict[str, Any]) -> PlayerAvailability:
    state = value["state"]
    if state == "queued":
        return Queued(MatchKind(value["kind"]))
    if state == "in_match":
        return InMatch(value["match_id"])
    if state == "idle":
        return Idle()
    raise ValueError(f"unknown availability state {state!r}")


def profile_to_record(profile: Profile) -> Dict[str, Any]:
    return {
        "id": profile.id,
        "display_name": profile.display_name,
        "language": profile.language,
        "trophies": profile.trophies,
        "stars": str(profile.stars),
        "matches_played": profile.matches_played,
        "wins": profile.wins,
        "created_at": profile.created_at.isoformat(),
        "last_daily_bonus_at": profile.last_daily_bonus_at.isoformat(),
        "last_active_at": profile.last_active_at.isoformat(),
        "availability": _availability_to_record(profile.availability),
    }


def profile_from_record(key: str, value: Dict[str, Any]) -> Profile:
    return _decode(
        key,
        value,
        lambda v: Profile(
            id=v["id"],
            display_name=v.get("display_name"),
            language=v["language"],
            trophies=int(v["trophies"]),
            stars=Decimal(v["stars"]),
            matches_played=int(v["matches_played"]),
            wins=int(v["wins"]),
            created_at=_time(v["created_at"]),
            last_daily_bonus_at=_time(v["last_daily_bonus_at"]),
            last_active_at=_time(v["last_active_at"]),
            availability=_availability_from_record(v["availability"]),
        ),
    )


# ============ Queue ============

def queue_to_record(queue: Queue) -> Dict[str, Any]:
    return {
        "kind": queue.kind.value,
        "entries": [
            {
                "player_id": entry.player_id,
                "stake": str(entry.stake),
                "joined_at": entry.joined_at.isoformat(),
            }
            for entry in queue.entries
        ],
    }


def queue_from_record(key: str, kind: MatchKind, value: Optional[Dict[str, Any]]) -> Queue:
    if value is None:
        return Queue(kind=kind)
    return _decode(
        key,
        value,
        lambda v: Queue(
            kind=MatchKind(v["kind"]),
            entries=[
                QueueEntry(
                    player_id=e["player_id"],
                    stake=Decimal(e["stake"]),
                    joined_at=_time(e["joined_at"]),
                )
                for e in v["entries"]
            ],
        ),
    )


# ============ Match ============

def match_to_record(match: Match) -> Dict[str, Any]:
    return {
        "id": match.id,
        "kind": match.kind.value,
        "players": list(match.players),
        "board": [cell.value if cell is not None else None for cell in match.board],
        "turn": match.turn,
        "round": match.round,
        "round_wins": dict(match.round_wins),
        "stake": str(match.stake),
        "created_at": match.created_at.isoformat(),
        "names": dict(match.names),
        "message_handles": dict(match.message_handles),
    }


def match_from_record(key: str, value: Dict[str, Any]) -> Match:
    def build(v: Dict[str, Any]) -> Match:
        first, second = v["players"]
        return Match(
            id=v["id"],
            kind=MatchKind(v["kind"]),
            players=(first, second),
            board=tuple(Mark(cell) if cell is not None else None for cell in v["board"]),
            turn=v["turn"],
            round=int(v["round"]),
            round_wins={pid: int(count) for pid, count in v["round_wins"].items()},
            stake=Decimal(v["stake"]),
            created_at=_time(v["created_at"]),
            names=dict(v.get("names", {})),
            message_handles=dict(v.get("message_handles", {})),
        )

    return _decode(key, value, build)


def finished_match_record(
    match: Match, outcome: MatchOutcome, finished_at: datetime
) -> Dict[str, Any]:
    """Tombstone kept after settlement so late moves can be told apart."""

    return {
        "id": match.id,
        "kind": match.kind.value,
        "winner": outcome.winner,
        "loser": outcome.loser,
        "surrendered": outcome.surrendered,
        "finished_at": finished_at.isoformat(),
    }


def finished_match_time(key: str, value: Dict[str, Any]) -> datetime:
    return _decode(key, value, lambda v: _time(v["finished_at"]))


# ============ Withdrawal ============

def withdrawal_to_record(request: WithdrawalRequest) -> Dict[str, Any]:
    return {
        "id": request.id,
        "player_id": request.player_id,
        "amount": str(request.amount),
        "status": request.status.value,
        "requested_at": request.requested_at.isoformat(),
        "completed_at": request.completed_at.isoformat() if request.completed_at else None,
    }


def withdrawal_from_record(key: str, value: Dict[str, Any]) -> WithdrawalRequest:
    return _decode(
        key,
        value,
        lambda v: WithdrawalRequest(
            id=v["id"],
            player_id=v["player_id"],
            amount=Decimal(v["amount"]),
            status=WithdrawalStatus(v["status"]),
            requested_at=_time(v["requested_at"]),
            completed_at=_time(v.get("completed_at")),
        ),
    )
