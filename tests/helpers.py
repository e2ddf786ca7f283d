from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from application.services import ExternalContext, GameService
from application.settings import GameSettings
from domain.events import Event, MatchStarted
from infrastructure.db.kv_store_memory import InMemoryKeyValueStore


class RecordingSink:
    """Collects delivered events; hands out increasing message ids for boards."""

    def __init__(self) -> None:
        self.delivered: List[Tuple[str, Event]] = []
        self._next_handle = 100

    def notify(self, player_id: str, event: Event) -> Optional[int]:
        self.delivered.append((player_id, event))
        if isinstance(event, MatchStarted):
            self._next_handle += 1
            return self._next_handle
        return None

    def events_for(self, player_id: str, event_type=None) -> List[Event]:
        return [
            event
            for pid, event in self.delivered
            if pid == player_id and (event_type is None or isinstance(event, event_type))
        ]


class FailingSink:
    def notify(self, player_id: str, event: Event) -> None:
        raise ConnectionError("telegram is down")


class FixedRandom:
    """Stand-in for random.Random; 0.0 keeps the pairing order, 0.9 swaps it."""

    def __init__(self, value: float = 0.0) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_service(sink=None, settings=None, rng=None, store=None):
    store = store or InMemoryKeyValueStore()
    sink = sink or RecordingSink()
    clock = FakeClock()
    service = GameService(
        store,
        sink,
        settings=settings or GameSettings(),
        rng=rng or FixedRandom(0.0),
        clock=clock,
    )
    return service, store, sink, clock


def register(service: GameService, player_id: str, username: Optional[str] = None):
    result = service.register_player(
        ExternalContext(provider="telegram", player_id=player_id, username=username)
    )
    assert result.success, result.error_message
    return result.value


def play(service: GameService, player_id: str, match_id: str, cell: int):
    result = service.submit_move(player_id, match_id, cell)
    assert result.success, result.error_message
    return result


def win_round(service: GameService, match_id: str, winner: str) -> None:
    """Play one round so that `winner` completes the top row."""

    match = service.match(match_id)
    loser = match.opponent_of(winner)
    if match.turn == winner:
        moves = [(winner, 0), (loser, 3), (winner, 1), (loser, 4), (winner, 2)]
    else:
        moves = [(loser, 3), (winner, 0), (loser, 4), (winner, 1), (loser, 8), (winner, 2)]
    for player_id, cell in moves:
        play(service, player_id, match_id, cell)


def draw_round(service: GameService, match_id: str) -> None:
    """Play one round that fills the board without a line."""

    match = service.match(match_id)
    starter = match.turn
    other = match.opponent_of(starter)
    moves = [
        (starter, 0),
        (other, 1),
        (starter, 2),
        (other, 4),
        (starter, 3),
        (other, 5),
        (starter, 7),
        (other, 6),
        (starter, 8),
    ]
    for player_id, cell in moves:
        play(service, player_id, match_id, cell)
