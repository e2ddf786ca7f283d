import unittest

from application.storage import Transaction
from domain.errors import (
    CellOccupiedError,
    IllegalMoveError,
    MatchInactiveError,
    MatchNotFoundError,
    NotInMatchError,
    NotYourTurnError,
)
from domain.events import BoardUpdated, MatchFinished, MatchStarted, PlayerResult, RoundFinished
from domain.models import Idle, Mark, MatchKind
from helpers import (
    FixedRandom,
    RecordingSink,
    draw_round,
    make_service,
    play,
    register,
    win_round,
)


class ResendingSink(RecordingSink):
    """Answers the first board update for bob with a freshly sent message."""

    def __init__(self) -> None:
        super().__init__()
        self.resent = False

    def notify(self, player_id, event):
        handle = super().notify(player_id, event)
        if isinstance(event, BoardUpdated) and player_id == "bob" and not self.resent:
            self.resent = True
            return 900
        return handle


class MatchTests(unittest.TestCase):
    def setUp(self) -> None:
        self.service, self.store, self.sink, self.clock = make_service()
        for player_id in ("alice", "bob", "carol"):
            register(self.service, player_id, player_id)
        self.service.join_queue("alice", MatchKind.TROPHY)
        self.service.join_queue("bob", MatchKind.TROPHY)
        self.match_id = self.service.profile("alice").active_match_id

    def _match(self):
        return self.service.match(self.match_id)

    def test_new_match_starts_at_round_one(self) -> None:
        match = self._match()

        self.assertEqual(match.round, 1)
        self.assertEqual(match.turn, "alice")
        self.assertEqual(match.mark_of("alice"), Mark.X)
        self.assertEqual(match.mark_of("bob"), Mark.O)
        self.assertEqual(match.round_wins, {"alice": 0, "bob": 0})
        self.assertTrue(all(cell is None for cell in match.board))

        (started,) = self.sink.events_for("bob", MatchStarted)
        self.assertFalse(started.view.your_turn)
        self.assertEqual(started.view.opponent_id, "alice")
        self.assertEqual(started.view.mark, Mark.O)

    def test_first_starter_is_random(self) -> None:
        service, _, _, _ = make_service(rng=FixedRandom(0.9))
        register(service, "alice")
        register(service, "bob")
        service.join_queue("alice", MatchKind.TROPHY)
        service.join_queue("bob", MatchKind.TROPHY)

        match = service.match(service.profile("alice").active_match_id)

        self.assertEqual(match.players, ("bob", "alice"))
        self.assertEqual(match.turn, "bob")

    def test_message_handles_are_remembered(self) -> None:
        handles = self._match().message_handles

        self.assertEqual(set(handles), {"alice", "bob"})
        play(self.service, "alice", self.match_id, 4)
        (update,) = self.sink.events_for("bob", BoardUpdated)
        self.assertEqual(update.message_handle, handles["bob"])

    def test_move_alternates_turns(self) -> None:
        play(self.service, "alice", self.match_id, 4)

        match = self._match()
        self.assertEqual(match.board[4], Mark.X)
        self.assertEqual(match.turn, "bob")

        result = self.service.submit_move("alice", self.match_id, 0)
        self.assertIsInstance(result.error, NotYourTurnError)

    def test_resent_move_reports_occupied_cell(self) -> None:
        play(self.service, "alice", self.match_id, 4)
        before = self._match()

        result = self.service.submit_move("alice", self.match_id, 4)

        self.assertIsInstance(result.error, CellOccupiedError)
        self.assertEqual(self._match().board, before.board)

    def test_illegal_cells_are_rejected(self) -> None:
        for cell in (-1, 9):
            with self.subTest(cell=cell):
                result = self.service.submit_move("alice", self.match_id, cell)
                self.assertIsInstance(result.error, IllegalMoveError)

    def test_outsider_cannot_move(self) -> None:
        result = self.service.submit_move("carol", self.match_id, 0)
        self.assertIsInstance(result.error, NotInMatchError)

    def test_unknown_match(self) -> None:
        result = self.service.submit_move("alice", "nope", 0)
        self.assertIsInstance(result.error, MatchNotFoundError)

    def test_round_win_advances_round_and_swaps_starter(self) -> None:
        win_round(self.service, self.match_id, "bob")

        match = self._match()
        self.assertEqual(match.round, 2)
        self.assertEqual(match.round_wins, {"alice": 0, "bob": 1})
        self.assertEqual(match.turn, "bob")
        self.assertTrue(all(cell is None for cell in match.board))

        (finished,) = self.sink.events_for("bob", RoundFinished)
        self.assertEqual(finished.result, PlayerResult.WIN)
        self.assertEqual(finished.round, 1)

    def test_round_wins_never_exceed_rounds_played(self) -> None:
        draw_round(self.service, self.match_id)
        match = self._match()
        self.assertEqual(match.round, 2)
        self.assertLessEqual(sum(match.round_wins.values()), match.round - 1)

        win_round(self.service, self.match_id, "alice")
        match = self._match()
        self.assertEqual(match.round, 3)
        self.assertEqual(sum(match.round_wins.values()), 1)

    def test_match_ends_when_majority_reached(self) -> None:
        win_round(self.service, self.match_id, "alice")
        win_round(self.service, self.match_id, "alice")

        self.assertIsNone(self._match())
        for player_id, expected in (("alice", PlayerResult.WIN), ("bob", PlayerResult.LOSS)):
            (finished,) = self.sink.events_for(player_id, MatchFinished)
            self.assertEqual(finished.result, expected)
            self.assertEqual(self.service.profile(player_id).availability, Idle())

    def test_all_rounds_drawn_is_match_draw(self) -> None:
        for _ in range(3):
            draw_round(self.service, self.match_id)

        (finished,) = self.sink.events_for("alice", MatchFinished)
        self.assertEqual(finished.result, PlayerResult.DRAW)
        self.assertEqual(self.service.profile("alice").trophies, 0)

    def test_moves_after_end_are_rejected(self) -> None:
        win_round(self.service, self.match_id, "alice")
        win_round(self.service, self.match_id, "alice")

        result = self.service.submit_move("bob", self.match_id, 4)

        self.assertIsInstance(result.error, MatchInactiveError)
        self.assertEqual(len(self.sink.events_for("alice", MatchFinished)), 1)

    def test_surrender_ends_match_for_opponent(self) -> None:
        result = self.service.surrender("bob")

        self.assertTrue(result.success)
        (finished,) = self.sink.events_for("alice", MatchFinished)
        self.assertEqual(finished.result, PlayerResult.WIN)
        self.assertTrue(finished.surrendered)
        self.assertTrue(Transaction(self.store).match_finished(self.match_id))

    def test_surrender_without_match(self) -> None:
        result = self.service.surrender("carol")
        self.assertIsInstance(result.error, MatchNotFoundError)

    def test_old_finished_matches_are_pruned(self) -> None:
        self.service.surrender("bob")
        self.clock.advance(days=6)
        self.assertEqual(self.service.prune_finished_matches(), 0)
        self.assertIsInstance(
            self.service.submit_move("alice", self.match_id, 0).error, MatchInactiveError
        )

        self.clock.advance(days=2)
        self.assertEqual(self.service.prune_finished_matches(), 1)

        self.assertFalse(Transaction(self.store).match_finished(self.match_id))
        self.assertIsInstance(
            self.service.submit_move("alice", self.match_id, 0).error, MatchNotFoundError
        )

    def test_active_matches_are_never_pruned(self) -> None:
        self.clock.advance(days=30)

        self.assertEqual(self.service.prune_finished_matches(), 0)
        self.assertIsNotNone(self._match())


class ReplacedBoardMessageTests(unittest.TestCase):
    """A board message that had to be re-sent becomes the one edited next."""

    def setUp(self) -> None:
        self.sink = ResendingSink()
        self.service, _, _, _ = make_service(sink=self.sink)
        register(self.service, "alice")
        register(self.service, "bob")
        self.service.join_queue("alice", MatchKind.TROPHY)
        self.service.join_queue("bob", MatchKind.TROPHY)
        self.match_id = self.service.profile("alice").active_match_id

    def test_new_handle_replaces_dead_one(self) -> None:
        started = self.service.match(self.match_id).message_handles["bob"]

        play(self.service, "alice", self.match_id, 4)
        self.assertEqual(self.service.match(self.match_id).message_handles["bob"], 900)

        play(self.service, "bob", self.match_id, 0)
        updates = self.sink.events_for("bob", BoardUpdated)
        self.assertEqual([u.message_handle for u in updates], [started, 900])


if __name__ == "__main__":
    unittest.main()
