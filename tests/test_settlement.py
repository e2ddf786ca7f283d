import unittest
from decimal import Decimal

from application import matches, records
from application.profiles import STARS_DISTRIBUTED, TOTAL_MATCHES
from application.settings import GameSettings
from application.storage import Transaction
from domain.errors import SettlementIntegrityError
from domain.events import MatchFinished
from domain.models import Idle, MatchKind
from helpers import FakeClock, draw_round, make_service, play, register, win_round


class SettlementTests(unittest.TestCase):
    def setUp(self) -> None:
        self.service, self.store, self.sink, self.clock = make_service()
        register(self.service, "alice", "alice")
        register(self.service, "bob", "bob")

    def _start(self, kind: MatchKind) -> str:
        self.service.join_queue("alice", kind)
        self.service.join_queue("bob", kind)
        return self.service.profile("alice").active_match_id

    def _counter(self, name: str) -> Decimal:
        return Decimal(self.store.get(records.stats_key(name)).value or "0")

    def test_trophy_win_and_loss_floor(self) -> None:
        match_id = self._start(MatchKind.TROPHY)
        win_round(self.service, match_id, "alice")
        win_round(self.service, match_id, "alice")

        alice = self.service.profile("alice")
        bob = self.service.profile("bob")
        self.assertEqual(alice.trophies, 1)
        self.assertEqual(bob.trophies, 0)
        self.assertEqual((alice.wins, alice.matches_played), (1, 1))
        self.assertEqual((bob.wins, bob.matches_played), (0, 1))

        (finished,) = self.sink.events_for("bob", MatchFinished)
        self.assertEqual(finished.trophies_delta, 0)

    def test_trophy_loss_deducts_one(self) -> None:
        self.service.adjust_balance("bob", "trophies", "3")
        match_id = self._start(MatchKind.TROPHY)
        win_round(self.service, match_id, "alice")
        win_round(self.service, match_id, "alice")

        self.assertEqual(self.service.profile("bob").trophies, 2)

    def test_star_match_win(self) -> None:
        match_id = self._start(MatchKind.STAR)
        self.assertEqual(self.service.profile("alice").stars, Decimal("9"))

        win_round(self.service, match_id, "alice")
        win_round(self.service, match_id, "bob")
        win_round(self.service, match_id, "alice")

        self.assertEqual(self.service.profile("alice").stars, Decimal("10.5"))
        self.assertEqual(self.service.profile("bob").stars, Decimal("9"))
        self.assertEqual(self._counter(TOTAL_MATCHES), 1)
        self.assertEqual(self._counter(STARS_DISTRIBUTED), Decimal("0.5"))

        (finished,) = self.sink.events_for("alice", MatchFinished)
        self.assertEqual(finished.stars_delta, Decimal("1.5"))
        self.assertEqual((finished.round_wins, finished.opponent_round_wins), (2, 1))

    def test_star_match_draw_refunds_both(self) -> None:
        match_id = self._start(MatchKind.STAR)
        for _ in range(3):
            draw_round(self.service, match_id)

        for player_id in ("alice", "bob"):
            profile = self.service.profile(player_id)
            self.assertEqual(profile.stars, Decimal("10"))
            self.assertEqual(profile.wins, 0)
            self.assertEqual(profile.matches_played, 1)
        self.assertEqual(self._counter(STARS_DISTRIBUTED), 0)

    def test_surrender_in_star_match(self) -> None:
        self._start(MatchKind.STAR)

        self.service.surrender("alice")

        self.assertEqual(self.service.profile("alice").stars, Decimal("9"))
        self.assertEqual(self.service.profile("bob").stars, Decimal("10.5"))

    def test_missing_profile_aborts_settlement(self) -> None:
        match_id = self._start(MatchKind.TROPHY)
        self.store.delete(records.profile_key("bob"))

        with self.assertLogs("application.services", level="ERROR"):
            result = self.service.surrender("alice")

        self.assertIsInstance(result.error, SettlementIntegrityError)
        self.assertIsNotNone(self.service.match(match_id))


class ConcurrentSettlementTests(unittest.TestCase):
    """Two triggers racing to end the same match settle it once."""

    def setUp(self) -> None:
        self.service, self.store, self.sink, self.clock = make_service()
        self.settings = GameSettings()
        register(self.service, "alice")
        register(self.service, "bob")
        self.service.join_queue("alice", MatchKind.STAR)
        self.service.join_queue("bob", MatchKind.STAR)
        self.match_id = self.service.profile("alice").active_match_id
        # One round to alice, then set up her winning move in round 2.
        win_round(self.service, self.match_id, "alice")
        play(self.service, "bob", self.match_id, 3)
        play(self.service, "alice", self.match_id, 0)
        play(self.service, "bob", self.match_id, 4)
        play(self.service, "alice", self.match_id, 1)
        play(self.service, "bob", self.match_id, 8)

    def test_only_first_commit_settles(self) -> None:
        now = FakeClock().now
        winning_move = Transaction(self.store)
        matches.move(winning_move, "alice", self.match_id, 2, self.settings, now)
        surrender = Transaction(self.store)
        matches.surrender(surrender, "bob", self.settings, now)

        self.assertTrue(winning_move.commit())
        self.assertFalse(surrender.commit())

        alice = self.service.profile("alice")
        bob = self.service.profile("bob")
        self.assertEqual(alice.stars, Decimal("10.5"))
        self.assertEqual(bob.stars, Decimal("9"))
        self.assertEqual(alice.matches_played, 1)
        self.assertEqual(bob.matches_played, 1)
        self.assertEqual(alice.availability, Idle())

        retried = self.service.surrender("bob")
        self.assertFalse(retried.success)
        self.assertEqual(self.service.profile("alice").stars, Decimal("10.5"))


if __name__ == "__main__":
    unittest.main()
