import unittest
from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

from telebot.apihelper import ApiTelegramException

from domain.board import empty_board
from domain.events import (
    BoardUpdated,
    MatchFinished,
    MatchStarted,
    MatchView,
    PlayerResult,
    QueueJoined,
    WithdrawalRequested,
)
from domain.models import Mark, MatchKind, WithdrawalRequest, WithdrawalStatus
from interfaces.telegram.messages import render_event
from interfaces.telegram.notifier import TelegramNotifier


class FakeBot:
    def __init__(self, fail_edits: bool = False) -> None:
        self.sent = []
        self.edited = []
        self.fail_edits = fail_edits

    def send_message(self, chat_id, body, parse_mode=None, reply_markup=None):
        self.sent.append((chat_id, body, reply_markup))
        return SimpleNamespace(message_id=len(self.sent))

    def edit_message_text(self, body, chat_id=None, message_id=None, parse_mode=None, reply_markup=None):
        if self.fail_edits:
            raise ApiTelegramException(
                "editMessageText",
                None,
                {"error_code": 400, "description": "message to edit not found"},
            )
        self.edited.append((chat_id, message_id, body))


def make_view(your_turn: bool = True) -> MatchView:
    board = list(empty_board())
    board[4] = Mark.X
    return MatchView(
        match_id="m1",
        kind=MatchKind.STAR,
        round=2,
        round_limit=3,
        board=tuple(board),
        mark=Mark.O,
        your_turn=your_turn,
        round_wins=1,
        opponent_round_wins=0,
        opponent_id="42",
        opponent_name="neo",
    )


class TelegramNotifierTests(unittest.TestCase):
    def setUp(self) -> None:
        self.bot = FakeBot()
        self.notifier = TelegramNotifier(self.bot, lambda player_id: "en")

    def test_match_started_returns_message_id(self) -> None:
        handle = self.notifier.notify("7", MatchStarted(make_view()))

        self.assertEqual(handle, 1)
        chat_id, body, markup = self.bot.sent[0]
        self.assertEqual(chat_id, "7")
        self.assertIn("Round 2/3", body)
        self.assertIn("@neo", body)
        buttons = [button for row in markup.keyboard for button in row]
        self.assertEqual(len(buttons), 10)
        self.assertEqual(buttons[0].callback_data, "mv:m1:0")
        self.assertEqual(buttons[-1].callback_data, "surrender")

    def test_board_update_edits_in_place(self) -> None:
        handle = self.notifier.notify("7", BoardUpdated(make_view(False), message_handle=5))

        self.assertEqual(self.bot.sent, [])
        self.assertEqual(self.bot.edited[0][:2], ("7", 5))
        self.assertIsNone(handle)

    def test_board_update_falls_back_to_new_message(self) -> None:
        bot = FakeBot(fail_edits=True)
        notifier = TelegramNotifier(bot, lambda player_id: "en")

        with self.assertLogs("interfaces.telegram.notifier", level="WARNING"):
            handle = notifier.notify("7", BoardUpdated(make_view(), message_handle=5))

        self.assertEqual(len(bot.sent), 1)
        self.assertEqual(handle, 1)

    def test_queue_joined_offers_cancel(self) -> None:
        self.notifier.notify("7", QueueJoined(kind=MatchKind.STAR, stake=Decimal("1")))

        _, body, markup = self.bot.sent[0]
        self.assertIn("1.0", body)
        self.assertEqual(markup.keyboard[0][0].callback_data, "cancel:star")

    def test_withdrawal_request_offers_completion(self) -> None:
        request = WithdrawalRequest(
            id="r1",
            player_id="7",
            amount=Decimal("50"),
            status=WithdrawalStatus.PENDING,
            requested_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
        )

        self.notifier.notify("admin", WithdrawalRequested(request, "@neo"))

        _, body, markup = self.bot.sent[0]
        self.assertIn("@neo", body)
        self.assertEqual(markup.keyboard[0][0].callback_data, "complete:r1")


class RenderEventTests(unittest.TestCase):
    def test_match_results_per_language(self) -> None:
        event = MatchFinished(
            match_id="m1",
            kind=MatchKind.STAR,
            result=PlayerResult.WIN,
            trophies_delta=0,
            stars_delta=Decimal("1.5"),
            round_wins=2,
            opponent_round_wins=1,
            surrendered=True,
        )
        for language in ("en", "ru"):
            with self.subTest(language=language):
                body = render_event(event, language)
                self.assertIn("1.5", body)
                self.assertIn("2 - 1", body)

    def test_unknown_event_is_rejected(self) -> None:
        with self.assertRaises(TypeError):
            render_event(object(), "en")


if __name__ == "__main__":
    unittest.main()
