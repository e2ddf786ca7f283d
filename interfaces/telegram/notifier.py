from __future__ import annotations

import logging
from typing import Callable, Optional

import telebot
from telebot.apihelper import ApiTelegramException

from domain.events import (
    BoardUpdated,
    Event,
    MatchStarted,
    QueueJoined,
    WithdrawalRequested,
)

from .keyboards import board_keyboard, cancel_queue_keyboard, complete_withdrawal_keyboard
from .messages import render_event

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """
    `NotificationSink` that renders core events as Telegram messages.

    Match boards are sent once per match and then edited in place: the
    message id returned for `MatchStarted` is kept by the core and handed
    back on every `BoardUpdated`. When that message can no longer be edited
    a new one is sent and its id replaces the old handle.
    """

    def __init__(self, bot: telebot.TeleBot, language_of: Callable[[str], str]) -> None:
        self._bot = bot
        self._language_of = language_of

    def notify(self, player_id: str, event: Event) -> Optional[int]:
        language = self._language_of(player_id)
        body = render_event(event, language)

        if isinstance(event, MatchStarted):
            markup = board_keyboard(event.view, language)
            message = self._bot.send_message(
                player_id, body, parse_mode="HTML", reply_markup=markup
            )
            return message.message_id

        if isinstance(event, BoardUpdated):
            markup = board_keyboard(event.view, language)
            if event.message_handle is not None:
                try:
                    self._bot.edit_message_text(
                        body,
                        chat_id=player_id,
                        message_id=int(event.message_handle),
                        parse_mode="HTML",
                        reply_markup=markup,
                    )
                    return None
                except ApiTelegramException as exc:
                    logger.warning("Could not edit board for %s: %s", player_id, exc)
            message = self._bot.send_message(
                player_id, body, parse_mode="HTML", reply_markup=markup
            )
            return message.message_id

        markup = None
        if isinstance(event, QueueJoined):
            markup = cancel_queue_keyboard(event.kind, language)
        elif isinstance(event, WithdrawalRequested):
            markup = complete_withdrawal_keyboard(event.request.id, language)

        self._bot.send_message(player_id, body, parse_mode="HTML", reply_markup=markup)
        return None
