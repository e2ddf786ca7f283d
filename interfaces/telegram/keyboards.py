from __future__ import annotations

from decimal import Decimal

from telebot.types import InlineKeyboardButton, InlineKeyboardMarkup

from domain.events import MatchView
from domain.models import MatchKind, Profile

from .callback_data import (
    encode_complete_withdrawal,
    encode_join,
    encode_language,
    encode_leave,
    encode_menu,
    encode_move,
    encode_surrender,
)
from .messages import CELL_SYMBOLS, EMPTY_CELL, text


def language_keyboard() -> InlineKeyboardMarkup:
    markup = InlineKeyboardMarkup(row_width=2)
    markup.add(
        InlineKeyboardButton("English 🇬🇧", callback_data=encode_language("en")),
        InlineKeyboardButton("Russian 🇷🇺", callback_data=encode_language("ru")),
    )
    return markup


def main_menu_keyboard(profile: Profile, min_withdrawal: Decimal) -> InlineKeyboardMarkup:
    lang = profile.language
    markup = InlineKeyboardMarkup(row_width=2)
    markup.row(
        InlineKeyboardButton(text(lang, "play_trophy"), callback_data=encode_join(MatchKind.TROPHY))
    )
    markup.row(
        InlineKeyboardButton(text(lang, "play_star"), callback_data=encode_join(MatchKind.STAR))
    )
    markup.row(InlineKeyboardButton(text(lang, "profile"), callback_data=encode_menu("profile")))
    markup.row(
        InlineKeyboardButton(text(lang, "top_trophies"), callback_data=encode_menu("top_trophies")),
        InlineKeyboardButton(text(lang, "top_stars"), callback_data=encode_menu("top_stars")),
    )
    if profile.stars >= min_withdrawal:
        markup.row(
            InlineKeyboardButton(
                text(lang, "withdraw", minimum=min_withdrawal),
                callback_data=encode_menu("withdraw"),
            )
        )
    return markup


def cancel_queue_keyboard(kind: MatchKind, language: str) -> InlineKeyboardMarkup:
    markup = InlineKeyboardMarkup()
    markup.add(
        InlineKeyboardButton(text(language, "cancel_queue"), callback_data=encode_leave(kind))
    )
    return markup


def board_keyboard(view: MatchView, language: str) -> InlineKeyboardMarkup:
    """3x3 grid of cells plus a surrender button."""

    markup = InlineKeyboardMarkup(row_width=3)
    for row in range(3):
        buttons = []
        for col in range(3):
            cell = row * 3 + col
            mark = view.board[cell]
            label = CELL_SYMBOLS[mark] if mark is not None else EMPTY_CELL
            buttons.append(
                InlineKeyboardButton(label, callback_data=encode_move(view.match_id, cell))
            )
        markup.row(*buttons)
    markup.row(
        InlineKeyboardButton(text(language, "surrender"), callback_data=encode_surrender())
    )
    return markup


def admin_keyboard(language: str) -> InlineKeyboardMarkup:
    markup = InlineKeyboardMarkup()
    markup.row(
        InlineKeyboardButton(text(language, "admin_stats"), callback_data=encode_menu("admin_stats"))
    )
    markup.row(
        InlineKeyboardButton(
            text(language, "admin_pending"), callback_data=encode_menu("admin_pending")
        )
    )
    return markup


def complete_withdrawal_keyboard(request_id: str, language: str) -> InlineKeyboardMarkup:
    markup = InlineKeyboardMarkup()
    markup.add(
        InlineKeyboardButton(
            text(language, "complete_withdraw"),
            callback_data=encode_complete_withdrawal(request_id),
        )
    )
    return markup
