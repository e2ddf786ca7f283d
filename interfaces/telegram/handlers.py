from __future__ import annotations

import logging
from typing import Optional, Set

import telebot

from application.services import ExternalContext, GameService
from domain.commands import Command, CompleteWithdrawal
from domain.errors import BonusAlreadyClaimedError
from domain.models import BalanceField
from interfaces.telegram.callback_data import ChooseLanguage, MenuAction, parse_callback
from interfaces.telegram.keyboards import (
    admin_keyboard,
    complete_withdrawal_keyboard,
    language_keyboard,
    main_menu_keyboard,
)
from interfaces.telegram.messages import (
    error_text,
    render_leaderboard,
    render_pending,
    render_profile,
    render_stats,
    text,
)

logger = logging.getLogger(__name__)


def _build_external_context(user, language: str = "en") -> ExternalContext:
    """Extract a channel-agnostic context object from a Telegram user."""

    return ExternalContext(
        provider="telegram",
        player_id=str(user.id),
        username=user.username,
        language=language,
    )


def create_telegram_bot(
    bot: telebot.TeleBot,
    service: GameService,
    admin_username: Optional[str] = None,
) -> telebot.TeleBot:
    """
    Register handlers on `bot` wired to the game service.

    This module contains only Telegram-specific concerns: parsing Telegram
    messages/callbacks into core commands and rendering results back.
    """

    # Players who were asked to type a withdrawal amount.
    awaiting_withdrawal: Set[str] = set()

    def is_admin(user, chat) -> bool:
        return bool(admin_username) and chat.type == "private" and user.username == admin_username

    def on_contact(user) -> bool:
        """
        Record activity and hand out the daily bonus. Returns False when the
        player has not picked a language (and so has no profile) yet.
        """

        if service.profile(str(user.id)) is None:
            return False
        service.register_player(_build_external_context(user))
        result = service.claim_daily_bonus(str(user.id))
        if not result.success and not isinstance(result.error, BonusAlreadyClaimedError):
            logger.warning("Daily bonus for %s failed: %s", user.id, result.error_message)
        return True

    def send_main_menu(chat_id: str) -> None:
        profile = service.profile(chat_id)
        if profile is None:
            return
        bot.send_message(
            chat_id,
            text(profile.language, "main_menu"),
            parse_mode="HTML",
            reply_markup=main_menu_keyboard(profile, service.settings.min_withdrawal),
        )

    @bot.message_handler(commands=["start", "menu"])
    def handle_start(message):
        try:
            if not on_contact(message.from_user):
                bot.send_message(
                    message.chat.id,
                    text("en", "choose_language"),
                    reply_markup=language_keyboard(),
                )
                return
            send_main_menu(str(message.chat.id))
        except Exception:
            logger.exception("Failed to handle /start for %s", message.from_user.id)

    @bot.message_handler(commands=["admin"])
    def handle_admin(message):
        if not is_admin(message.from_user, message.chat):
            return
        service.remember_admin_chat(str(message.chat.id))
        lang = service.language_of(str(message.from_user.id))
        bot.send_message(
            message.chat.id,
            text(lang, "admin_panel"),
            parse_mode="HTML",
            reply_markup=admin_keyboard(lang),
        )

    @bot.message_handler(commands=["adjust"])
    def handle_adjust(message):
        """
        /adjust <player_id> <trophies|stars> <delta>
        """

        if not is_admin(message.from_user, message.chat):
            return
        parts = message.text.split()
        if len(parts) != 4:
            bot.send_message(message.chat.id, "Usage: /adjust <player_id> <trophies|stars> <delta>")
            return

        _, player_id, field, delta = parts
        try:
            field = BalanceField(field)
        except ValueError:
            bot.send_message(message.chat.id, "Field must be trophies or stars.")
            return

        result = service.adjust_balance(player_id, field, delta)
        if not result.success:
            bot.send_message(message.chat.id, result.error_message)
            return
        bot.send_message(message.chat.id, render_profile(result.value), parse_mode="HTML")

    @bot.message_handler(commands=["surrender"])
    def handle_surrender_command(message):
        player_id = str(message.from_user.id)
        result = service.surrender(player_id)
        if not result.success:
            bot.send_message(message.chat.id, error_text(service.language_of(player_id), result.error))

    @bot.message_handler(func=lambda message: str(message.from_user.id) in awaiting_withdrawal)
    def handle_withdraw_amount(message):
        player_id = str(message.from_user.id)
        lang = service.language_of(player_id)
        result = service.request_withdrawal(player_id, (message.text or "").strip())
        if not result.success:
            bot.send_message(message.chat.id, error_text(lang, result.error))
            return

        awaiting_withdrawal.discard(player_id)
        bot.send_message(message.chat.id, text(lang, "withdraw_requested"))

    def handle_menu(call, action: MenuAction) -> None:
        player_id = str(call.from_user.id)
        chat_id = call.message.chat.id
        message_id = call.message.message_id
        lang = service.language_of(player_id)

        if action.name == "main":
            send_main_menu(player_id)
        elif action.name == "profile":
            profile = service.profile(player_id)
            bot.edit_message_text(
                render_profile(profile), chat_id=chat_id, message_id=message_id, parse_mode="HTML"
            )
        elif action.name in ("top_trophies", "top_stars"):
            field = "trophies" if action.name == "top_trophies" else "stars"
            bot.edit_message_text(
                render_leaderboard(service.leaderboard(field), field, lang),
                chat_id=chat_id,
                message_id=message_id,
                parse_mode="HTML",
            )
        elif action.name == "withdraw":
            profile = service.profile(player_id)
            if profile.stars < service.settings.min_withdrawal:
                bot.answer_callback_query(call.id, text(lang, "not_enough_stars"), show_alert=True)
                return
            awaiting_withdrawal.add(player_id)
            bot.send_message(
                chat_id,
                text(lang, "enter_withdraw_amount", minimum=service.settings.min_withdrawal),
            )
        elif action.name == "admin_stats" and is_admin(call.from_user, call.message.chat):
            service.prune_finished_matches()
            bot.edit_message_text(
                render_stats(service.stats()),
                chat_id=chat_id,
                message_id=message_id,
                parse_mode="HTML",
            )
        elif action.name == "admin_pending" and is_admin(call.from_user, call.message.chat):
            pending = service.pending_withdrawals()
            if not pending:
                bot.edit_message_text(text(lang, "no_pending"), chat_id=chat_id, message_id=message_id)
            for request in pending:
                owner = service.profile(request.player_id)
                label = owner.label if owner is not None else request.player_id
                bot.send_message(
                    chat_id,
                    render_pending(request, label),
                    parse_mode="HTML",
                    reply_markup=complete_withdrawal_keyboard(request.id, lang),
                )
        bot.answer_callback_query(call.id)

    def handle_command(call, command: Command) -> None:
        player_id = str(call.from_user.id)
        lang = service.language_of(player_id)

        if isinstance(command, CompleteWithdrawal) and not is_admin(call.from_user, call.message.chat):
            bot.answer_callback_query(call.id)
            return

        result = service.execute(command)
        if not result.success:
            bot.answer_callback_query(call.id, error_text(lang, result.error), show_alert=True)
            return

        if isinstance(command, CompleteWithdrawal):
            owner_id = result.notifications[0].player_id
            owner = service.profile(owner_id)
            label = owner.label if owner is not None else owner_id
            bot.send_message(
                call.message.chat.id,
                text(lang, "withdrawal_completed_admin", user=label),
            )
        bot.answer_callback_query(call.id)

    @bot.callback_query_handler(func=lambda call: True)
    def handle_callback(call):
        player_id = str(call.from_user.id)
        try:
            action = parse_callback(call.data or "", player_id)
        except ValueError:
            bot.answer_callback_query(call.id, "Invalid selection.")
            return

        try:
            if isinstance(action, ChooseLanguage):
                ctx = _build_external_context(call.from_user, action.language)
                registered = service.register_player(ctx)
                if registered.success:
                    service.set_language(player_id, action.language)
                bot.answer_callback_query(call.id, "Language set")
                send_main_menu(player_id)
                return

            if not on_contact(call.from_user):
                bot.answer_callback_query(call.id)
                return

            if isinstance(action, MenuAction):
                handle_menu(call, action)
            else:
                handle_command(call, action)
        except Exception:  # Isolate failures to this update.
            logger.exception("Failed to handle callback %r from %s", call.data, player_id)
            bot.answer_callback_query(call.id, text(service.language_of(player_id), "something_wrong"))

    return bot
