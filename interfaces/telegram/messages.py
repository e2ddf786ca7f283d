"""
English/Russian texts and the rendering of core events into Telegram HTML.
"""

from __future__ import annotations

from decimal import Decimal
from html import escape
from typing import List

from domain.events import (
    BonusGranted,
    BoardUpdated,
    Event,
    MatchFinished,
    MatchStarted,
    MatchView,
    PlayerResult,
    QueueJoined,
    QueueLeft,
    RoundFinished,
    WithdrawalCompleted,
    WithdrawalRequested,
)
from domain.models import BotStats, Mark, MatchKind, Profile, WithdrawalRequest

MESSAGES = {
    "choose_language": {"en": "🌍 Please choose your language:", "ru": "🌍 Пожалуйста, выберите язык:"},
    "main_menu": {"en": "<b>Main Menu</b>", "ru": "<b>Главное меню</b>"},
    "play_trophy": {"en": "🏆 Play Trophy Match", "ru": "🏆 Играть на трофеи"},
    "play_star": {"en": "⭐ Play for Stars", "ru": "⭐ Играть на звёзды"},
    "profile": {"en": "👤 My Profile", "ru": "👤 Мой профиль"},
    "top_trophies": {"en": "Top by Trophies", "ru": "Топ по трофеям"},
    "top_stars": {"en": "Top by Stars", "ru": "Топ по звёздам"},
    "withdraw": {"en": "💰 Withdraw Stars (min {minimum})", "ru": "💰 Вывести звёзды (мин. {minimum})"},
    "waiting_opponent": {"en": "<b>Waiting for opponent...</b>", "ru": "<b>Ожидание соперника...</b>"},
    "cancel_queue": {"en": "❌ Cancel Search", "ru": "❌ Отменить поиск"},
    "search_cancelled": {"en": "Search cancelled.", "ru": "Поиск отменён."},
    "stake_refunded": {"en": "{amount} ⭐ returned.", "ru": "{amount} ⭐ возвращено."},
    "stake_taken": {"en": "Stake: {amount} ⭐", "ru": "Ставка: {amount} ⭐"},
    "not_enough_stars": {"en": "Not enough stars for withdrawal", "ru": "Недостаточно звёзд для вывода"},
    "enter_withdraw_amount": {"en": "Enter amount to withdraw (min {minimum}):", "ru": "Введите сумму для вывода (мин. {minimum}):"},
    "withdraw_requested": {"en": "Withdrawal request sent! Awaiting admin approval.", "ru": "Запрос на вывод отправлен! Ожидайте одобрения админа."},
    "daily_bonus": {"en": "🎉 Daily bonus: +{amount} ⭐", "ru": "🎉 Ежедневный бонус: +{amount} ⭐"},
    "your_turn": {"en": "Your turn!", "ru": "Ваш ход!"},
    "opponent_turn": {"en": "Opponent's turn", "ru": "Ход соперника"},
    "round_win": {"en": "You won round {round}!", "ru": "Вы выиграли раунд {round}!"},
    "round_tie": {"en": "Round {round} is a tie!", "ru": "Ничья в раунде {round}!"},
    "round_loss": {"en": "Opponent won round {round}!", "ru": "Соперник выиграл раунд {round}!"},
    "match_win_trophy": {"en": "You won the match! +{amount} 🏆", "ru": "Вы выиграли матч! +{amount} 🏆"},
    "match_loss_trophy": {"en": "You lost the match! {amount} 🏆", "ru": "Вы проиграли матч! {amount} 🏆"},
    "match_win_star": {"en": "You won the match! +{amount} ⭐", "ru": "Вы выиграли матч! +{amount} ⭐"},
    "match_loss_star": {"en": "You lost the match! Your stake is gone.", "ru": "Вы проиграли матч! Ставка сгорела."},
    "match_tie": {"en": "Match ended in a tie!", "ru": "Матч закончился ничьей!"},
    "match_tie_star": {"en": "Match ended in a tie! {amount} ⭐ returned.", "ru": "Матч закончился ничьей! {amount} ⭐ возвращено."},
    "opponent_surrendered": {"en": "Your opponent surrendered.", "ru": "Соперник сдался."},
    "you_surrendered": {"en": "You surrendered.", "ru": "Вы сдались."},
    "surrender": {"en": "🏳 Surrender", "ru": "🏳 Сдаться"},
    "admin_panel": {"en": "<b>Admin Panel</b>", "ru": "<b>Панель админа</b>"},
    "admin_stats": {"en": "📊 Statistics", "ru": "📊 Статистика"},
    "admin_pending": {"en": "⏳ Pending Withdrawals", "ru": "⏳ Ожидающие выводы"},
    "no_pending": {"en": "No pending withdrawals", "ru": "Нет ожидающих выводов"},
    "complete_withdraw": {"en": "✅ Complete", "ru": "✅ Завершить"},
    "withdrawal_completed_user": {"en": "Your withdrawal of {amount} ⭐ has been completed!", "ru": "Ваш вывод {amount} ⭐ завершён!"},
    "withdrawal_completed_admin": {"en": "Withdrawal completed for {user}", "ru": "Вывод завершён для {user}"},
    "new_withdrawal": {"en": "New withdrawal request: {user} — {amount} ⭐", "ru": "Новый запрос на вывод: {user} — {amount} ⭐"},
    "no_players": {"en": "No players yet", "ru": "Игроков пока нет"},
    "something_wrong": {"en": "Something went wrong, please try again.", "ru": "Что-то пошло не так, попробуйте ещё раз."},
}

ERROR_KEYS = {
    "AlreadyQueuedError": {"en": "You are already searching for a match.", "ru": "Вы уже ищете соперника."},
    "AlreadyInMatchError": {"en": "You are already in a match.", "ru": "Вы уже играете матч."},
    "InsufficientBalanceError": {"en": "Not enough stars.", "ru": "Недостаточно звёзд."},
    "NotYourTurnError": {"en": "Not your turn.", "ru": "Сейчас не ваш ход."},
    "CellOccupiedError": {"en": "That cell is taken.", "ru": "Эта клетка занята."},
    "MatchInactiveError": {"en": "This match is already over.", "ru": "Этот матч уже закончился."},
    "MatchNotFoundError": {"en": "No active match.", "ru": "Нет активного матча."},
    "BelowMinimumError": {"en": "Amount is below the minimum.", "ru": "Сумма меньше минимальной."},
    "InvalidAmountError": {"en": "Invalid amount. Try again.", "ru": "Неверная сумма. Попробуйте снова."},
}

CELL_SYMBOLS = {Mark.X: "❌", Mark.O: "⭕"}
EMPTY_CELL = "▫️"


def text(language: str, key: str, **params) -> str:
    entry = MESSAGES[key]
    template = entry.get(language) or entry["en"]
    return template.format(**params)


def error_text(language: str, error) -> str:
    """Short localized explanation of a failed operation."""

    entry = ERROR_KEYS.get(type(error).__name__)
    if entry is None:
        return str(error)
    return entry.get(language) or entry["en"]


def format_stars(amount: Decimal) -> str:
    return f"{amount:.1f}"


def render_board(view: MatchView, language: str) -> str:
    opponent = f"@{escape(view.opponent_name)}" if view.opponent_name else "Opponent"
    status = (
        f"<b>{text(language, 'your_turn')}</b>"
        if view.your_turn
        else text(language, "opponent_turn")
    )
    kind = "🏆" if view.kind == MatchKind.TROPHY else "⭐"
    return (
        f"<b>Tic Tac Toe</b> {kind}\n"
        f"Vs {opponent}\n"
        f"Round {view.round}/{view.round_limit}\n"
        f"Your symbol: {CELL_SYMBOLS[view.mark]}\n"
        f"Score: {view.round_wins} - {view.opponent_round_wins}\n"
        f"{status}"
    )


def _match_finished(event: MatchFinished, language: str) -> str:
    lines: List[str] = []
    if event.surrendered:
        key = "opponent_surrendered" if event.result == PlayerResult.WIN else "you_surrendered"
        lines.append(text(language, key))

    if event.result == PlayerResult.DRAW:
        if event.kind == MatchKind.STAR:
            lines.append(text(language, "match_tie_star", amount=format_stars(event.stars_delta)))
        else:
            lines.append(text(language, "match_tie"))
    elif event.kind == MatchKind.TROPHY:
        key = "match_win_trophy" if event.result == PlayerResult.WIN else "match_loss_trophy"
        lines.append(text(language, key, amount=event.trophies_delta))
    elif event.result == PlayerResult.WIN:
        lines.append(text(language, "match_win_star", amount=format_stars(event.stars_delta)))
    else:
        lines.append(text(language, "match_loss_star"))

    lines.append(f"Score: {event.round_wins} - {event.opponent_round_wins}")
    return "\n".join(lines)


def render_event(event: Event, language: str) -> str:
    if isinstance(event, (MatchStarted, BoardUpdated)):
        return render_board(event.view, language)
    if isinstance(event, QueueJoined):
        message = text(language, "waiting_opponent")
        if event.stake:
            message += "\n" + text(language, "stake_taken", amount=format_stars(event.stake))
        return message
    if isinstance(event, QueueLeft):
        message = text(language, "search_cancelled")
        if event.refunded:
            message += "\n" + text(language, "stake_refunded", amount=format_stars(event.refunded))
        return message
    if isinstance(event, RoundFinished):
        key = {
            PlayerResult.WIN: "round_win",
            PlayerResult.LOSS: "round_loss",
            PlayerResult.DRAW: "round_tie",
        }[event.result]
        return text(language, key, round=event.round)
    if isinstance(event, MatchFinished):
        return _match_finished(event, language)
    if isinstance(event, BonusGranted):
        return text(language, "daily_bonus", amount=format_stars(event.amount))
    if isinstance(event, WithdrawalRequested):
        return text(
            language,
            "new_withdrawal",
            user=escape(event.player_label),
            amount=format_stars(event.request.amount),
        )
    if isinstance(event, WithdrawalCompleted):
        return text(
            language,
            "withdrawal_completed_user",
            amount=format_stars(event.request.amount),
        )
    raise TypeError(f"Cannot render {event!r}")


def render_profile(profile: Profile) -> str:
    return (
        "<b>Profile</b>\n"
        f"🏆 Trophies: {profile.trophies}\n"
        f"⭐ Stars: {format_stars(profile.stars)}\n"
        f"📊 Matches: {profile.matches_played} (Wins: {profile.wins})"
    )


def render_leaderboard(profiles: List[Profile], field: str, language: str) -> str:
    if not profiles:
        return text(language, "no_players")
    title = "Top 10 by Trophies" if field == "trophies" else "Top 10 by Stars"
    lines = [f"<b>{title}</b>"]
    for position, profile in enumerate(profiles, start=1):
        value = profile.trophies if field == "trophies" else format_stars(profile.stars)
        lines.append(f"{position}. {escape(profile.label)} — {value}")
    return "\n".join(lines)


def render_stats(stats: BotStats) -> str:
    return (
        "<b>Bot Statistics</b>\n"
        f"Total users: {stats.total_users}\n"
        f"Active 24h: {stats.active_24h}\n"
        f"Total matches: {stats.total_matches}\n"
        f"Stars distributed: {format_stars(stats.stars_distributed)}"
    )


def render_pending(request: WithdrawalRequest, label: str) -> str:
    return f"{escape(label)} — {format_stars(request.amount)} ⭐"
