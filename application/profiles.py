"""
Profile store operations: creation, activity, daily bonus, admin balance
adjustments, leaderboards and bot statistics.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple

from domain.errors import (
    BonusAlreadyClaimedError,
    InsufficientBalanceError,
    InvalidAmountError,
    UnknownBalanceFieldError,
    UnsupportedLanguageError,
)
from domain.events import BonusGranted, Notification
from domain.models import (
    SUPPORTED_LANGUAGES,
    BalanceField,
    BotStats,
    Idle,
    Profile,
)
from domain.repositories import KeyValueStore

from . import records
from .settings import GameSettings
from .storage import Transaction

logger = logging.getLogger(__name__)

TOTAL_USERS = "total_users"
TOTAL_MATCHES = "total_matches"
STARS_DISTRIBUTED = "stars_distributed"

# Star balances move in halves.
STAR_STEP = Decimal("0.5")


def parse_amount(value) -> Decimal:
    """Turn user or admin input into a finite Decimal."""

    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidAmountError(f"Not a number: {value!r}") from None
    if not amount.is_finite():
        raise InvalidAmountError(f"Not a number: {value!r}")
    return amount


def parse_stars(value) -> Decimal:
    amount = parse_amount(value)
    try:
        whole_steps = amount % STAR_STEP == 0
    except InvalidOperation:
        whole_steps = False
    if not whole_steps:
        raise InvalidAmountError(f"Stars must be a multiple of {STAR_STEP}: {value!r}")
    return amount


def _check_language(language: str) -> str:
    if language not in SUPPORTED_LANGUAGES:
        raise UnsupportedLanguageError(f"Unsupported language: {language}")
    return language


def get_or_create(
    txn: Transaction,
    player_id: str,
    display_name: Optional[str],
    language: str,
    settings: GameSettings,
    now: datetime,
) -> Tuple[Profile, bool]:
    """
    Return the player's profile, creating it with default balances on first
    contact. The second element tells whether the profile was just created.
    """

    existing = txn.profile(player_id)
    if existing is not None:
        return existing, False

    profile = Profile(
        id=player_id,
        display_name=display_name,
        language=_check_language(language),
        trophies=0,
        stars=settings.initial_stars,
        matches_played=0,
        wins=0,
        created_at=now,
        # No bonus on the day of registration.
        last_daily_bonus_at=now,
        last_active_at=now,
        availability=Idle(),
    )
    txn.put_profile(profile)
    txn.increment(TOTAL_USERS, 1)
    logger.info("Created profile %s", player_id)
    return profile, True


def touch(
    txn: Transaction,
    player_id: str,
    display_name: Optional[str],
    now: datetime,
) -> Profile:
    """Record activity and pick up a changed username."""

    profile = txn.require_profile(player_id)
    profile.last_active_at = now
    if display_name:
        profile.display_name = display_name
    txn.put_profile(profile)
    return profile


def set_language(txn: Transaction, player_id: str, language: str) -> Profile:
    profile = txn.require_profile(player_id)
    profile.language = _check_language(language)
    txn.put_profile(profile)
    return profile


def claim_daily_bonus(
    txn: Transaction,
    player_id: str,
    settings: GameSettings,
    now: datetime,
) -> Tuple[Profile, List[Notification]]:
    """Credit the daily bonus once per UTC calendar day."""

    profile = txn.require_profile(player_id)
    if profile.last_daily_bonus_at.date() >= now.date():
        raise BonusAlreadyClaimedError(
            f"Player {player_id} already claimed the bonus for {now.date()}"
        )

    profile.stars += settings.daily_bonus
    profile.last_daily_bonus_at = now
    txn.put_profile(profile)
    txn.increment(STARS_DISTRIBUTED, settings.daily_bonus)
    event = BonusGranted(amount=settings.daily_bonus, stars=profile.stars)
    return profile, [Notification(player_id, event)]


def adjust_balance(
    txn: Transaction,
    player_id: str,
    field,
    delta,
) -> Profile:
    """
    Apply an admin correction to trophies or stars.

    A correction that would leave the balance negative is refused rather
    than clamped, so the admin sees that it did not apply.
    """

    try:
        field = BalanceField(field)
    except ValueError:
        raise UnknownBalanceFieldError(f"Unknown balance field: {field}") from None

    delta = parse_stars(delta) if field == BalanceField.STARS else parse_amount(delta)
    profile = txn.require_profile(player_id)

    if field == BalanceField.TROPHIES:
        if delta != delta.to_integral_value():
            raise InvalidAmountError("Trophy adjustments must be whole numbers.")
        new_value = profile.trophies + int(delta)
        if new_value < 0:
            raise InsufficientBalanceError(player_id, -delta, profile.trophies)
        profile.trophies = new_value
    else:
        new_stars = profile.stars + delta
        if new_stars < 0:
            raise InsufficientBalanceError(player_id, -delta, profile.stars)
        profile.stars = new_stars

    txn.put_profile(profile)
    logger.info("Adjusted %s of %s by %s", field.value, player_id, delta)
    return profile


def leaderboard(store: KeyValueStore, field, limit: int) -> List[Profile]:
    field = BalanceField(field)
    profiles = [
        records.profile_from_record(entry.key, entry.value)
        for entry in store.list_by_prefix(records.PROFILE_PREFIX)
    ]
    profiles.sort(key=lambda p: getattr(p, field.value), reverse=True)
    return profiles[:limit]


def bot_stats(store: KeyValueStore, now: datetime) -> BotStats:
    def counter(name: str) -> Decimal:
        return Decimal(store.get(records.stats_key(name)).value or "0")

    cutoff = now - timedelta(hours=24)
    active = 0
    for entry in store.list_by_prefix(records.PROFILE_PREFIX):
        if records.profile_from_record(entry.key, entry.value).last_active_at > cutoff:
            active += 1

    return BotStats(
        total_users=int(counter(TOTAL_USERS)),
        total_matches=int(counter(TOTAL_MATCHES)),
        stars_distributed=counter(STARS_DISTRIBUTED),
        active_24h=active,
    )


def remember_admin_chat(txn: Transaction, chat_id: str) -> str:
    """Store the admin chat on first contact; later calls keep the first one."""

    current = txn.read(records.ADMIN_CHAT_KEY)
    if current:
        return current
    txn.write(records.ADMIN_CHAT_KEY, chat_id)
    logger.info("Registered admin chat %s", chat_id)
    return chat_id


def admin_chat(store: KeyValueStore) -> Optional[str]:
    return store.get(records.ADMIN_CHAT_KEY).value
