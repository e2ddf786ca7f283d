from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional


@dataclass(frozen=True)
class GameSettings:
    """
    Economy and rule constants.

    Defaults follow the live bot: 10 starting stars, a 1 star stake for
    star matches (winner is credited 1.5), +1 star daily bonus, withdrawals
    from 50 stars, best of 3 rounds.
    """

    initial_stars: Decimal = Decimal("10")
    star_stake: Decimal = Decimal("1")
    star_win_credit: Decimal = Decimal("1.5")
    daily_bonus: Decimal = Decimal("1")
    min_withdrawal: Decimal = Decimal("50")
    round_limit: int = 3
    max_commit_attempts: int = 8
    leaderboard_size: int = 10
    finished_match_retention_days: int = 7

    @property
    def rounds_to_win(self) -> int:
        return (self.round_limit + 1) // 2

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> GameSettings:
        """Build settings from `GAME_*` environment variables."""

        env = os.environ if environ is None else environ
        defaults = cls()

        def decimal(name: str, default: Decimal) -> Decimal:
            raw = env.get(name)
            return Decimal(raw) if raw else default

        def integer(name: str, default: int) -> int:
            raw = env.get(name)
            return int(raw) if raw else default

        settings = cls(
            initial_stars=decimal("GAME_INITIAL_STARS", defaults.initial_stars),
            star_stake=decimal("GAME_STAR_STAKE", defaults.star_stake),
            star_win_credit=decimal("GAME_STAR_WIN_CREDIT", defaults.star_win_credit),
            daily_bonus=decimal("GAME_DAILY_BONUS", defaults.daily_bonus),
            min_withdrawal=decimal("GAME_MIN_WITHDRAWAL", defaults.min_withdrawal),
            round_limit=integer("GAME_ROUND_LIMIT", defaults.round_limit),
            max_commit_attempts=integer(
                "GAME_MAX_COMMIT_ATTEMPTS", defaults.max_commit_attempts
            ),
            leaderboard_size=integer("GAME_LEADERBOARD_SIZE", defaults.leaderboard_size),
            finished_match_retention_days=integer(
                "GAME_FINISHED_MATCH_RETENTION_DAYS", defaults.finished_match_retention_days
            ),
        )
        if settings.round_limit < 1:
            raise ValueError("GAME_ROUND_LIMIT must be at least 1.")
        if settings.max_commit_attempts < 1:
            raise ValueError("GAME_MAX_COMMIT_ATTEMPTS must be at least 1.")
        if settings.finished_match_retention_days < 0:
            raise ValueError("GAME_FINISHED_MATCH_RETENTION_DAYS must not be negative.")
        return settings
