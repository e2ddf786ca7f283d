"""
Settlement: the one-time application of the economy delta when a match
ends, by natural conclusion or surrender.

| kind   | winner            | loser                      | draw                   |
|--------|-------------------|----------------------------|------------------------|
| trophy | trophies += 1     | trophies = max(0, t - 1)   | no change              |
| star   | stars += 1.5      | stake already forfeit      | stake refunded to both |

Both players get `matches_played += 1`, the winner `wins += 1`.

Everything (both profiles, removal of the match, the tombstone and the
global counters) is written in the caller's transaction, so a duplicate
"match over" trigger either sees the match gone or loses the commit race.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict

from domain.errors import SettlementIntegrityError
from domain.models import Idle, InMatch, Match, MatchKind, MatchOutcome

from . import records
from .profiles import STARS_DISTRIBUTED, TOTAL_MATCHES
from .settings import GameSettings
from .storage import Transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementDelta:
    """Balance change actually applied to one player."""

    trophies: int
    stars: Decimal


def settle(
    txn: Transaction,
    match: Match,
    outcome: MatchOutcome,
    settings: GameSettings,
    now: datetime,
) -> Dict[str, SettlementDelta]:
    """Apply the settlement table to both players and retire the match."""

    profiles = {}
    for player_id in match.players:
        profile = txn.profile(player_id)
        if profile is None:
            raise SettlementIntegrityError(
                f"Profile {player_id} of match {match.id} is missing"
            )
        profiles[player_id] = profile

    deltas: Dict[str, SettlementDelta] = {}
    for player_id, profile in profiles.items():
        trophies_before = profile.trophies
        stars_before = profile.stars

        if outcome.is_draw:
            if match.kind == MatchKind.STAR:
                profile.stars += match.stake
        elif player_id == outcome.winner:
            profile.wins += 1
            if match.kind == MatchKind.TROPHY:
                profile.trophies += 1
            else:
                profile.stars += settings.star_win_credit
        elif match.kind == MatchKind.TROPHY:
            profile.trophies = max(0, profile.trophies - 1)

        profile.matches_played += 1

        if profile.availability == InMatch(match.id):
            profile.availability = Idle()
        else:
            logger.error(
                "Profile %s was not marked as playing match %s (found %r)",
                player_id,
                match.id,
                profile.availability,
            )

        txn.put_profile(profile)
        deltas[player_id] = SettlementDelta(
            trophies=profile.trophies - trophies_before,
            stars=profile.stars - stars_before,
        )

    txn.remove(records.match_key(match.id))
    txn.write(
        records.finished_match_key(match.id),
        records.finished_match_record(match, outcome, now),
    )
    txn.increment(TOTAL_MATCHES, 1)
    if match.kind == MatchKind.STAR and not outcome.is_draw:
        txn.increment(STARS_DISTRIBUTED, settings.star_win_credit - match.stake)

    logger.info(
        "Settled %s match %s: winner=%s loser=%s surrendered=%s",
        match.kind.value,
        match.id,
        outcome.winner,
        outcome.loser,
        outcome.surrendered,
    )
    return deltas
