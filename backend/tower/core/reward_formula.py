"""Reward formula - floor number in, reward bundle out.

Pure and deterministic: this is the economic contract the rest of the tower
trusts, so nothing here touches I/O or caches results.
"""

import math

from tower.exceptions import InvalidFloorError
from tower.schemas.tower import RewardBundle

FLOORS_PER_BAND = 10
GROWTH_RATE = 1.06  # +6% gem value every band
FRAGMENT_GROWTH_RATE = 1.03  # fragments inflate slower than currency

GEMS_PER_PACK = 100

# Base gem value per tier (at band 0)
BASE_GEM_VALUE_BY_TIER = {
    "E": 10,  # normal floor
    "D": 35,  # divisible by 5
    "C": 100,  # divisible by 10 (1 pack baseline)
    "B": 300,  # divisible by 25
    "A": 600,  # divisible by 50
    "S": 1000,  # divisible by 100
}

BASE_FRAGMENTS_BY_TIER = {
    "E": 1,
    "D": 3,
    "C": 5,
    "B": 15,
    "A": 35,
    "S": 75,
}

# Checked in order, first match wins
TIER_DIVISORS = [(100, "S"), (50, "A"), (25, "B"), (10, "C"), (5, "D")]

# (divisor, special card slot, bonus fragments); only the first match applies
MILESTONES = [
    (100, "rare_art_card", 100),
    (50, "legendary_card", 100),
    (25, "epic_card", 50),
    (10, None, 25),
]
MILESTONE_GEM_BONUS_RATE = 0.5


def get_band(floor: int) -> int:
    return (floor - 1) // FLOORS_PER_BAND


def get_tier(floor: int) -> str:
    for divisor, tier in TIER_DIVISORS:
        if floor % divisor == 0:
            return tier
    return "E"


def get_milestone(floor: int) -> tuple[int, str | None, int] | None:
    for milestone in MILESTONES:
        if floor % milestone[0] == 0:
            return milestone
    return None


def normalize_floor(floor) -> int:
    if isinstance(floor, bool) or not isinstance(floor, (int, float)):
        raise InvalidFloorError(floor)
    if not math.isfinite(floor) or floor < 1:
        raise InvalidFloorError(floor)
    return int(math.floor(floor))


def get_tower_reward(floor) -> RewardBundle:
    """Calculate the reward bundle for clearing ``floor``.

    Gem value grows 6% per band of 10 floors and is paid out packs first,
    with the remainder as gems. Fragments follow a gentler 3% curve.
    Milestone floors add a special card (or bonus fragments) and a gem bonus
    of half the floor's gem value.
    """
    floor = normalize_floor(floor)

    band = get_band(floor)
    tier = get_tier(floor)

    gem_value = round(BASE_GEM_VALUE_BY_TIER[tier] * GROWTH_RATE**band)
    card_fragments = max(
        0, round(BASE_FRAGMENTS_BY_TIER[tier] * FRAGMENT_GROWTH_RATE**band)
    )

    special_cards = {"rare_art_card": 0, "legendary_card": 0, "epic_card": 0}
    milestone = get_milestone(floor)
    if milestone is not None:
        _, card_slot, bonus_fragments = milestone
        if card_slot is not None:
            special_cards[card_slot] = 1
        card_fragments += bonus_fragments
        gem_value += round(gem_value * MILESTONE_GEM_BONUS_RATE)

    packs, gems = divmod(gem_value, GEMS_PER_PACK)

    return RewardBundle(
        floor=floor,
        band=band,
        tier=tier,
        gems=gems,
        packs=packs,
        card_fragments=card_fragments,
        **special_cards,
    )
