"""Deck-building rules.

Player decks are checked by ``validate_player_deck`` before a tower game
starts. AI decks use the relaxed caps below, which the floor generators
enforce while building decks.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass

from tower.exceptions import DeckValidationError
from tower.schemas.tower import PowerUps

CARDS_PER_DECK = 20

# Player deck constraints (enforced at game start)
PLAYER_MAX_LEGENDARY_CARDS = 2
PLAYER_MAX_SAME_NAME_CARDS = 2

# AI deck constraints (more lenient than player decks)
AI_MAX_LEGENDARY_CARDS = 4
AI_MAX_SAME_NAME_CARDS = 4

# Power-up points granted per level above 1
PLAYER_POWERUPS_PER_LEVEL = 1
AI_POWERUPS_PER_LEVEL = 3


@dataclass(frozen=True)
class DeckCardInfo:
    """The parts of a card instance the deck rules look at."""
    name: str
    rarity: str


def is_legendary(rarity: str) -> bool:
    return rarity.lower().startswith("legendary")


def calculate_max_powerups(level: int, is_ai: bool = True) -> int:
    multiplier = AI_POWERUPS_PER_LEVEL if is_ai else PLAYER_POWERUPS_PER_LEVEL
    return max(0, (level - 1) * multiplier)


def scale_power_ups(power_ups: PowerUps, max_total: int) -> PowerUps:
    """Scale an over-budget allocation down proportionally, flooring per edge."""
    total = power_ups.total
    if total <= max_total:
        return power_ups
    if max_total <= 0:
        return PowerUps()
    scale = max_total / total
    return PowerUps(
        top=int(power_ups.top * scale),
        right=int(power_ups.right * scale),
        bottom=int(power_ups.bottom * scale),
        left=int(power_ups.left * scale),
    )


def check_ai_deck(cards: Iterable[DeckCardInfo]) -> list[str]:
    """Return the AI-deck rule violations for ``cards`` (empty when valid)."""
    cards = list(cards)
    problems = []
    if len(cards) != CARDS_PER_DECK:
        problems.append(f"has {len(cards)} cards, expected {CARDS_PER_DECK}")
    legendary_count = sum(1 for card in cards if is_legendary(card.rarity))
    if legendary_count > AI_MAX_LEGENDARY_CARDS:
        problems.append(f"has {legendary_count} legendary cards")
    name_counts = Counter(card.name for card in cards)
    for name, count in name_counts.items():
        if count > AI_MAX_SAME_NAME_CARDS:
            problems.append(f"has {count} copies of {name}")
    return problems


def validate_player_deck(
    owner_id: str,
    requester_id: str,
    cards: list[DeckCardInfo],
    ai_player_id: str,
) -> None:
    """Validate a player deck for a tower game, failing on the first broken rule.

    Order: not an AI deck, owned by the requester, not empty, exactly 20 cards, at most 2
    legendary cards, at most 2 copies of any card name.
    """
    if owner_id == ai_player_id:
        raise DeckValidationError(
            DeckValidationError.AI_DECK, "Cannot use AI decks for tower games"
        )

    if owner_id != requester_id:
        raise DeckValidationError(
            DeckValidationError.NOT_OWNER, "You do not own this deck"
        )

    if not cards:
        raise DeckValidationError(DeckValidationError.EMPTY, "Player deck is empty")

    if len(cards) != CARDS_PER_DECK:
        raise DeckValidationError(
            DeckValidationError.WRONG_SIZE,
            f"Deck must have exactly {CARDS_PER_DECK} cards. "
            f"Your deck has {len(cards)} cards.",
        )

    legendary_count = sum(1 for card in cards if is_legendary(card.rarity))
    if legendary_count > PLAYER_MAX_LEGENDARY_CARDS:
        raise DeckValidationError(
            DeckValidationError.TOO_MANY_LEGENDARY,
            f"Deck can have maximum {PLAYER_MAX_LEGENDARY_CARDS} legendary cards. "
            f"Your deck has {legendary_count} legendary cards.",
        )

    name_counts = Counter(card.name for card in cards)
    violations = [
        f"{name} ({count} copies)"
        for name, count in name_counts.items()
        if count > PLAYER_MAX_SAME_NAME_CARDS
    ]
    if violations:
        raise DeckValidationError(
            DeckValidationError.TOO_MANY_COPIES,
            f"Deck can have maximum {PLAYER_MAX_SAME_NAME_CARDS} copies of any card. "
            f"Violations: {', '.join(violations)}",
        )
