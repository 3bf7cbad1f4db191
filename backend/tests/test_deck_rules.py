"""Tests for the deck-building rules."""

import pytest

from tower.core.deck_rules import (
    DeckCardInfo,
    calculate_max_powerups,
    check_ai_deck,
    scale_power_ups,
    validate_player_deck,
)
from tower.exceptions import DeckValidationError
from tower.schemas.tower import PowerUps

AI = "ai-player"
OWNER = "user-1"


def _deck(legendary: int = 0, same_name: int = 2, size: int = 20) -> list[DeckCardInfo]:
    cards = [DeckCardInfo(f"Legend {i}", "legendary") for i in range(legendary)]
    cards += [DeckCardInfo("Twin", "rare")] * same_name
    i = 0
    while len(cards) < size:
        cards.append(DeckCardInfo(f"Card {i}", "common"))
        i += 1
    return cards[:size]


def _reason(cards, owner=OWNER, requester=OWNER) -> str:
    with pytest.raises(DeckValidationError) as exc_info:
        validate_player_deck(owner, requester, cards, AI)
    return exc_info.value.reason


def test_valid_deck_passes():
    validate_player_deck(OWNER, OWNER, _deck(legendary=2), AI)


def test_ai_deck_rejected_first():
    # Wrong size too, but the AI-owner check comes first
    assert _reason(_deck(size=5), owner=AI) == DeckValidationError.AI_DECK


def test_other_users_deck_rejected():
    assert _reason(_deck(), requester="user-2") == DeckValidationError.NOT_OWNER


def test_empty_deck_rejected():
    assert _reason([]) == DeckValidationError.EMPTY


def test_19_card_deck_rejected():
    assert _reason(_deck(size=19)) == DeckValidationError.WRONG_SIZE


def test_three_legendary_cards_rejected():
    assert _reason(_deck(legendary=3)) == DeckValidationError.TOO_MANY_LEGENDARY


def test_three_copies_rejected():
    with pytest.raises(DeckValidationError) as exc_info:
        validate_player_deck(OWNER, OWNER, _deck(same_name=3), AI)
    assert exc_info.value.reason == DeckValidationError.TOO_MANY_COPIES
    assert "Twin (3 copies)" in exc_info.value.message


def test_reasons_are_distinct():
    reasons = {
        _reason(_deck(size=19)),
        _reason(_deck(legendary=3)),
        _reason(_deck(same_name=3)),
    }
    assert len(reasons) == 3


def test_variant_legendary_counts_as_legendary():
    cards = _deck(legendary=2)
    cards[-1] = DeckCardInfo("Shiny", "legendary+")
    assert _reason(cards) == DeckValidationError.TOO_MANY_LEGENDARY


def test_ai_deck_caps_are_relaxed():
    assert check_ai_deck(_deck(legendary=4, same_name=4)) == []
    problems = check_ai_deck(_deck(legendary=5, same_name=5, size=19))
    assert len(problems) == 3


def test_max_powerups():
    assert calculate_max_powerups(1) == 0
    assert calculate_max_powerups(5) == 12
    assert calculate_max_powerups(10) == 27
    assert calculate_max_powerups(5, is_ai=False) == 4
    assert calculate_max_powerups(0) == 0


def test_scale_power_ups_within_budget_unchanged():
    power_ups = PowerUps(top=1, right=1, bottom=1, left=0)
    assert scale_power_ups(power_ups, 3) == power_ups


def test_scale_power_ups_proportional_and_floored():
    scaled = scale_power_ups(PowerUps(top=10, right=10, bottom=5, left=5), 15)
    assert scaled == PowerUps(top=5, right=5, bottom=2, left=2)
    assert scaled.total <= 15


def test_scale_power_ups_to_zero():
    assert scale_power_ups(PowerUps(top=4), 0) == PowerUps()
