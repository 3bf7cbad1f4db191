"""Floor generators - turn a generation request into new floor decks.

Callers only see the ``FloorGenerator`` interface. ``ResilientFloorGenerator``
asks the content oracle first and fills whatever it could not deliver with the
deterministic ``FallbackFloorGenerator``.
"""

from __future__ import annotations

import logging
import random
from collections import Counter
from typing import Protocol

from tower.core.deck_rules import (
    AI_MAX_LEGENDARY_CARDS,
    AI_MAX_SAME_NAME_CARDS,
    CARDS_PER_DECK,
    calculate_max_powerups,
)
from tower.core.difficulty import average_card_level, deck_level_for_floor
from tower.exceptions import ExternalServiceError, GenerationError
from tower.schemas.tower import (
    CatalogueCard,
    GeneratedDeckCard,
    GeneratedFloorDeck,
    GenerationRequest,
    PowerUps,
)

logger = logging.getLogger("tower.generation")

EDGES = ("top", "right", "bottom", "left")

# Running deck size after each rarity phase: 4 legendary, +6 epic, +6 rare
EPIC_FILL_TO = 10
RARE_FILL_TO = 16


class FloorGenerator(Protocol):
    async def generate(self, request: GenerationRequest) -> list[GeneratedFloorDeck]:
        ...


def group_by_rarity(catalogue: list[CatalogueCard]) -> dict[str, list[CatalogueCard]]:
    pools: dict[str, list[CatalogueCard]] = {}
    for card in catalogue:
        pools.setdefault(card.rarity.rstrip("+").lower(), []).append(card)
    return pools


class FallbackFloorGenerator:
    """Constraint-satisfying deck synthesis that needs nothing but the catalogue.

    Pass a seeded ``random.Random`` for reproducible output.
    """

    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    async def generate(self, request: GenerationRequest) -> list[GeneratedFloorDeck]:
        logger.info(
            "Using fallback generation for floors %s-%s",
            request.start_floor,
            request.start_floor + request.count - 1,
        )
        pools = group_by_rarity(request.catalogue)
        return [self.build_floor(floor_number, pools) for floor_number in request.floor_numbers]

    def build_floor(
        self, floor_number: int, pools: dict[str, list[CatalogueCard]]
    ) -> GeneratedFloorDeck:
        level = deck_level_for_floor(floor_number)
        filler_level = max(1, level - 1)  # commons sit a level below the deck

        deck: list[GeneratedDeckCard] = []
        used_names: Counter[str] = Counter()

        self._fill(deck, used_names, self._shuffled(pools.get("legendary")), AI_MAX_LEGENDARY_CARDS, level)
        self._fill(deck, used_names, self._shuffled(pools.get("epic")), EPIC_FILL_TO, level)
        self._fill(deck, used_names, self._shuffled(pools.get("rare")), RARE_FILL_TO, level)

        filler = self._shuffled((pools.get("common") or []) + (pools.get("uncommon") or []))
        self._fill(deck, used_names, filler, CARDS_PER_DECK, filler_level, cycle=True)

        # Small catalogues: top up from rare, then epic, still under the name cap
        for rarity in ("rare", "epic"):
            if len(deck) >= CARDS_PER_DECK:
                break
            self._fill(deck, used_names, self._shuffled(pools.get(rarity)), CARDS_PER_DECK, level, cycle=True)

        if len(deck) < CARDS_PER_DECK:
            raise GenerationError(
                f"Card catalogue too small to build floor {floor_number}: "
                f"only {len(deck)} of {CARDS_PER_DECK} slots could be filled"
            )

        return GeneratedFloorDeck(
            floor_number=floor_number,
            floor_name=f"Floor {floor_number}",
            deck_name=f"Floor {floor_number} Deck",
            cards=deck,
            average_card_level=average_card_level([card.level for card in deck]),
        )

    def _fill(
        self,
        deck: list[GeneratedDeckCard],
        used_names: Counter[str],
        pool: list[CatalogueCard],
        fill_to: int,
        level: int,
        cycle: bool = False,
    ) -> None:
        while len(deck) < fill_to:
            added = False
            for card in pool:
                if len(deck) >= fill_to:
                    break
                if used_names[card.name] >= AI_MAX_SAME_NAME_CARDS:
                    continue
                deck.append(
                    GeneratedDeckCard(
                        card_name=card.name,
                        level=level,
                        power_ups=self.distribute_power_ups(level),
                    )
                )
                used_names[card.name] += 1
                added = True
            if not cycle or not added:
                break

    def distribute_power_ups(self, level: int) -> PowerUps:
        """Spend exactly the level's power-up budget using a random strategy."""
        remaining = calculate_max_powerups(level, is_ai=True)
        points = dict.fromkeys(EDGES, 0)
        if remaining == 0:
            return PowerUps()

        strategy = self.rng.random()
        if strategy < 0.3:
            # Two strong edges
            first, second = self.rng.sample(EDGES, 2)
            points[first] = int(remaining * 0.6)
            points[second] = remaining - points[first]
        elif strategy < 0.6:
            # Even split, remainder on the left edge
            per_edge = remaining // 4
            points.update(top=per_edge, right=per_edge, bottom=per_edge)
            points["left"] = remaining - per_edge * 3
        else:
            for _ in range(remaining):
                points[self.rng.choice(EDGES)] += 1

        return PowerUps(**points)

    def _shuffled(self, cards: list[CatalogueCard] | None) -> list[CatalogueCard]:
        # Fisher-Yates over a copy
        shuffled = list(cards or [])
        for i in range(len(shuffled) - 1, 0, -1):
            j = self.rng.randint(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled


class ResilientFloorGenerator:
    """Oracle first, fallback for anything the oracle could not deliver."""

    def __init__(self, primary: FloorGenerator, fallback: FallbackFloorGenerator):
        self.primary = primary
        self.fallback = fallback

    async def generate(self, request: GenerationRequest) -> list[GeneratedFloorDeck]:
        floors: dict[int, GeneratedFloorDeck] = {}
        try:
            for floor in await self.primary.generate(request):
                floors[floor.floor_number] = floor
        except ExternalServiceError as e:
            logger.warning("Content oracle unavailable, using fallback generation: %s", e)

        for floor_number in request.floor_numbers:
            if floor_number in floors:
                continue
            single = request.model_copy(update={"start_floor": floor_number, "count": 1})
            for floor in await self.fallback.generate(single):
                floors[floor.floor_number] = floor

        return [floors[n] for n in request.floor_numbers]
