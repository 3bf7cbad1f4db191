"""Tower-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, Field

TowerTier = Literal["E", "D", "C", "B", "A", "S"]


class RewardBundle(BaseModel):
    """Rewards for clearing one floor. Computed from the floor number, never stored."""
    floor: int
    band: int  # band 0 = floors 1-10, band 1 = 11-20, ...
    tier: TowerTier
    gems: int
    packs: int
    card_fragments: int
    rare_art_card: int = 0  # 0 or 1
    legendary_card: int = 0  # 0 or 1
    epic_card: int = 0  # 0 or 1

    @property
    def gem_value(self) -> int:
        """Total value in gems, with packs counted at 100 gems each."""
        return self.packs * 100 + self.gems


class PowerUps(BaseModel):
    top: int = Field(default=0, ge=0)
    right: int = Field(default=0, ge=0)
    bottom: int = Field(default=0, ge=0)
    left: int = Field(default=0, ge=0)

    @property
    def total(self) -> int:
        return self.top + self.right + self.bottom + self.left


class EdgePower(BaseModel):
    top: int = 0
    right: int = 0
    bottom: int = 0
    left: int = 0

    @property
    def total(self) -> int:
        return self.top + self.right + self.bottom + self.left


# ---------------------------------------------------------------------------
# Generation inputs/outputs
# ---------------------------------------------------------------------------


class CatalogueCard(BaseModel):
    """A non-variant card as offered to the floor generators."""
    card_id: str
    name: str
    rarity: str
    base_power: EdgePower
    ability_name: str | None = None
    ability_description: str | None = None


class ReferenceCard(BaseModel):
    name: str
    level: int
    effective_power: EdgePower  # base power + power-ups


class ReferenceDeck(BaseModel):
    """The deck of the highest existing floor, used to anchor difficulty."""
    floor_number: int
    cards: list[ReferenceCard] = []

    @property
    def average_level(self) -> float:
        if not self.cards:
            return 1.0
        return sum(c.level for c in self.cards) / len(self.cards)

    @property
    def average_power(self) -> float:
        if not self.cards:
            return 0.0
        return sum(c.effective_power.total for c in self.cards) / len(self.cards)


class GeneratedDeckCard(BaseModel):
    card_name: str
    level: int = Field(ge=1)
    power_ups: PowerUps = Field(default_factory=PowerUps)


class GeneratedFloorDeck(BaseModel):
    floor_number: int = Field(ge=1)
    floor_name: str
    deck_name: str
    cards: list[GeneratedDeckCard]
    average_card_level: float = 1.0


class GenerationRequest(BaseModel):
    start_floor: int = Field(ge=1)
    count: int = Field(ge=1)
    catalogue: list[CatalogueCard]
    reference_deck: ReferenceDeck | None = None

    @property
    def floor_numbers(self) -> list[int]:
        return list(range(self.start_floor, self.start_floor + self.count))


# ---------------------------------------------------------------------------
# Floors & progress
# ---------------------------------------------------------------------------


class TowerProgress(BaseModel):
    current_floor: int  # the floor the user needs to beat next
    highest_completed: int


class TowerFloorOut(BaseModel):
    floor_number: int
    name: str
    ai_deck_id: str
    is_active: bool
    average_card_level: float | None = None
    reward_preview: RewardBundle | None = None
    preview_cards: list[str] | None = None  # top card ids of the AI deck

    model_config = {"from_attributes": True}


class TowerFloorList(BaseModel):
    current_floor: int
    floors: list[TowerFloorOut]
    max_available_floor: int


# ---------------------------------------------------------------------------
# Game start / completion
# ---------------------------------------------------------------------------


class TowerStartRequest(BaseModel):
    player_deck_id: str


class AIDeckPreview(BaseModel):
    name: str
    card_count: int


class TowerGameStart(BaseModel):
    game_id: str
    floor_number: int
    floor_name: str
    ai_deck_preview: AIDeckPreview | None = None


class TowerCompleteRequest(BaseModel):
    floor_number: int
    won: bool
    game_id: str | None = None


class AwardedCard(BaseModel):
    user_card_instance_id: str
    card_id: str
    name: str
    rarity: str
    image_url: str | None = None


class CardsAwarded(BaseModel):
    rare_art_card: AwardedCard | None = None
    legendary_card: AwardedCard | None = None
    epic_card: AwardedCard | None = None

    def is_empty(self) -> bool:
        return not (self.rare_art_card or self.legendary_card or self.epic_card)


class TowerCompletionResult(BaseModel):
    success: bool
    won: bool
    floor_number: int
    rewards_earned: RewardBundle | None = None
    cards_awarded: CardsAwarded | None = None
    new_floor: int | None = None
    generation_triggered: bool | None = None
