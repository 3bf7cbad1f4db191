"""Deck service - decks, card instances and the card catalogue.

Used to assemble the card instances a tower game starts with and to read and
write the AI decks behind tower floors.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tower.config import settings
from tower.core.deck_rules import DeckCardInfo, validate_player_deck
from tower.exceptions import DeckNotFoundError, DeckValidationError
from tower.models.card import Card, UserCard
from tower.models.deck import Deck, DeckCard
from tower.models.tower_floor import TowerFloor
from tower.schemas.tower import (
    CatalogueCard,
    EdgePower,
    GeneratedFloorDeck,
    ReferenceCard,
    ReferenceDeck,
)

logger = logging.getLogger(__name__)

# Preview ordering: higher rarity first, then total power
RARITY_PRIORITY = {"legendary": 4, "epic": 3, "rare": 2, "uncommon": 1, "common": 0}


class DeckService:
    def __init__(self, ai_player_id: str = settings.AI_PLAYER_ID):
        self.ai_player_id = ai_player_id

    async def get_deck(self, db: AsyncSession, deck_id: str) -> Deck:
        deck = await db.get(Deck, deck_id)
        if deck is None:
            raise DeckNotFoundError(deck_id)
        return deck

    async def validate_user_deck(self, db: AsyncSession, deck_id: str, user_id: str) -> Deck:
        """Run the player deck rules for a tower game. Raises DeckValidationError."""
        deck = await self.get_deck(db, deck_id)
        validate_player_deck(
            deck.user_id, user_id, await self.get_deck_cards(db, deck_id), self.ai_player_id
        )
        return deck

    async def validate_ai_deck(self, db: AsyncSession, deck_id: str) -> Deck:
        deck = await self.get_deck(db, deck_id)
        if deck.user_id != self.ai_player_id:
            raise DeckValidationError(
                DeckValidationError.NOT_OWNER, f"Deck {deck_id} is not an AI deck"
            )
        return deck

    async def get_deck_name(self, db: AsyncSession, deck_id: str) -> str | None:
        result = await db.execute(select(Deck.name).where(Deck.deck_id == deck_id))
        return result.scalar_one_or_none()

    async def get_deck_card_instances(self, db: AsyncSession, deck_id: str) -> list[str]:
        result = await db.execute(
            select(DeckCard.user_card_instance_id)
            .where(DeckCard.deck_id == deck_id)
            .order_by(DeckCard.id)
        )
        return list(result.scalars().all())

    async def get_deck_cards(self, db: AsyncSession, deck_id: str) -> list[DeckCardInfo]:
        result = await db.execute(
            select(Card.name, Card.rarity)
            .join(UserCard, UserCard.card_id == Card.card_id)
            .join(DeckCard, DeckCard.user_card_instance_id == UserCard.user_card_instance_id)
            .where(DeckCard.deck_id == deck_id)
            .order_by(DeckCard.id)
        )
        return [DeckCardInfo(name=name, rarity=rarity) for name, rarity in result.all()]

    async def create_ai_card_copies(self, db: AsyncSession, instance_ids: list[str]) -> list[str]:
        """Copy card instances (level and power-ups included) to the AI account."""
        result = await db.execute(
            select(UserCard).where(UserCard.user_card_instance_id.in_(instance_ids))
        )
        originals = {uc.user_card_instance_id: uc for uc in result.scalars().all()}

        copies = []
        for instance_id in instance_ids:
            original = originals.get(instance_id)
            if original is None:
                continue
            copy = UserCard(
                user_id=self.ai_player_id,
                card_id=original.card_id,
                level=original.level,
                power_up_top=original.power_up_top,
                power_up_right=original.power_up_right,
                power_up_bottom=original.power_up_bottom,
                power_up_left=original.power_up_left,
            )
            db.add(copy)
            copies.append(copy)
        await db.flush()
        return [c.user_card_instance_id for c in copies]

    async def get_card_catalogue(self, db: AsyncSession) -> list[CatalogueCard]:
        """All non-variant cards, by name."""
        result = await db.execute(
            select(Card).where(Card.rarity.not_like("%+")).order_by(Card.name)
        )
        return [
            CatalogueCard(
                card_id=card.card_id,
                name=card.name,
                rarity=card.rarity,
                base_power=EdgePower(
                    top=card.power_top,
                    right=card.power_right,
                    bottom=card.power_bottom,
                    left=card.power_left,
                ),
                ability_name=card.special_ability_name,
                ability_description=card.special_ability_description,
            )
            for card in result.scalars().all()
        ]

    async def get_reference_deck(
        self, db: AsyncSession, floor_number: int
    ) -> ReferenceDeck | None:
        """The AI deck of ``floor_number`` with effective (base + power-up) edge power."""
        floor = await db.get(TowerFloor, floor_number)
        if floor is None or not floor.is_active:
            return None

        result = await db.execute(
            select(UserCard)
            .join(DeckCard, DeckCard.user_card_instance_id == UserCard.user_card_instance_id)
            .where(DeckCard.deck_id == floor.ai_deck_id)
            .order_by(DeckCard.id)
        )
        cards = [
            ReferenceCard(
                name=uc.card.name,
                level=uc.level,
                effective_power=EdgePower(
                    top=uc.card.power_top + uc.power_up_top,
                    right=uc.card.power_right + uc.power_up_right,
                    bottom=uc.card.power_bottom + uc.power_up_bottom,
                    left=uc.card.power_left + uc.power_up_left,
                ),
            )
            for uc in result.unique().scalars().all()
        ]
        return ReferenceDeck(floor_number=floor_number, cards=cards)

    async def get_top_cards(self, db: AsyncSession, deck_id: str, limit: int = 3) -> list[str]:
        """Distinct card ids of a deck ranked by rarity, then base power."""
        result = await db.execute(
            select(Card)
            .join(UserCard, UserCard.card_id == Card.card_id)
            .join(DeckCard, DeckCard.user_card_instance_id == UserCard.user_card_instance_id)
            .where(DeckCard.deck_id == deck_id)
        )
        cards = {card.card_id: card for card in result.scalars().all()}
        ranked = sorted(
            cards.values(),
            key=lambda c: (
                RARITY_PRIORITY.get(c.base_rarity, 0),
                c.power_top + c.power_right + c.power_bottom + c.power_left,
            ),
            reverse=True,
        )
        return [card.card_id for card in ranked[:limit]]

    async def create_ai_deck(
        self, db: AsyncSession, floor: GeneratedFloorDeck
    ) -> tuple[str, int]:
        """Create the AI deck and its card instances for a generated floor.

        Returns the deck id and the number of cards added; names missing from
        the catalogue are skipped.
        """
        deck = Deck(user_id=self.ai_player_id, name=floor.deck_name)
        db.add(deck)
        await db.flush()

        added = 0
        for generated in floor.cards:
            result = await db.execute(
                select(Card)
                .where(
                    func.lower(Card.name) == generated.card_name.lower(),
                    Card.rarity.not_like("%+"),
                )
                .limit(1)
            )
            card = result.scalar_one_or_none()
            if card is None:
                logger.warning("Card not found: %r, skipping", generated.card_name)
                continue

            instance = UserCard(
                user_id=self.ai_player_id,
                card_id=card.card_id,
                level=generated.level,
                power_up_top=generated.power_ups.top,
                power_up_right=generated.power_ups.right,
                power_up_bottom=generated.power_ups.bottom,
                power_up_left=generated.power_ups.left,
            )
            db.add(instance)
            await db.flush()
            db.add(DeckCard(deck_id=deck.deck_id, user_card_instance_id=instance.user_card_instance_id))
            added += 1

        await db.flush()
        return deck.deck_id, added


deck_service = DeckService()
