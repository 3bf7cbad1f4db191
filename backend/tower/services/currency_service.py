"""Currency service - the ledger writes behind tower rewards.

Every operation runs on the session it is given. The completion path passes
the session that holds the user's row lock, so reward writes are covered by
that lock.
"""

from sqlalchemy import or_, select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from tower.models.card import Card, UserCard
from tower.models.user import User
from tower.schemas.tower import AwardedCard, CardsAwarded, RewardBundle

# Minimum base rarity -> base rarities that qualify
_RARITIES_AT_LEAST = {
    "rare": ["rare", "epic", "legendary"],
    "epic": ["epic", "legendary"],
    "legendary": ["legendary"],
}


class CurrencyService:
    @staticmethod
    async def _add(db: AsyncSession, user_id: str, column, amount: int) -> None:
        await db.execute(
            update(User)
            .where(User.user_id == user_id)
            .values({column: column + amount})
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    async def add_gems(db: AsyncSession, user_id: str, amount: int) -> None:
        await CurrencyService._add(db, user_id, User.gems, amount)

    @staticmethod
    async def add_packs(db: AsyncSession, user_id: str, amount: int) -> None:
        await CurrencyService._add(db, user_id, User.packs, amount)

    @staticmethod
    async def add_card_fragments(db: AsyncSession, user_id: str, amount: int) -> None:
        await CurrencyService._add(db, user_id, User.card_fragments, amount)

    @staticmethod
    async def _grant(db: AsyncSession, user_id: str, card: Card) -> AwardedCard:
        instance = UserCard(user_id=user_id, card_id=card.card_id, level=1, xp=0)
        db.add(instance)
        await db.flush()
        return AwardedCard(
            user_card_instance_id=instance.user_card_instance_id,
            card_id=card.card_id,
            name=card.name,
            rarity=card.rarity,
            image_url=card.image_url,
        )

    @staticmethod
    async def award_random_card_by_rarity(
        db: AsyncSession, user_id: str, rarity: str
    ) -> AwardedCard | None:
        """Give the user one random card of exactly ``rarity``; None if there is none."""
        result = await db.execute(
            select(Card).where(Card.rarity == rarity).order_by(func.random()).limit(1)
        )
        card = result.scalar_one_or_none()
        if card is None:
            return None
        return await CurrencyService._grant(db, user_id, card)

    @staticmethod
    async def award_random_variant_card(
        db: AsyncSession, user_id: str, min_rarity: str = "rare"
    ) -> AwardedCard | None:
        """Give the user a random variant (+/++/+++) card of at least ``min_rarity``.

        Falls back to a plain card of ``min_rarity`` when no variant exists.
        """
        rarities = _RARITIES_AT_LEAST[min_rarity]
        result = await db.execute(
            select(Card)
            .where(
                or_(*[Card.rarity.like(f"{r}%") for r in rarities]),
                Card.rarity.like("%+"),
            )
            .order_by(func.random())
            .limit(1)
        )
        card = result.scalar_one_or_none()
        if card is None:
            return await CurrencyService.award_random_card_by_rarity(db, user_id, min_rarity)
        return await CurrencyService._grant(db, user_id, card)

    @staticmethod
    async def apply_tower_rewards(
        db: AsyncSession, user_id: str, rewards: RewardBundle
    ) -> CardsAwarded:
        """Apply a reward bundle: currency deltas first, then special cards."""
        if rewards.gems > 0:
            await CurrencyService.add_gems(db, user_id, rewards.gems)
        if rewards.packs > 0:
            await CurrencyService.add_packs(db, user_id, rewards.packs)
        if rewards.card_fragments > 0:
            await CurrencyService.add_card_fragments(db, user_id, rewards.card_fragments)

        awarded = CardsAwarded()
        if rewards.rare_art_card > 0:
            awarded.rare_art_card = await CurrencyService.award_random_variant_card(
                db, user_id, "rare"
            )
        if rewards.legendary_card > 0:
            awarded.legendary_card = await CurrencyService.award_random_card_by_rarity(
                db, user_id, "legendary"
            )
        if rewards.epic_card > 0:
            awarded.epic_card = await CurrencyService.award_random_card_by_rarity(
                db, user_id, "epic"
            )
        return awarded


currency_service = CurrencyService()
