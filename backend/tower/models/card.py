"""Card catalogue and owned card instances."""

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tower.db.database import Base


class Card(Base):
    """A catalogue card. Variant (art) cards carry "+" suffixes on the rarity."""
    __tablename__ = "cards"

    card_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(100))
    rarity: Mapped[str] = mapped_column(String(20))  # e.g. "rare", "epic+", "legendary++"
    image_url: Mapped[str | None] = mapped_column(String(255), nullable=True)

    power_top: Mapped[int] = mapped_column(Integer, default=0)
    power_right: Mapped[int] = mapped_column(Integer, default=0)
    power_bottom: Mapped[int] = mapped_column(Integer, default=0)
    power_left: Mapped[int] = mapped_column(Integer, default=0)

    special_ability_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    special_ability_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_variant(self) -> bool:
        return self.rarity.endswith("+")

    @property
    def base_rarity(self) -> str:
        return self.rarity.rstrip("+")


class UserCard(Base):
    """An owned card instance with its level and per-edge power-ups."""
    __tablename__ = "user_owned_cards"

    user_card_instance_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(ForeignKey("users.user_id"))
    card_id: Mapped[str] = mapped_column(ForeignKey("cards.card_id"))
    level: Mapped[int] = mapped_column(Integer, default=1)
    xp: Mapped[int] = mapped_column(Integer, default=0)

    power_up_top: Mapped[int] = mapped_column(Integer, default=0)
    power_up_right: Mapped[int] = mapped_column(Integer, default=0)
    power_up_bottom: Mapped[int] = mapped_column(Integer, default=0)
    power_up_left: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    card: Mapped[Card] = relationship(lazy="joined")
