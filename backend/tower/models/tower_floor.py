"""Tower floor model - one rung of the endless ladder.

Rows are append-only: only ``is_active`` may change after creation.
"""

from datetime import datetime

from sqlalchemy import String, Integer, Float, Boolean, DateTime, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from tower.db.database import Base


class TowerFloor(Base):
    __tablename__ = "tower_floors"

    floor_number: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(200))
    ai_deck_id: Mapped[str] = mapped_column(ForeignKey("decks.deck_id"))
    average_card_level: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
