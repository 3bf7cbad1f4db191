"""Game record - written when a tower game starts, read back on completion."""

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, DateTime, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from tower.db.database import Base


class Game(Base):
    __tablename__ = "games"

    game_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    player1_id: Mapped[str] = mapped_column(String(36), index=True)
    player2_id: Mapped[str] = mapped_column(String(36))
    player1_deck_id: Mapped[str] = mapped_column(String(36))
    player2_deck_id: Mapped[str] = mapped_column(String(36))

    game_mode: Mapped[str] = mapped_column(String(20), default="solo")
    game_status: Mapped[str] = mapped_column(String(20), default="active")
    game_state: Mapped[dict] = mapped_column(JSON, default=dict)

    # Tower floor this game was played on, null for other game types
    floor_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    winner_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
