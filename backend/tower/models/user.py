"""User model - the tower progress counter and the currency ledger columns.

Currency lives on the user row so reward writes happen under the same row
lock that guards ``current_floor``.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from tower.db.database import Base

# Every player starts the tower on floor 1
STARTING_FLOOR = 1


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    username: Mapped[str] = mapped_column(String(100), default="Player")

    # Tower progress: the next unbeaten floor
    current_floor: Mapped[int] = mapped_column(Integer, default=STARTING_FLOOR)

    # Currency ledger
    gems: Mapped[int] = mapped_column(Integer, default=0)
    packs: Mapped[int] = mapped_column(Integer, default=0)
    card_fragments: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
