"""Progress store - a user's current floor and the floor catalogue.

Every function takes the caller's session, so reads and writes land in the
caller's transaction. ``lock_and_get_current_floor`` holds the user row until
that transaction ends.
"""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tower.exceptions import FloorConflictError, UserNotFoundError
from tower.models.tower_floor import TowerFloor
from tower.models.user import User
from tower.schemas.tower import TowerProgress


class ProgressStore:
    @staticmethod
    async def get_current_floor(db: AsyncSession, user_id: str) -> int:
        result = await db.execute(select(User.current_floor).where(User.user_id == user_id))
        current_floor = result.scalar_one_or_none()
        if current_floor is None:
            raise UserNotFoundError(user_id)
        return current_floor

    @staticmethod
    async def get_progress(db: AsyncSession, user_id: str) -> TowerProgress:
        current_floor = await ProgressStore.get_current_floor(db, user_id)
        return TowerProgress(current_floor=current_floor, highest_completed=current_floor - 1)

    @staticmethod
    async def lock_and_get_current_floor(db: AsyncSession, user_id: str) -> int:
        """Read the current floor with an exclusive row lock (SELECT ... FOR UPDATE).

        A concurrent caller blocks here until the holder commits or rolls
        back, then sees the post-commit value.
        """
        result = await db.execute(
            select(User.current_floor).where(User.user_id == user_id).with_for_update()
        )
        current_floor = result.scalar_one_or_none()
        if current_floor is None:
            raise UserNotFoundError(user_id)
        return current_floor

    @staticmethod
    async def advance_floor(db: AsyncSession, user_id: str, expected_floor: int) -> int:
        """Move the user from ``expected_floor`` to the next floor, compare-and-set style."""
        new_floor = expected_floor + 1
        result = await db.execute(
            update(User)
            .where(User.user_id == user_id, User.current_floor == expected_floor)
            .values(current_floor=new_floor)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current_floor = await ProgressStore.get_current_floor(db, user_id)
            raise FloorConflictError(current_floor, expected_floor)
        return new_floor

    @staticmethod
    async def get_floor(db: AsyncSession, floor_number: int) -> TowerFloor | None:
        """Get an active floor, or None."""
        result = await db.execute(
            select(TowerFloor).where(
                TowerFloor.floor_number == floor_number, TowerFloor.is_active.is_(True)
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def floor_exists(db: AsyncSession, floor_number: int) -> bool:
        """True if the floor number is taken, active or not."""
        result = await db.execute(
            select(TowerFloor.floor_number).where(TowerFloor.floor_number == floor_number)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def get_max_floor_number(db: AsyncSession) -> int:
        """Highest active floor number, 0 when the tower is empty."""
        result = await db.execute(
            select(func.max(TowerFloor.floor_number)).where(TowerFloor.is_active.is_(True))
        )
        return result.scalar_one_or_none() or 0

    @staticmethod
    async def get_floors_in_range(
        db: AsyncSession, min_floor: int, max_floor: int
    ) -> list[TowerFloor]:
        result = await db.execute(
            select(TowerFloor)
            .where(
                TowerFloor.floor_number >= min_floor,
                TowerFloor.floor_number <= max_floor,
                TowerFloor.is_active.is_(True),
            )
            .order_by(TowerFloor.floor_number)
        )
        return list(result.scalars().all())


progress_store = ProgressStore()
