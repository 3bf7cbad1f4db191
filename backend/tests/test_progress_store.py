"""Tests for the progress store - floor reads and the compare-and-set advance."""

import pytest

from tower.exceptions import FloorConflictError, UserNotFoundError
from tower.services.progress_store import progress_store


async def test_current_floor_and_progress(db, seed):
    user_id = await seed.user(current_floor=7)

    assert await progress_store.get_current_floor(db, user_id) == 7
    progress = await progress_store.get_progress(db, user_id)
    assert progress.current_floor == 7
    assert progress.highest_completed == 6


async def test_new_user_starts_on_floor_one(db, seed):
    user_id = await seed.user()
    progress = await progress_store.get_progress(db, user_id)
    assert progress.current_floor == 1
    assert progress.highest_completed == 0


async def test_unknown_user(db):
    with pytest.raises(UserNotFoundError):
        await progress_store.get_current_floor(db, "missing")
    with pytest.raises(UserNotFoundError):
        await progress_store.lock_and_get_current_floor(db, "missing")


async def test_lock_and_get_current_floor(db, seed):
    user_id = await seed.user(current_floor=3)
    assert await progress_store.lock_and_get_current_floor(db, user_id) == 3


async def test_advance_floor(db, seed):
    user_id = await seed.user(current_floor=3)

    assert await progress_store.advance_floor(db, user_id, 3) == 4
    await db.commit()

    user = await seed.get_user(user_id)
    assert user.current_floor == 4


async def test_advance_floor_rejects_stale_expectation(db, seed):
    user_id = await seed.user(current_floor=5)

    with pytest.raises(FloorConflictError) as exc_info:
        await progress_store.advance_floor(db, user_id, 4)
    assert exc_info.value.current_floor == 5
    assert exc_info.value.claimed_floor == 4
    await db.rollback()

    user = await seed.get_user(user_id)
    assert user.current_floor == 5


async def test_empty_tower(db):
    assert await progress_store.get_max_floor_number(db) == 0
    assert await progress_store.get_floor(db, 1) is None
    assert await progress_store.floor_exists(db, 1) is False


async def test_floor_catalogue(db, seed):
    await seed.catalogue()
    for n in (1, 2, 3, 4):
        await seed.floor(n)
    await seed.floor(5, is_active=False)

    assert await progress_store.get_max_floor_number(db) == 4
    floor = await progress_store.get_floor(db, 2)
    assert floor.name == "Floor 2"

    # Inactive floors exist but are never served
    assert await progress_store.get_floor(db, 5) is None
    assert await progress_store.floor_exists(db, 5) is True

    floors = await progress_store.get_floors_in_range(db, 2, 10)
    assert [f.floor_number for f in floors] == [2, 3, 4]
