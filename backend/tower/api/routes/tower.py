"""Tower endpoints - progress, floors, reward previews, game start and completion.

The caller is identified by the ``user_id`` query parameter. Tower errors are
turned into HTTP responses by the exception handlers in ``tower.main``.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tower.core.reward_formula import get_tower_reward
from tower.db.database import get_db
from tower.schemas.tower import (
    RewardBundle,
    TowerCompleteRequest,
    TowerCompletionResult,
    TowerFloorList,
    TowerFloorOut,
    TowerGameStart,
    TowerProgress,
    TowerStartRequest,
)
from tower.services.tower_service import tower_service

router = APIRouter()


@router.get("/progress", response_model=TowerProgress)
async def get_progress(user_id: str = Query(...), db: AsyncSession = Depends(get_db)):
    """Current floor and highest completed floor."""
    return await tower_service.get_progress(db, user_id)


@router.get("/floors", response_model=TowerFloorList)
async def get_floors(
    user_id: str = Query(...),
    range: int = Query(5, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Floors around the user's current floor, with reward previews."""
    return await tower_service.get_floors_near_user(db, user_id, range=range)


@router.get("/floor/{floor_number}", response_model=TowerFloorOut)
async def get_floor(floor_number: int, db: AsyncSession = Depends(get_db)):
    return await tower_service.get_floor_details(db, floor_number)


@router.get("/rewards/{floor_number}", response_model=RewardBundle)
async def get_rewards(floor_number: int):
    return get_tower_reward(floor_number)


@router.post("/start", response_model=TowerGameStart, status_code=201)
async def start_tower_game(
    data: TowerStartRequest,
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Start a game against the AI deck of the user's current floor."""
    return await tower_service.start_tower_game(db, user_id, data.player_deck_id)


@router.post("/complete", response_model=TowerCompletionResult)
async def complete_floor(
    data: TowerCompleteRequest,
    user_id: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """Report a finished tower game. Wins pay out once per floor."""
    return await tower_service.process_tower_completion(
        db, user_id, data.floor_number, data.won, game_id=data.game_id
    )
