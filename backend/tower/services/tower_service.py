"""Tower service - starting tower games and processing their completion.

Completion runs as one transaction on the caller's session: verify the game,
lock the user row, check the claimed floor, pay the rewards, advance the
floor, commit. The user row lock plus the compare-and-set floor update make
rewards at-most-once per floor per user. Floor generation is decided inside
the transaction and handed to the background worker only after commit.
"""

import logging
import random
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tower.config import settings
from tower.core.generation_gate import should_generate
from tower.core.reward_formula import get_tower_reward, normalize_floor
from tower.exceptions import (
    FloorConflictError,
    FloorNotFoundError,
    GameValidationError,
    PersistenceError,
    TowerError,
)
from tower.models.game import Game
from tower.schemas.tower import (
    AIDeckPreview,
    TowerCompletionResult,
    TowerFloorList,
    TowerFloorOut,
    TowerGameStart,
    TowerProgress,
)
from tower.services.background import GenerationJob
from tower.services.currency_service import CurrencyService, currency_service
from tower.services.deck_service import DeckService, deck_service
from tower.services.generation_service import generation_worker
from tower.services.progress_store import ProgressStore, progress_store
from tower.services.rules_engine import RulesEngine, StoredGameRulesEngine

logger = logging.getLogger(__name__)

PREVIEW_CARDS = 3


class TowerService:
    def __init__(
        self,
        rules_engine: RulesEngine,
        decks: DeckService,
        currency: CurrencyService = currency_service,
        store: ProgressStore = progress_store,
        scheduler: Callable[[GenerationJob], bool] | None = None,
        lookahead: int = settings.TOWER_LOOKAHEAD,
        floors_per_generation: int = settings.FLOORS_PER_GENERATION,
        rng: random.Random | None = None,
    ):
        self.rules_engine = rules_engine
        self.decks = decks
        self.currency = currency
        self.store = store
        self.scheduler = scheduler
        self.lookahead = lookahead
        self.floors_per_generation = floors_per_generation
        self.rng = rng or random.Random()

    @property
    def ai_player_id(self) -> str:
        return self.decks.ai_player_id

    # ------------------------------------------------------------------
    # Game start
    # ------------------------------------------------------------------

    async def start_tower_game(
        self, db: AsyncSession, user_id: str, deck_id: str
    ) -> TowerGameStart:
        floor_number = await self.store.get_current_floor(db, user_id)
        floor = await self.store.get_floor(db, floor_number)
        if floor is None:
            raise FloorNotFoundError(floor_number)

        await self.decks.validate_user_deck(db, deck_id, user_id)
        player_cards = await self.decks.get_deck_card_instances(db, deck_id)

        await self.decks.validate_ai_deck(db, floor.ai_deck_id)
        ai_cards = await self.decks.get_deck_card_instances(db, floor.ai_deck_id)
        if not ai_cards:
            logger.warning("Floor %d has an empty AI deck, mirroring the player deck", floor_number)
            ai_cards = await self.decks.create_ai_card_copies(db, player_cards)

        game_state = await self.rules_engine.initialize_game(
            player_cards, ai_cards, user_id, self.ai_player_id
        )
        game_state["current_player_id"] = (
            user_id if self.rng.random() < 0.5 else self.ai_player_id
        )

        game = Game(
            player1_id=user_id,
            player2_id=self.ai_player_id,
            player1_deck_id=deck_id,
            player2_deck_id=floor.ai_deck_id,
            game_mode="solo",
            game_status="active",
            game_state=game_state,
            floor_number=floor_number,
        )
        db.add(game)
        await db.flush()

        ai_deck_name = await self.decks.get_deck_name(db, floor.ai_deck_id)
        logger.info("User %s started floor %d (game %s)", user_id, floor_number, game.game_id)
        return TowerGameStart(
            game_id=game.game_id,
            floor_number=floor_number,
            floor_name=floor.name,
            ai_deck_preview=(
                AIDeckPreview(name=ai_deck_name, card_count=len(ai_cards))
                if ai_deck_name
                else None
            ),
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def process_tower_completion(
        self,
        db: AsyncSession,
        user_id: str,
        floor_number,
        won: bool,
        game_id: str | None = None,
    ) -> TowerCompletionResult:
        floor_number = normalize_floor(floor_number)

        if not won:
            return TowerCompletionResult(success=True, won=False, floor_number=floor_number)

        job = None
        try:
            if game_id is not None:
                await self._verify_game(db, user_id, floor_number, game_id)

            current_floor = await self.store.lock_and_get_current_floor(db, user_id)
            if current_floor != floor_number:
                raise FloorConflictError(current_floor, floor_number)

            rewards = get_tower_reward(floor_number)
            cards_awarded = await self.currency.apply_tower_rewards(db, user_id, rewards)
            new_floor = await self.store.advance_floor(db, user_id, floor_number)

            max_floor = await self.store.get_max_floor_number(db)
            if should_generate(new_floor, max_floor, self.lookahead):
                job = GenerationJob(
                    start_floor=max_floor + 1,
                    count=self.floors_per_generation,
                    reference_floor=max_floor or None,
                )

            await db.commit()
        except TowerError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            logger.exception("Tower completion failed for user %s on floor %d", user_id, floor_number)
            raise PersistenceError() from e

        logger.info(
            "User %s cleared floor %d: %d gems, %d packs, %d fragments",
            user_id,
            floor_number,
            rewards.gems,
            rewards.packs,
            rewards.card_fragments,
        )

        return TowerCompletionResult(
            success=True,
            won=True,
            floor_number=floor_number,
            rewards_earned=rewards,
            cards_awarded=None if cards_awarded.is_empty() else cards_awarded,
            new_floor=new_floor,
            generation_triggered=self._schedule(job) if job is not None else False,
        )

    async def _verify_game(
        self, db: AsyncSession, user_id: str, floor_number: int, game_id: str
    ) -> None:
        game = await self.rules_engine.get_game_result(db, game_id)
        if game is None:
            raise GameValidationError(f"Game not found: {game_id}")
        if game.player_id != user_id:
            raise GameValidationError("Game does not belong to this user")
        if game.floor_number != floor_number:
            raise GameValidationError(
                f"Game was played on floor {game.floor_number}, not {floor_number}"
            )
        if game.winner_id is not None and game.winner_id != user_id:
            raise GameValidationError("Game was not won by this user")

    def _schedule(self, job: GenerationJob) -> bool:
        if self.scheduler is None:
            return False
        return self.scheduler(job)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_progress(self, db: AsyncSession, user_id: str) -> TowerProgress:
        return await self.store.get_progress(db, user_id)

    async def get_floors_near_user(
        self, db: AsyncSession, user_id: str, range: int = 5
    ) -> TowerFloorList:
        current_floor = await self.store.get_current_floor(db, user_id)
        floors = await self.store.get_floors_in_range(
            db, max(1, current_floor - range), current_floor + range
        )

        items = []
        for floor in floors:
            item = TowerFloorOut.model_validate(floor)
            item.reward_preview = get_tower_reward(floor.floor_number)
            item.preview_cards = await self.decks.get_top_cards(
                db, floor.ai_deck_id, limit=PREVIEW_CARDS
            )
            items.append(item)

        return TowerFloorList(
            current_floor=current_floor,
            floors=items,
            max_available_floor=await self.store.get_max_floor_number(db),
        )

    async def get_floor_details(self, db: AsyncSession, floor_number) -> TowerFloorOut:
        floor_number = normalize_floor(floor_number)
        floor = await self.store.get_floor(db, floor_number)
        if floor is None:
            raise FloorNotFoundError(floor_number)
        item = TowerFloorOut.model_validate(floor)
        item.reward_preview = get_tower_reward(floor_number)
        return item


tower_service = TowerService(
    StoredGameRulesEngine(),
    deck_service,
    scheduler=generation_worker.submit,
)
