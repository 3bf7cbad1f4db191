"""Floor generation service - extends the tower with new floors.

A run is single-flight: it takes the generation gate without waiting and
exits quietly if someone else holds it. Each floor is stored in its own
transaction, and a floor number that already exists is skipped, so duplicate
triggers never produce duplicate floors.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tower.config import settings
from tower.core.generation_gate import LocalGenerationGate, RedisGenerationGate
from tower.db.database import async_session
from tower.db.redis import get_redis_client
from tower.exceptions import GenerationError
from tower.models.tower_floor import TowerFloor
from tower.models.user import User
from tower.schemas.tower import GeneratedFloorDeck, GenerationRequest
from tower.services.background import GenerationJob, GenerationWorker
from tower.services.deck_service import DeckService, deck_service
from tower.services.floor_generator import (
    FallbackFloorGenerator,
    FloorGenerator,
    ResilientFloorGenerator,
)
from tower.services.llm_service import OracleFloorGenerator
from tower.services.progress_store import progress_store

logger = logging.getLogger("tower.generation")

BOOTSTRAP_FLOORS = 10


class FloorGenerationService:
    def __init__(
        self,
        generator: FloorGenerator,
        gate: LocalGenerationGate | RedisGenerationGate,
        decks: DeckService = deck_service,
        session_factory: async_sessionmaker[AsyncSession] = async_session,
    ):
        self.generator = generator
        self.gate = gate
        self.decks = decks
        self.session_factory = session_factory

    async def extend_tower(
        self, start_floor: int, count: int, reference_floor: int | None = None
    ) -> list[int]:
        """Generate and store ``count`` floors from ``start_floor``.

        Returns the floor numbers actually created.
        """
        async with self.gate.hold() as acquired:
            if not acquired:
                logger.info("Floor generation already in progress, skipping")
                return []

            logger.info(
                "Generating floors %d-%d (reference floor: %s)",
                start_floor,
                start_floor + count - 1,
                reference_floor,
            )
            async with self.session_factory() as db, db.begin():
                reference = None
                if reference_floor is not None:
                    reference = await self.decks.get_reference_deck(db, reference_floor)
                catalogue = await self.decks.get_card_catalogue(db)

            if not catalogue:
                raise GenerationError("No cards available for floor generation")

            request = GenerationRequest(
                start_floor=start_floor,
                count=count,
                catalogue=catalogue,
                reference_deck=reference,
            )
            floors = await self.generator.generate(request)

            created = []
            for floor in floors:
                if await self.create_floor(floor):
                    created.append(floor.floor_number)

            logger.info("Created %d new floor(s): %s", len(created), created)
            return created

    async def create_floor(self, floor: GeneratedFloorDeck) -> bool:
        """Store one generated floor. False if the floor number is already taken."""
        try:
            async with self.session_factory() as db, db.begin():
                if await progress_store.floor_exists(db, floor.floor_number):
                    logger.info("Floor %d already exists, skipping", floor.floor_number)
                    return False

                deck_id, added = await self.decks.create_ai_deck(db, floor)
                if added != len(floor.cards):
                    logger.warning(
                        "Floor %d: only %d of %d cards could be added",
                        floor.floor_number,
                        added,
                        len(floor.cards),
                    )
                db.add(
                    TowerFloor(
                        floor_number=floor.floor_number,
                        name=floor.floor_name,
                        ai_deck_id=deck_id,
                        average_card_level=floor.average_card_level,
                        is_active=True,
                    )
                )
                await db.flush()
        except IntegrityError:
            # Lost an insert race with another instance
            logger.info("Floor %d created concurrently, skipping", floor.floor_number)
            return False
        except SQLAlchemyError as e:
            raise GenerationError(f"Failed to store floor {floor.floor_number}: {e}") from e

        logger.info(
            "Created floor %d (%s, avg level %s)",
            floor.floor_number,
            floor.floor_name,
            floor.average_card_level,
        )
        return True

    async def run_job(self, job: GenerationJob) -> None:
        await self.extend_tower(job.start_floor, job.count, job.reference_floor)

    async def bootstrap(self, count: int = BOOTSTRAP_FLOORS) -> list[int]:
        """Create the AI account and the first floors of an empty tower."""
        async with self.session_factory() as db, db.begin():
            if await db.get(User, self.decks.ai_player_id) is None:
                db.add(User(user_id=self.decks.ai_player_id, username="Tower AI"))
                logger.info("Created AI account %s", self.decks.ai_player_id)
            max_floor = await progress_store.get_max_floor_number(db)

        if max_floor > 0:
            logger.info("Tower already has %d floor(s), nothing to bootstrap", max_floor)
            return []
        return await self.extend_tower(1, count)


def build_generation_gate() -> LocalGenerationGate | RedisGenerationGate:
    if settings.GENERATION_LOCK_BACKEND == "redis":
        return RedisGenerationGate(get_redis_client(), ttl=settings.GENERATION_LOCK_TTL)
    return LocalGenerationGate()


generation_service = FloorGenerationService(
    ResilientFloorGenerator(OracleFloorGenerator(), FallbackFloorGenerator()),
    build_generation_gate(),
)
generation_worker = GenerationWorker(
    generation_service.run_job,
    maxsize=settings.GENERATION_QUEUE_SIZE,
    workers=settings.GENERATION_WORKERS,
)
