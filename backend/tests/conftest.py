"""Shared test fixtures - uses async SQLite for isolated testing.

Each test gets its own SQLite file. Every transaction opens with
``BEGIN IMMEDIATE``, which takes SQLite's write lock up front: a second
transaction waits until the first commits or rolls back, the same way the
user row lock serialises completions on PostgreSQL.
"""

import random

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tower.config import settings
from tower.db.database import Base, get_db
from tower.models import Card, Deck, DeckCard, Game, TowerFloor, User, UserCard
from tower.schemas.tower import CatalogueCard, EdgePower
from tower.services.deck_service import DeckService
from tower.services.rules_engine import StoredGameRulesEngine
from tower.services.tower_service import TowerService

AI_PLAYER_ID = settings.AI_PLAYER_ID

# (name, rarity, top, right, bottom, left)
CATALOGUE = [
    ("Fenrir", "legendary", 9, 8, 9, 7),
    ("Odin", "legendary", 8, 9, 7, 9),
    ("Valkyrie", "epic", 7, 6, 7, 5),
    ("Loki", "epic", 6, 7, 5, 7),
    ("Freya", "epic", 5, 7, 6, 6),
    ("Berserker", "rare", 6, 4, 5, 4),
    ("Shieldmaiden", "rare", 4, 5, 6, 5),
    ("Skald", "rare", 5, 5, 4, 5),
    ("Thrall", "common", 2, 3, 2, 3),
    ("Raven", "common", 3, 2, 3, 2),
    ("Wolf", "common", 3, 3, 2, 2),
    ("Elk", "common", 2, 2, 3, 3),
    ("Jarl", "uncommon", 4, 3, 3, 4),
    ("Huscarl", "uncommon", 3, 4, 4, 3),
    ("Shieldmaiden", "rare+", 5, 6, 7, 6),
    ("Valkyrie", "epic++", 8, 7, 8, 6),
]

# Ten non-legendary names, two copies each, is a valid 20-card player deck
PLAYER_DECK_NAMES = [
    "Valkyrie", "Loki", "Freya", "Berserker", "Shieldmaiden",
    "Skald", "Thrall", "Raven", "Wolf", "Elk",
]


class Seeder:
    """Writes fixtures in short committed transactions so no test holds a lock."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def catalogue(self) -> dict[tuple[str, str], str]:
        cards = {}
        async with self.session_factory() as db, db.begin():
            for name, rarity, top, right, bottom, left in CATALOGUE:
                card = Card(
                    name=name,
                    rarity=rarity,
                    power_top=top,
                    power_right=right,
                    power_bottom=bottom,
                    power_left=left,
                )
                db.add(card)
                await db.flush()
                cards[(name, rarity)] = card.card_id
        return cards

    async def user(self, current_floor: int = 1, user_id: str | None = None, **fields) -> str:
        async with self.session_factory() as db, db.begin():
            user = User(current_floor=current_floor, **fields)
            if user_id is not None:
                user.user_id = user_id
            db.add(user)
            await db.flush()
            return user.user_id

    async def ai_user(self) -> str:
        async with self.session_factory() as db, db.begin():
            if await db.get(User, AI_PLAYER_ID) is None:
                db.add(User(user_id=AI_PLAYER_ID, username="Tower AI"))
        return AI_PLAYER_ID

    async def deck(
        self, user_id: str, names: list[str], copies: int = 1, level: int = 1, name: str = "Deck"
    ) -> str:
        async with self.session_factory() as db, db.begin():
            deck = Deck(user_id=user_id, name=name)
            db.add(deck)
            await db.flush()
            for card_name in names:
                result = await db.execute(
                    select(Card).where(Card.name == card_name, Card.rarity.not_like("%+"))
                )
                card = result.scalar_one()
                for _ in range(copies):
                    instance = UserCard(user_id=user_id, card_id=card.card_id, level=level)
                    db.add(instance)
                    await db.flush()
                    db.add(
                        DeckCard(
                            deck_id=deck.deck_id,
                            user_card_instance_id=instance.user_card_instance_id,
                        )
                    )
            return deck.deck_id

    async def player_deck(self, user_id: str) -> str:
        return await self.deck(user_id, PLAYER_DECK_NAMES, copies=2, name="My Deck")

    async def floor(
        self, floor_number: int, names: list[str] | None = None, is_active: bool = True
    ) -> str:
        await self.ai_user()
        deck_id = await self.deck(
            AI_PLAYER_ID,
            PLAYER_DECK_NAMES if names is None else names,
            copies=2,
            level=2,
            name=f"Floor {floor_number} Deck",
        )
        async with self.session_factory() as db, db.begin():
            db.add(
                TowerFloor(
                    floor_number=floor_number,
                    name=f"Floor {floor_number}",
                    ai_deck_id=deck_id,
                    average_card_level=2.0,
                    is_active=is_active,
                )
            )
        return deck_id

    async def game(
        self,
        user_id: str,
        floor_number: int | None,
        winner_id: str | None = None,
        status: str = "completed",
    ) -> str:
        async with self.session_factory() as db, db.begin():
            game = Game(
                player1_id=user_id,
                player2_id=AI_PLAYER_ID,
                player1_deck_id="player-deck",
                player2_deck_id="ai-deck",
                game_status=status,
                floor_number=floor_number,
                winner_id=winner_id,
            )
            db.add(game)
            await db.flush()
            return game.game_id

    async def get_user(self, user_id: str) -> User:
        async with self.session_factory() as db, db.begin():
            return await db.get(User, user_id)

    async def owned_cards(self, user_id: str) -> list[UserCard]:
        async with self.session_factory() as db, db.begin():
            result = await db.execute(select(UserCard).where(UserCard.user_id == user_id))
            return list(result.scalars().all())

    async def floor_numbers(self) -> list[int]:
        async with self.session_factory() as db, db.begin():
            result = await db.execute(
                select(TowerFloor.floor_number).order_by(TowerFloor.floor_number)
            )
            return list(result.scalars().all())


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine, tables created, one per test."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'tower.db'}",
        echo=False,
        connect_args={"timeout": 15},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    """Direct async DB session for service-level tests."""
    async with session_factory() as session:
        yield session
        await session.commit()


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def scheduled():
    """Generation jobs handed to the scheduler by the tower service."""
    return []


@pytest.fixture
def service(scheduled):
    def schedule(job):
        scheduled.append(job)
        return True

    return TowerService(
        StoredGameRulesEngine(),
        DeckService(AI_PLAYER_ID),
        scheduler=schedule,
        rng=random.Random(7),
    )


@pytest.fixture
async def client(session_factory):
    """Async HTTP test client with test DB override."""
    from tower.main import app

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def card_catalogue() -> list[CatalogueCard]:
    """The test catalogue as the generators see it: non-variant cards only."""
    return [
        CatalogueCard(
            card_id=f"card-{i}",
            name=name,
            rarity=rarity,
            base_power=EdgePower(top=top, right=right, bottom=bottom, left=left),
        )
        for i, (name, rarity, top, right, bottom, left) in enumerate(CATALOGUE)
        if not rarity.endswith("+")
    ]
