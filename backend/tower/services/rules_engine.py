"""Rules engine - the game-logic contract the tower depends on.

The card-battle rules live outside the tower. ``StoredGameRulesEngine`` is the
minimal implementation that ships with it: it deals an opening state and reads
finished games back from the ``games`` table.
"""

from dataclasses import dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from tower.models.game import Game

BOARD_SIZE = 4
HAND_SIZE = 5


@dataclass(frozen=True)
class GameResult:
    game_id: str
    player_id: str
    winner_id: str | None
    floor_number: int | None
    status: str


class RulesEngine(Protocol):
    async def initialize_game(
        self,
        player_cards: list[str],
        ai_cards: list[str],
        player_id: str,
        opponent_id: str,
    ) -> dict:
        ...

    async def get_game_result(self, db: AsyncSession, game_id: str) -> GameResult | None:
        ...


class StoredGameRulesEngine:
    async def initialize_game(
        self,
        player_cards: list[str],
        ai_cards: list[str],
        player_id: str,
        opponent_id: str,
    ) -> dict:
        return {
            "board": [[None] * BOARD_SIZE for _ in range(BOARD_SIZE)],
            "player1": {
                "user_id": player_id,
                "hand": player_cards[:HAND_SIZE],
                "deck": player_cards[HAND_SIZE:],
                "discard_pile": [],
            },
            "player2": {
                "user_id": opponent_id,
                "hand": ai_cards[:HAND_SIZE],
                "deck": ai_cards[HAND_SIZE:],
                "discard_pile": [],
            },
            "current_player_id": player_id,
            "turn_number": 1,
            "status": "active",
            "winner": None,
        }

    async def get_game_result(self, db: AsyncSession, game_id: str) -> GameResult | None:
        game = await db.get(Game, game_id)
        if game is None:
            return None
        return GameResult(
            game_id=game.game_id,
            player_id=game.player1_id,
            winner_id=game.winner_id,
            floor_number=game.floor_number,
            status=game.game_status,
        )
