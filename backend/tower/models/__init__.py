"""Database models package."""

from tower.models.user import User
from tower.models.card import Card, UserCard
from tower.models.deck import Deck, DeckCard
from tower.models.game import Game
from tower.models.tower_floor import TowerFloor

__all__ = ["User", "Card", "UserCard", "Deck", "DeckCard", "Game", "TowerFloor"]
