"""Tests for the tower exception hierarchy."""

from tower.exceptions import (
    ConflictError,
    DeckNotFoundError,
    DeckValidationError,
    FloorConflictError,
    FloorNotFoundError,
    GameValidationError,
    InvalidFloorError,
    NotFoundError,
    PersistenceError,
    TowerError,
    UserNotFoundError,
    ValidationError,
)


def test_families():
    assert issubclass(InvalidFloorError, ValidationError)
    assert issubclass(DeckValidationError, ValidationError)
    assert issubclass(GameValidationError, ValidationError)
    assert issubclass(FloorConflictError, ConflictError)
    for cls in (UserNotFoundError, FloorNotFoundError, DeckNotFoundError):
        assert issubclass(cls, NotFoundError)
    for cls in (ValidationError, ConflictError, NotFoundError, PersistenceError):
        assert issubclass(cls, TowerError)


def test_messages():
    assert FloorConflictError(6, 5).message == "User is on floor 6, not 5"
    assert InvalidFloorError(0).message == "floor must be a positive integer. Got: 0"
    assert PersistenceError().message == "Failed to process tower completion"
    assert str(UserNotFoundError("u1")) == "User not found: u1"


def test_deck_validation_reason():
    err = DeckValidationError(DeckValidationError.WRONG_SIZE, "Deck must have exactly 20 cards.")
    assert err.reason == "wrong_size"
    assert err.message == "Deck must have exactly 20 cards."
