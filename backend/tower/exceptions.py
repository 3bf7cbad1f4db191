"""
Tower exception hierarchy.

Every error raised by the tower engine derives from TowerError, so the API
layer can map a whole family to one HTTP status.
"""


class TowerError(Exception):
    """Base class for tower errors."""

    def __init__(self, message: str = "Unexpected tower error"):
        self.message = message
        super().__init__(self.message)


# =============================================================================
# Validation (surfaced to the caller, never retried)
# =============================================================================


class ValidationError(TowerError):
    pass


class InvalidFloorError(ValidationError):
    """Floor number is not a positive finite number."""

    def __init__(self, floor):
        self.floor = floor
        super().__init__(f"floor must be a positive integer. Got: {floor}")


class DeckValidationError(ValidationError):
    """A deck broke one of the deck-building rules.

    ``reason`` is a stable code the client can switch on.
    """

    AI_DECK = "ai_deck"
    NOT_OWNER = "not_owner"
    WRONG_SIZE = "wrong_size"
    TOO_MANY_LEGENDARY = "too_many_legendary"
    TOO_MANY_COPIES = "too_many_copies"
    EMPTY = "empty"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class GameValidationError(ValidationError):
    """The game record does not back up the completion being claimed."""


# =============================================================================
# Conflict (stale completion attempt)
# =============================================================================


class ConflictError(TowerError):
    pass


class FloorConflictError(ConflictError):
    def __init__(self, current_floor: int, claimed_floor: int):
        self.current_floor = current_floor
        self.claimed_floor = claimed_floor
        super().__init__(f"User is on floor {current_floor}, not {claimed_floor}")


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(TowerError):
    pass


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class FloorNotFoundError(NotFoundError):
    def __init__(self, floor_number: int):
        self.floor_number = floor_number
        super().__init__(
            f"Floor {floor_number} not available. Maximum floor may have been reached."
        )


class DeckNotFoundError(NotFoundError):
    def __init__(self, deck_id: str):
        self.deck_id = deck_id
        super().__init__(f"Deck not found: {deck_id}")


# =============================================================================
# Generation side (never surfaced to a completion request)
# =============================================================================


class ExternalServiceError(TowerError):
    """The content oracle failed or returned nothing usable."""


class GenerationError(TowerError):
    """A generation run could not produce or store a floor."""


# =============================================================================
# Persistence
# =============================================================================


class PersistenceError(TowerError):
    def __init__(self, message: str = "Failed to process tower completion"):
        super().__init__(message)
