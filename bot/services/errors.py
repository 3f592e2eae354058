"""Domain errors raised by the game services. status_code is what the web API returns."""
from __future__ import annotations


class GameError(Exception):
    """Base class for expected, user-visible failures."""

    status_code = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        self.message = str(self.args[0])


class NotFound(GameError):
    """Not found."""

    status_code = 404


class PresetNotFound(NotFound):
    """Role preset not found."""


class Conflict(GameError):
    """Conflicts with existing state."""

    status_code = 409


class AlreadyQueued(Conflict):
    """Player is already in the queue."""


class SessionAlreadyActive(Conflict):
    """A game is already running. End it first."""


class DuplicateName(Conflict):
    """A preset with this name already exists."""


class InvalidInput(GameError):
    """Invalid input."""

    status_code = 400


class InvalidPreset(InvalidInput):
    """Invalid role preset."""


class InsufficientResources(GameError):
    """Not enough capacity or players."""

    status_code = 409


class InsufficientQueue(InsufficientResources):
    """Not enough players in the queue."""


class CapacityExceeded(InsufficientResources):
    """The queue is full."""


class NoActiveSession(GameError):
    """No game is running."""

    status_code = 409


class TransportFailure(GameError):
    """Message could not be delivered."""

    status_code = 502
