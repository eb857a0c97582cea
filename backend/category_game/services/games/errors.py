"""Errors reported back to the connection that caused them."""


class GameError(Exception):
    message = 'Something went wrong'

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class RoomNotFound(GameError):
    message = 'Room not found'


class PlayerNotFound(GameError):
    message = 'Player not found'


class InvalidNickname(GameError):
    message = 'Nickname required'


class NicknameTaken(GameError):
    message = 'Nickname already taken'


class WrongPhase(GameError):
    message = 'Action not allowed in the current phase'


class AlreadyActed(GameError):
    message = 'Already acted this round'


class EmptyInput(GameError):
    message = 'Input cannot be empty'


class NotAuthorized(GameError):
    message = 'Not authorized'


class NoCategories(GameError):
    message = 'Unable to start game - no categories available'


class PersistenceFailure(Exception):
    """A store write or read failed; gameplay continues from memory."""
