"""Game domain services: room state, timers, scoring and categories.

This package contains the game logic imported by the socket handlers and
HTTP routes, keeping transport concerns separated from core mechanics.
"""

from .broadcast import SocketIOGateway
from .errors import GameError, PersistenceFailure
from .service import GameService

__all__ = ['GameService', 'SocketIOGateway', 'GameError', 'PersistenceFailure']
