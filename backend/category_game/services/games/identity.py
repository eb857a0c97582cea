from __future__ import annotations

from typing import Dict, Optional, Tuple

from .state import Player, Room


class IdentityRegistry:
    """Maps transient Socket.IO connection ids to (room code, player id).

    GM and display connections are not stored here; they live on the room
    itself and are found by ``resolve_room``. A player id may be bound to a
    new connection at any time (reconnection); the latest bind wins.
    """

    def __init__(self, rooms: Dict[str, Room]):
        self._rooms = rooms
        self._bindings: Dict[str, Tuple[str, str]] = {}

    def bind(self, connection_id: str, room_code: str, player_id: str) -> None:
        # Drop stale bindings of the same player so only the newest connection resolves
        for sid, (code, pid) in list(self._bindings.items()):
            if code == room_code and pid == player_id and sid != connection_id:
                del self._bindings[sid]
        self._bindings[connection_id] = (room_code, player_id)

    def unbind(self, connection_id: str) -> Optional[Tuple[str, str]]:
        return self._bindings.pop(connection_id, None)

    def unbind_room(self, room_code: str) -> None:
        for sid, (code, _) in list(self._bindings.items()):
            if code == room_code:
                del self._bindings[sid]

    def unbind_player(self, room_code: str, player_id: str) -> None:
        for sid, (code, pid) in list(self._bindings.items()):
            if code == room_code and pid == player_id:
                del self._bindings[sid]

    def resolve_player(self, connection_id: str) -> Optional[Player]:
        binding = self._bindings.get(connection_id)
        if not binding:
            return None
        room = self._rooms.get(binding[0])
        if not room:
            return None
        return room.players.get(binding[1])

    def resolve_room(self, connection_id: str) -> Optional[Room]:
        binding = self._bindings.get(connection_id)
        if binding:
            return self._rooms.get(binding[0])
        for room in self._rooms.values():
            if connection_id in (room.gm_connection_id, room.display_connection_id):
                return room
        return None
