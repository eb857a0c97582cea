from flask_socketio import join_room

NAMESPACE = '/ws'


def room_channel(code: str) -> str:
    return f"game:{code}"


class SocketIOGateway:
    """Delivers game events over Flask-SocketIO on the ``/ws`` namespace."""

    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit_to_connection(self, connection_id, event, payload=None):
        if not connection_id:
            return
        self.socketio.emit(event, payload or {}, to=connection_id, namespace=self.namespace)

    def emit_to_room(self, code, event, payload=None):
        self.socketio.emit(event, payload or {}, to=room_channel(code), namespace=self.namespace)

    def join_room_channel(self, connection_id, code):
        # Only called from inside a socket handler
        join_room(room_channel(code), sid=connection_id, namespace=self.namespace)
