from flask import current_app, request
from flask_socketio import emit

from category_game import socketio
from category_game.services.games import GameError
from category_game.services.games.broadcast import NAMESPACE


def _service():
    return current_app.extensions['category_game']


def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _data(data) -> dict:
    return data if isinstance(data, dict) else {}


def _report(exc: GameError, event: str = 'error') -> None:
    current_app.logger.info(f"[rejected] sid={_get_sid()} {event}: {exc.message}")
    emit(event, {'message': exc.message})


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*args):
    _service().disconnect(_get_sid())


def handle_create_room(data=None):
    _service().create_room(_get_sid())


def handle_join_room(data):
    data = _data(data)
    try:
        _service().join_room(_get_sid(), data.get('roomCode'), data.get('nickname'))
    except GameError as exc:
        _report(exc, 'join-error')


def handle_join_display(data):
    try:
        _service().join_display(_get_sid(), _data(data).get('roomCode'))
    except GameError as exc:
        _report(exc)


def handle_reconnect_player(data):
    data = _data(data)
    try:
        _service().reconnect(_get_sid(), data.get('roomCode'), data.get('playerId'))
    except GameError as exc:
        _report(exc, 'reconnect-error')


def handle_reconnect_gm(data):
    data = _data(data)
    try:
        _service().reconnect_gm(_get_sid(), data.get('roomCode'), data.get('gmToken'))
    except GameError as exc:
        _report(exc, 'reconnect-error')


def handle_submit_category(data):
    try:
        _service().submit_category(_get_sid(), _data(data).get('category'))
    except GameError as exc:
        _report(exc)


def handle_host_add_category(data):
    try:
        _service().host_add_category(_get_sid(), _data(data).get('category'))
    except GameError as exc:
        _report(exc)


def handle_start_lobby_game(data=None):
    try:
        _service().start_game(_get_sid())
    except GameError as exc:
        _report(exc)


def handle_submit_exemplar(data):
    try:
        _service().submit_exemplar(_get_sid(), _data(data).get('exemplar'))
    except GameError as exc:
        _report(exc)


def handle_submit_votes(data):
    try:
        _service().submit_votes(_get_sid(), _data(data).get('votes'))
    except GameError as exc:
        _report(exc)


def handle_end_game(data=None):
    try:
        _service().end_game(_get_sid())
    except GameError as exc:
        _report(exc)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('create-room', handle_create_room, namespace=NAMESPACE)
    socketio.on_event('join-room', handle_join_room, namespace=NAMESPACE)
    socketio.on_event('join-display', handle_join_display, namespace=NAMESPACE)
    socketio.on_event('reconnect-player', handle_reconnect_player, namespace=NAMESPACE)
    socketio.on_event('reconnect-gm', handle_reconnect_gm, namespace=NAMESPACE)
    socketio.on_event('submit-category', handle_submit_category, namespace=NAMESPACE)
    socketio.on_event('host-add-category', handle_host_add_category, namespace=NAMESPACE)
    socketio.on_event('start-lobby-game', handle_start_lobby_game, namespace=NAMESPACE)
    socketio.on_event('submit-exemplar', handle_submit_exemplar, namespace=NAMESPACE)
    socketio.on_event('submit-votes', handle_submit_votes, namespace=NAMESPACE)
    socketio.on_event('end-game', handle_end_game, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
