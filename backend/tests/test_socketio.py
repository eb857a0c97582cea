from category_game import socketio


def _events(client, name):
    return [pkt['args'][0] if pkt['args'] else {} for pkt in client.get_received('/ws') if pkt['name'] == name]


def _create_room(sio_client):
    sio_client.emit('create-room', namespace='/ws')
    created = _events(sio_client, 'room-created')
    assert len(created) == 1
    return created[0]


def test_socket_connect_and_ping(sio_client):
    assert sio_client.is_connected('/ws')
    received = sio_client.get_received('/ws')
    assert any(pkt['name'] == 'connected' for pkt in received)

    sio_client.emit('ping', {'n': 1}, namespace='/ws')
    assert _events(sio_client, 'pong') == [{'n': 1}]


def test_create_and_join_room(flask_app, sio_client):
    created = _create_room(sio_client)
    assert len(created['code']) == 4
    assert created['gmToken']

    player = socketio.test_client(flask_app, namespace='/ws')
    player.get_received('/ws')
    player.emit('join-room', {'roomCode': created['code'], 'nickname': 'Ann'}, namespace='/ws')
    received = player.get_received('/ws')
    success = [pkt['args'][0] for pkt in received if pkt['name'] == 'join-success']
    assert success[0]['nickname'] == 'Ann'
    assert success[0]['code'] == created['code']
    states = [pkt['args'][0] for pkt in received if pkt['name'] == 'game-state-update']
    assert states[-1]['players'][0]['nickname'] == 'Ann'

    # the GM sees the lobby change too
    gm_states = _events(sio_client, 'game-state-update')
    assert gm_states[-1]['players'][0]['nickname'] == 'Ann'
    player.disconnect(namespace='/ws')


def test_join_errors_go_to_the_joining_socket(flask_app, sio_client):
    created = _create_room(sio_client)
    player = socketio.test_client(flask_app, namespace='/ws')
    player.get_received('/ws')

    player.emit('join-room', {'roomCode': 'ZZZZ', 'nickname': 'Ann'}, namespace='/ws')
    assert _events(player, 'join-error') == [{'message': 'Room not found'}]

    player.emit('join-room', {'roomCode': created['code'], 'nickname': ''}, namespace='/ws')
    assert _events(player, 'join-error') == [{'message': 'Nickname required'}]
    assert not _events(sio_client, 'join-error')
    player.disconnect(namespace='/ws')


def test_actions_outside_a_room_report_error(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('submit-exemplar', {'exemplar': 'chair'}, namespace='/ws')
    assert _events(sio_client, 'error') == [{'message': 'Not in a room'}]

    sio_client.emit('reconnect-player', {'roomCode': 'ZZZZ', 'playerId': 'nobody'}, namespace='/ws')
    assert _events(sio_client, 'reconnect-error') == [{'message': 'Room not found'}]


def test_player_cannot_start_game(flask_app, sio_client):
    created = _create_room(sio_client)
    player = socketio.test_client(flask_app, namespace='/ws')
    player.emit('join-room', {'roomCode': created['code'], 'nickname': 'Ann'}, namespace='/ws')
    player.get_received('/ws')
    player.emit('start-lobby-game', {}, namespace='/ws')
    assert _events(player, 'error') == [{'message': 'Not authorized'}]
    player.disconnect(namespace='/ws')


def test_gm_disconnect_notifies_players(flask_app, sio_client):
    created = _create_room(sio_client)
    player = socketio.test_client(flask_app, namespace='/ws')
    player.emit('join-room', {'roomCode': created['code'], 'nickname': 'Ann'}, namespace='/ws')
    player.get_received('/ws')

    sio_client.disconnect(namespace='/ws')
    assert _events(player, 'gm-disconnected') == [{}]
    service = flask_app.extensions['category_game']
    assert service.rooms[created['code']].expires_at is not None
    player.disconnect(namespace='/ws')
