from category_game.services.games.store import CSV_HEADER, GameStore


def _create_room(sio_client):
    sio_client.emit('create-room', namespace='/ws')
    received = sio_client.get_received('/ws')
    created = next(pkt for pkt in received if pkt['name'] == 'room-created')
    return created['args'][0]['code']


def test_index(client):
    res = client.get('/')
    assert res.status_code == 200
    assert res.get_json()['status'] == 'ok'


def test_unknown_room_state_is_404(client):
    res = client.get('/api/games/ZZZZ/state')
    assert res.status_code == 404
    assert res.get_json()['error'] == 'Room not found'


def test_live_room_state_and_listing(flask_app, client, sio_client):
    code = _create_room(sio_client)
    res = client.get(f'/api/games/{code}/state')
    assert res.status_code == 200
    state = res.get_json()
    assert state['code'] == code
    assert state['phase'] == 'lobby'
    assert state['players'] == []

    res = client.get('/api/games/active')
    assert res.status_code == 200
    assert [room['code'] for room in res.get_json()] == [code]


def test_export_requires_password(client):
    assert client.get('/export/csv').status_code == 401
    assert client.get('/export/csv?password=wrong').status_code == 401


def test_export_returns_csv(flask_app, client):
    store = GameStore(flask_app.logger)
    game_id = store.create_game('ABCD', 'gm')
    bob = store.add_player(game_id, 'uid-bob', 'sid-bob', 'Bob')
    ann = store.add_player(game_id, 'uid-ann', 'sid-ann', 'Ann')
    round_id = store.start_round(game_id, 1, 'furniture')
    submission_id = store.log_submission(round_id, bob, 'chair')
    store.log_vote(submission_id, ann, True)
    store.update_submission_results(submission_id, 0, 1, 0)

    res = client.get('/export/csv?password=letmein')
    assert res.status_code == 200
    assert res.mimetype == 'text/csv'
    assert 'category_game_data.csv' in res.headers['Content-Disposition']
    lines = res.get_data(as_text=True).strip().splitlines()
    assert lines[0] == ','.join(CSV_HEADER)
    assert len(lines) == 2
    row = lines[1].split(',')
    assert row[0] == 'ABCD'
    assert row[3:8] == ['1', 'furniture', 'Bob', 'chair', '0']
    assert row[10:] == ['1', 'Ann']


def test_export_cli_writes_report(flask_app):
    GameStore(flask_app.logger).create_game('ABCD', 'gm')
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['export-csv'])
    assert result.exit_code == 0
    assert result.output.splitlines()[0] == ','.join(CSV_HEADER)
