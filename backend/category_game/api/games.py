from flask import Blueprint, current_app, jsonify

games = Blueprint('games', __name__)


def _service():
    return current_app.extensions['category_game']


@games.route('/active', methods=['GET'])
def list_active_games():
    return jsonify(_service().list_rooms())


@games.route('/<string:code>/state', methods=['GET'])
def get_game_state(code):
    state = _service().room_state(code)
    if state is None:
        return jsonify({'error': 'Room not found'}), 404
    return jsonify(state)
