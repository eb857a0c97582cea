import io

from flask import Blueprint, Response, current_app, jsonify, request

from category_game import bcrypt
from category_game.services.games.store import GameStore

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'service': 'category-game', 'status': 'ok'})


@main.route('/export/csv', methods=['GET', 'OPTIONS'])
def export_csv():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200
    password_hash = current_app.config.get('EXPORT_PASSWORD_HASH')
    password = request.args.get('password', '')
    if not password_hash or not password or not bcrypt.check_password_hash(password_hash, password):
        current_app.logger.warning(f"[export] rejected from {request.remote_addr}")
        return jsonify({'error': 'Unauthorized'}), 401

    buffer = io.StringIO()
    GameStore(current_app.logger).write_csv(buffer)
    return Response(
        buffer.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=category_game_data.csv'},
    )
