from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    # Pull the last synced database before anything opens it
    sync = None
    if flask_app.config.get('GCS_BUCKET') or flask_app.config.get('GOOGLE_CLOUD_PROJECT'):
        from category_game.services.games.storage_sync import StorageSync
        sync = StorageSync.from_app(flask_app)
        if sync is not None:
            sync.download()

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    migrate.init_app(flask_app, db)
    origins = flask_app.config.get('CORS_ORIGINS', '*')
    CORS(flask_app, resources={r"/api/*": {"origins": origins}, r"/export/*": {"origins": origins}})

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    # Hash the export password once so requests are checked with bcrypt
    password = flask_app.config.get('EXPORT_PASSWORD')
    flask_app.config['EXPORT_PASSWORD_HASH'] = (
        bcrypt.generate_password_hash(password).decode('utf-8') if password else None
    )

    from category_game.main import main
    flask_app.register_blueprint(main)

    from category_game.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # One coordinating service per app owns every room and connection binding
    from category_game.services.games import GameService, SocketIOGateway
    flask_app.extensions['category_game'] = GameService(
        flask_app, SocketIOGateway(socketio), socketio=socketio, sync=sync
    )

    from category_game.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database tables."""
        import category_game.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    @click.command('export-csv')
    @click.option('--output', '-o', type=click.File('w'), default='-', help='Destination file (stdout by default).')
    def export_csv_command(output):
        """Writes the research report as CSV."""
        from category_game.services.games.store import GameStore
        with flask_app.app_context():
            GameStore(flask_app.logger).write_csv(output)

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(export_csv_command)

    return flask_app
