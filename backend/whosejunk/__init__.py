from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Static round catalog, loaded once
    from whosejunk.services.rounds import load_rounds
    flask_app.extensions['round_catalog'] = load_rounds(flask_app.config.get('ROUNDS_PATH'))

    from whosejunk.store import DocumentStore
    flask_app.extensions['document_store'] = DocumentStore()

    from whosejunk.identity import TrustedClaimsProvider, load_user, on_auth_change
    flask_app.extensions['identity_provider'] = flask_app.config.get('IDENTITY_PROVIDER') or TrustedClaimsProvider()
    login_manager.user_loader(load_user)

    from whosejunk.main import main
    flask_app.register_blueprint(main)

    from whosejunk.api.play import play, discard_session_on_sign_out
    flask_app.register_blueprint(play, url_prefix='/api/play')
    on_auth_change(discard_session_on_sign_out, app=flask_app)

    from whosejunk.api.season import season
    flask_app.register_blueprint(season, url_prefix='/api/season')

    from whosejunk.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the tables, then seeds the season counter."""
        from whosejunk.services.season import ensure_season
        from whosejunk.store import get_store
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            ensure_season(get_store(), int(flask_app.config.get('INITIAL_SEASON', 1)))
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
