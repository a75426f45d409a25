from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

from haygame.rate_limit import RateLimiter  # noqa: E402
from haygame.store import PersistenceStore  # noqa: E402

store = PersistenceStore(db)
rate_limiter = RateLimiter()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    store.init_app(flask_app)
    from haygame import security
    security.init_app(flask_app)
    rate_limiter.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from haygame.services.registry import EXTENSION_KEY, build_services
    flask_app.extensions[EXTENSION_KEY] = build_services(flask_app.config, store)

    from haygame.errors import GameError

    @flask_app.errorhandler(GameError)
    def handle_game_error(exc):
        if exc.status_code >= 500:
            flask_app.logger.error(f"[error] {exc.message}")
        return jsonify(exc.to_dict()), exc.status_code

    # Import and register blueprints here
    from haygame.main import main
    flask_app.register_blueprint(main)

    from haygame.api.play import play
    flask_app.register_blueprint(play, url_prefix='/api')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from haygame.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from haygame.commands import register_commands
    register_commands(flask_app)

    return flask_app
