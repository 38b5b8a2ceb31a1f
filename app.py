from flask import Flask, jsonify, request
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException
import logging
import os

from models import db, init_default_data, configure_timezone, DEFAULT_TIMEZONE
from errors import ApiError
from services.chat_hub import ChatHub
from blueprints.auth import auth_bp, load_current_user
from blueprints.users import users_bp
from blueprints.equipes import equipes_bp
from blueprints.matches import matches_bp
from blueprints.coupes import coupes_bp
from blueprints.injuries import injuries_bp
from blueprints.chat import chat_bp
from blueprints.diet import diet_bp
from blueprints.staff import staff_bp
from blueprints.chat_socket import socketio, init_chat_socket

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = 'true') -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _database_uri() -> str:
    """DATABASE_URL when set (remote PostgreSQL), local SQLite otherwise."""
    database_url = os.environ.get('DATABASE_URL')
    if database_url:
        # Heroku PostgreSQL URL fix (postgres:// → postgresql://)
        if database_url.startswith('postgres://'):
            database_url = database_url.replace('postgres://', 'postgresql://', 1)
        return database_url

    default_sqlite_dir = os.path.join(BASE_DIR, 'instance')
    os.makedirs(default_sqlite_dir, exist_ok=True)
    sqlite_path = os.environ.get('SQLITE_PATH', os.path.join(default_sqlite_dir, 'academy.db'))
    return f'sqlite:///{sqlite_path}'


def create_app(test_config=None):
    """Build the Flask application; ``test_config`` overrides any setting."""
    app = Flask(__name__)
    overrides = dict(test_config or {})

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'academy-dev')
    app.config['SQLALCHEMY_DATABASE_URI'] = overrides.get('SQLALCHEMY_DATABASE_URI') or _database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['APP_TIMEZONE'] = os.environ.get('APP_TIMEZONE', DEFAULT_TIMEZONE)
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO').upper()
    app.config['SEED_DEFAULT_DATA'] = _env_flag('SEED_DEFAULT_DATA')
    if os.environ.get('DATABASE_URL'):
        app.config['SQLALCHEMY_ENGINE_OPTIONS'] = {
            'pool_pre_ping': True,
            'pool_recycle': 300,
        }
    app.config.update(overrides)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    configure_timezone(app.config['APP_TIMEZONE'])

    db.init_app(app)
    app.extensions['chat_hub'] = ChatHub()

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(equipes_bp)
    app.register_blueprint(matches_bp)
    app.register_blueprint(coupes_bp)
    app.register_blueprint(injuries_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(diet_bp)
    app.register_blueprint(staff_bp)
    init_chat_socket(app)

    @app.before_request
    def before_request():
        """Load current user before every request to ANY route"""
        load_current_user()

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, error.message)
        else:
            logger.info("%s %s rejected (%s): %s", request.method, request.path, error.status_code, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(error):
        db.session.rollback()
        logger.warning("%s %s violated a constraint: %s", request.method, request.path, error.orig)
        return jsonify({'error': 'conflict', 'message': 'The change conflicts with existing data'}), 409

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        db.session.rollback()
        code = (error.name or 'error').lower().replace(' ', '_')
        return jsonify({'error': code, 'message': error.description}), error.code

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    with app.app_context():
        db.create_all()
        if app.config['SEED_DEFAULT_DATA']:
            init_default_data()
        logger.info("Database initialized successfully")

    return app


if __name__ == "__main__":
    socketio.run(create_app(), debug=True, port=5000)
