import logging
from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from tournament_api.config import config

db = SQLAlchemy()
logger = logging.getLogger(__name__)

API_PREFIX = '/api/v1'


def _parse_allowed_origins(raw_origins):
    if not raw_origins:
        return '*'

    if isinstance(raw_origins, (list, tuple, set)):
        cleaned = [origin for origin in raw_origins if origin]
        return cleaned or '*'

    raw_text = str(raw_origins).strip()
    if not raw_text or raw_text == '*':
        return '*'

    origins = [origin.strip() for origin in raw_text.split(',') if origin.strip()]
    return origins or '*'


def _configure_logging(app):
    level_name = str(app.config.get('LOG_LEVEL') or 'INFO').strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def _run_lightweight_migrations():
    """Apply small schema updates for local/dev databases without Alembic."""
    inspector = inspect(db.engine)
    table_names = inspector.get_table_names()
    if 'tournament' not in table_names:
        return

    tournament_columns = {col['name'] for col in inspector.get_columns('tournament')}
    with db.engine.begin() as connection:
        if 'share_url' not in tournament_columns:
            connection.execute(text(
                'ALTER TABLE tournament ADD COLUMN share_url VARCHAR(500)'
            ))

        # Databases created before the partial index existed may hold several
        # live results for one match; keep the newest before enforcing it.
        if 'match_result' in table_names:
            connection.execute(text(
                'UPDATE match_result SET is_deleted = :deleted '
                'WHERE is_deleted = :live AND id NOT IN ('
                '  SELECT MAX(id) FROM match_result WHERE is_deleted = :live GROUP BY match_id'
                ')'
            ), {'deleted': True, 'live': False})
            live_filter = 'NOT is_deleted' if connection.dialect.name == 'postgresql' else 'is_deleted = 0'
            connection.execute(text(
                'CREATE UNIQUE INDEX IF NOT EXISTS ux_match_result_active_match '
                f'ON match_result (match_id) WHERE {live_filter}'
            ))


def _register_error_handlers(app):
    from tournament_api.errors import ServiceError

    @app.errorhandler(ServiceError)
    def _handle_service_error(exc):
        return jsonify({'error': exc.message}), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _handle_database_error(exc):
        db.session.rollback()
        logger.exception('Database error on %s %s', request.method, request.path)
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(404)
    def _handle_not_found(exc):
        return jsonify({'error': 'Route not found', 'path': request.path}), 404

    @app.errorhandler(405)
    def _handle_method_not_allowed(exc):
        return jsonify({'error': 'Method not allowed'}), 405


def create_app(config_name='development'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    _configure_logging(app)

    allowed_origins = _parse_allowed_origins(app.config.get('CORS_ALLOWED_ORIGINS', '*'))
    if str(config_name).strip().lower() == 'production':
        secret_key = str(app.config.get('SECRET_KEY') or '').strip()
        if not secret_key or secret_key == 'dev-secret-key-change-in-prod':
            raise RuntimeError('SECRET_KEY must be set to a non-default value in production')
        if allowed_origins == '*':
            raise RuntimeError('CORS_ALLOWED_ORIGINS must be explicitly set in production')

    db.init_app(app)
    CORS(app, resources={r'/api/*': {'origins': allowed_origins}})
    _register_error_handlers(app)

    from tournament_api.routes.auth import auth_bp
    from tournament_api.routes.users import users_bp
    from tournament_api.routes.tournaments import tournaments_bp

    app.register_blueprint(auth_bp, url_prefix=f'{API_PREFIX}/auth')
    app.register_blueprint(users_bp, url_prefix=f'{API_PREFIX}/users')
    app.register_blueprint(tournaments_bp, url_prefix=f'{API_PREFIX}/tournaments')

    @app.route('/')
    def index():
        return jsonify({
            'message': 'Welcome to Tournament Management API',
            'version': '1.0.0',
            'endpoints': {
                'auth': f'{API_PREFIX}/auth',
                'users': f'{API_PREFIX}/users',
                'tournaments': f'{API_PREFIX}/tournaments',
            },
        })

    with app.app_context():
        from tournament_api import models  # noqa: F401
        db.create_all()
        _run_lightweight_migrations()

    logger.info('Tournament API configured (%s)', config_name)
    return app
