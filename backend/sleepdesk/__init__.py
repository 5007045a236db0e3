from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _make_engine(db_url: str):
    if db_url.endswith(':memory:'):
        # one shared in-memory SQLite database for every session and thread
        return create_engine(
            db_url,
            future=True,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )
    return create_engine(db_url, future=True)


def _error_body(status: int, title: str, detail: Any):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


def register_error_handlers(app: Flask):
    from .errors import DomainError

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_body(e.code, e.name, e.description)
        if isinstance(e, DomainError):
            if e.status >= 500:
                app.logger.error('%s: %s', e.title, e)
            return _error_body(e.status, e.title, str(e))
        app.logger.exception('Unhandled exception')
        return _error_body(500, 'Internal Server Error', 'Unexpected error')


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    from .config.settings import load_settings
    app.config.update(load_settings())
    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.basicConfig(level=app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    db_engine = _make_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .extensions import init_services
    init_services(app)

    from .routes.iam import iam_bp
    from .routes.activity import activity_bp
    from .routes.data import data_bp
    from .routes.webhooks import webhooks_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(activity_bp, url_prefix='/activity-logs')
    app.register_blueprint(data_bp, url_prefix='/data')
    app.register_blueprint(webhooks_bp, url_prefix='/webhooks')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def rollback_on_error(exc):  # type: ignore
        if exc is not None and SessionLocal is not None:
            SessionLocal.rollback()

    register_error_handlers(app)
    return app


def get_db():
    return SessionLocal()
