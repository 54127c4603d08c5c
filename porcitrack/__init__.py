import sqlite3

from flask import Flask
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

from .config import build_config
from .logging_config import configure_logging

# This is the heart of our application.
db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(test_config=None):
    """Application factory function."""
    app = Flask(__name__, instance_relative_config=False)

    app.config.from_mapping(build_config())
    if test_config is not None:
        app.config.from_mapping(test_config)

    configure_logging(app.config['LOG_LEVEL'], app.config.get('LOG_FILE'))
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}})

    # Initialize extensions with the app
    db.init_app(app)

    with app.app_context():
        # Import and register the Blueprint
        from .routes import api
        app.register_blueprint(api, url_prefix='/api')

        # Create database tables for our models
        db.create_all()

        app.logger.info('PorciTrack API ready (database: %s)', app.config['SQLALCHEMY_DATABASE_URI'])
        return app
