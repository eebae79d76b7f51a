# Creates the Flask app (App Factory)
from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
import click
import logging
from .config import Config

# Initialize extensions
db = SQLAlchemy()
jwt = JWTManager()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


# Application Factory Function
def create_app(config_object=None):
    app = Flask(__name__, static_folder=None)
    app.config.from_object(config_object or Config)

    # Extensions
    db.init_app(app)
    jwt.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGIN']}},
         supports_credentials=True)

    # Logging configuration
    if not app.logger.handlers:
        logging.basicConfig(level=app.config['LOG_LEVEL'],
                            format='%(asctime)s %(levelname)s %(name)s - %(message)s')
    app.logger.setLevel(app.config['LOG_LEVEL'])

    from .storage import StorageSettings, create_storage
    settings = StorageSettings.from_config(app.config)
    app.extensions['storage_settings'] = settings
    app.extensions['image_storage'] = create_storage(settings)

    with app.app_context():
        if db.engine.dialect.name == 'sqlite':
            event.listen(db.engine, 'connect', _enable_sqlite_foreign_keys)

    # Guard registers the identity loader on the JWT manager
    from . import guard  # noqa: F401

    # Import and register the blueprints from routes.py
    from .routes import users, posts, collections, meta
    app.register_blueprint(users, url_prefix='/api/v1/user')
    app.register_blueprint(posts, url_prefix='/api/v1/posts')
    app.register_blueprint(collections, url_prefix='/api/v1/collection')
    app.register_blueprint(meta)

    _register_error_handlers(app)

    @app.cli.command('init-db')
    def init_db():
        """Create all database tables."""
        db.create_all()
        click.echo('Database tables created')

    app.logger.debug('Application created and configured')
    return app


def _register_error_handlers(app):
    from .errors import SnapitError, TransientError

    @app.errorhandler(SnapitError)
    def handle_snapit_error(error):
        if error.status_code >= 500:
            app.logger.error(f'{type(error).__name__}: {error.message}')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(error):
        db.session.rollback()
        app.logger.exception('Unhandled store error')
        failure = TransientError()
        return jsonify(failure.to_dict()), failure.status_code

    @app.errorhandler(413)
    def handle_too_large(error):
        return jsonify({'success': False, 'message': 'Upload too large'}), 413

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({'success': False, 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return jsonify({'success': False, 'message': 'Method not allowed'}), 405

    @app.errorhandler(500)
    def handle_internal_error(error):
        app.logger.error(f'Unhandled error: {getattr(error, "original_exception", error)!r}')
        return jsonify({'success': False, 'message': 'Internal server error'}), 500
