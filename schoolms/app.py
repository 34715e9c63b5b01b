import logging
import os

from flask import Flask, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix

from schoolms.config import Config
from schoolms.exceptions import SchoolMSError
from schoolms.extensions import db, migrate, login_manager, limiter


def configure_logging(app):
    logging.basicConfig(
        level=getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # SQL echo is far too chatty at DEBUG
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

    configure_logging(app)

    # Add CORS headers
    @app.after_request
    def after_request(response):
        response.headers.add('Access-Control-Allow-Origin', '*')
        response.headers.add('Access-Control-Allow-Headers', 'Content-Type,Authorization')
        response.headers.add('Access-Control-Allow-Methods', 'GET,PUT,PATCH,POST,DELETE,OPTIONS')
        return response

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=app.config.get('MIGRATIONS_DIR', _migrations_dir()))
    login_manager.init_app(app)
    limiter.init_app(app)

    # Make sure every model is registered on the metadata
    from schoolms import models  # noqa: F401

    register_auth_loaders()
    register_error_handlers(app)

    # Import and register blueprints
    from schoolms.routes.auth import auth_bp
    from schoolms.routes.users import users_bp
    from schoolms.routes.students import students_bp
    from schoolms.routes.attendance import attendance_bp
    from schoolms.routes.sponsorships import sponsorships_bp
    from schoolms.routes.settings import settings_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(students_bp)
    app.register_blueprint(attendance_bp)
    app.register_blueprint(sponsorships_bp)
    app.register_blueprint(settings_bp)

    @app.route('/api/health')
    @limiter.exempt
    def health_check():
        return jsonify({'success': True, 'status': 'ok'})

    return app


def _migrations_dir():
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')


def register_auth_loaders():
    from schoolms.models import User
    from schoolms.utils.tokens import bearer_token, decode_access_token

    # Load the user from the database when needed
    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    # API clients authenticate with "Authorization: Bearer <token>"
    @login_manager.request_loader
    def load_user_from_request(req):
        token = bearer_token(req.headers.get('Authorization'))
        if not token:
            return None
        claims = decode_access_token(token)
        if not claims or not str(claims.get('sub', '')).isdigit():
            return None
        user = db.session.get(User, int(claims['sub']))
        if user is None or user.account_locked:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'success': False, 'message': 'Authentication required'}), 401


def register_error_handlers(app):
    @app.errorhandler(SchoolMSError)
    def handle_domain_error(error):
        db.session.rollback()
        app.logger.warning(f"{type(error).__name__} on {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'message': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'success': False, 'message': 'Method not allowed'}), 405

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'success': False, 'message': f'Too many requests: {error.description}'}), 429
