# catalog_api/app_factory.py
from datetime import timedelta
from flask import Flask, g, jsonify
from flask_login import LoginManager
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import NotFound, RequestEntityTooLarge
from catalog_api.init_db import db
from catalog_api.errors import AuthError
from catalog_api.logging_config import setup_logging
from catalog_api.authentication.models import User
from catalog_api.authentication.views import CredentialManager, extract_bearer_token
from catalog_api.products import models as product_models  # noqa: F401  registers tables

logger = setup_logging()


def create_app(config_class='catalog_api.config.Config'):
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)

    credentials = CredentialManager(
        secret_key=app.config['SECRET_KEY'],
        rounds=app.config['BCRYPT_ROUNDS'],
        token_ttl=timedelta(hours=app.config['TOKEN_EXPIRES_HOURS']),
    )
    app.extensions['credential_manager'] = credentials

    login_manager = LoginManager()
    # Stateless API: identity comes from the bearer token on every request.
    login_manager.session_protection = None
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_user_from_request(request):
        g.auth_error = None
        token = extract_bearer_token(request.headers.get('Authorization'))
        try:
            user_id = credentials.verify_token(token)
        except AuthError as e:
            g.auth_error = e
            return None

        user = db.session.get(User, user_id)
        if user is None:
            g.auth_error = AuthError(AuthError.INVALID_TOKEN, 'Invalid or expired token.')
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        error = g.get('auth_error') or AuthError(AuthError.MISSING_TOKEN, 'Access denied. No token provided.')
        logger.warning(f"Rejected request: {error.reason}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(NotFound)
    def route_not_found(e):
        return jsonify({'message': 'Route not exists'}), 404

    @app.errorhandler(RequestEntityTooLarge)
    def upload_too_large(e):
        return jsonify({'message': 'File too large. Maximum size is 10MB.'}), 400

    # Import and register blueprints
    from catalog_api.authentication.routes import auth_bp as auth_blueprint
    app.register_blueprint(auth_blueprint, url_prefix='/api/auth')

    from catalog_api.products.routes import products_bp as products_blueprint
    app.register_blueprint(products_blueprint, url_prefix='/api/products')

    with app.app_context():
        try:
            db.create_all()
        except OperationalError as e:
            app.logger.error(f"OperationalError during database initialization: {e}")

    log_routes(app)
    return app


def log_routes(app):
    logger.info("Registered Routes:")
    for rule in app.url_map.iter_rules():
        if rule.endpoint == 'static':
            continue
        for method in sorted(rule.methods - {'HEAD', 'OPTIONS'}):
            logger.info(f"{method} {rule.rule}")
