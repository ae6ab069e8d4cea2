import os
import logging
from datetime import timedelta

from flask import Flask, jsonify
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from pydantic import ValidationError

from hotel_pms.errors import ApiError, validation_error_response
from hotel_pms.models.user import db, User
from hotel_pms.routes.auth import auth_bp
from hotel_pms.routes.user import user_bp
from hotel_pms.routes.branch import branch_bp
from hotel_pms.routes.room_type import room_type_bp
from hotel_pms.routes.room import room_bp
from hotel_pms.routes.guest import guest_bp
from hotel_pms.routes.reservation import reservation_bp
from hotel_pms.routes.payment import payment_bp
from hotel_pms.routes.hotel_settings import hotel_settings_bp
from hotel_pms.routes.dashboard import dashboard_bp
from hotel_pms.routes.analytics import analytics_bp
from hotel_pms.routes.notification import notification_bp

logger = logging.getLogger(__name__)


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _database_uri():
    if os.getenv('DATABASE_URL'):
        return os.getenv('DATABASE_URL')
    return (
        f"postgresql://{os.getenv('DB_USERNAME', 'postgres')}:{os.getenv('DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('DB_HOST', 'localhost')}:{os.getenv('DB_PORT', '5432')}/{os.getenv('DB_NAME', 'hotel_pms')}"
    )


def _error(code, message, status_code):
    return jsonify({
        'success': False,
        'error': {
            'code': code,
            'message': message
        }
    }), status_code


def register_jwt_handlers(jwt):
    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        # Deactivated users lose their session on the next request
        user = db.session.get(User, int(jwt_data['sub']))
        if user is None or not user.is_active:
            return None
        return user

    @jwt.user_lookup_error_loader
    def user_lookup_error(_jwt_header, _jwt_data):
        return _error('USER_NOT_FOUND', 'User no longer exists or is inactive', 401)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _error('UNAUTHORIZED', 'Authentication required', 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _error('UNAUTHORIZED', 'Invalid session', 401)

    @jwt.expired_token_loader
    def expired_token(_jwt_header, _jwt_data):
        return _error('UNAUTHORIZED', 'Session has expired', 401)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def api_error(error):
        return error.to_response()

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return validation_error_response(error)

    @app.errorhandler(404)
    def not_found(error):
        return _error('NOT_FOUND', 'The requested resource was not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return _error('METHOD_NOT_ALLOWED', 'The method is not allowed for the requested URL', 405)

    @app.errorhandler(500)
    def server_error(error):
        original = getattr(error, 'original_exception', None) or error
        logger.error('Unhandled error', exc_info=original)
        db.session.rollback()
        return _error('SERVER_ERROR', 'An internal server error occurred', 500)


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'jwt-secret-string-change-in-production')
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(days=int(os.getenv('SESSION_DAYS', '30')))
    app.config['JWT_TOKEN_LOCATION'] = ['cookies', 'headers']
    app.config['JWT_COOKIE_SECURE'] = _env_flag('JWT_COOKIE_SECURE', False)
    app.config['JWT_COOKIE_CSRF_PROTECT'] = _env_flag('JWT_COOKIE_CSRF_PROTECT', True)
    app.config['JWT_COOKIE_SAMESITE'] = 'Lax'
    app.config['JWT_SESSION_COOKIE'] = False

    app.config['VAPID_PUBLIC_KEY'] = os.getenv('VAPID_PUBLIC_KEY', '')
    app.config['VAPID_PRIVATE_KEY'] = os.getenv('VAPID_PRIVATE_KEY', '')
    app.config['VAPID_SUBJECT'] = os.getenv('VAPID_SUBJECT', 'mailto:admin@hotel.local')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['CORS_ORIGINS'] = os.getenv('CORS_ORIGINS', '*').split(',')
    app.config['INVOICE_FALLBACK_FONTS'] = [path for path in os.getenv('INVOICE_FALLBACK_FONTS', '').split(',') if path]

    # Database configuration - PostgreSQL unless DATABASE_URL says otherwise
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    CORS(app, origins=app.config['CORS_ORIGINS'], supports_credentials=True)

    # Initialize extensions
    db.init_app(app)
    jwt = JWTManager(app)
    register_jwt_handlers(jwt)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    for blueprint in (user_bp, branch_bp, room_type_bp, room_bp, guest_bp, reservation_bp,
                      payment_bp, hotel_settings_bp, dashboard_bp, analytics_bp, notification_bp):
        app.register_blueprint(blueprint, url_prefix='/api')

    register_error_handlers(app)

    # Create database tables
    with app.app_context():
        db.create_all()

    return app


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.getenv('PORT', '5000')), debug=True)
