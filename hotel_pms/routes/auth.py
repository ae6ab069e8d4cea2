import logging
from datetime import datetime

from flask import Blueprint, request, jsonify
from flask_jwt_extended import (
    create_access_token, jwt_required, current_user, set_access_cookies, unset_jwt_cookies
)

from hotel_pms.models.user import db, User
from hotel_pms.schemas import LoginRequest, SetupRequest

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


def _login_response(user, message, status_code=200):
    access_token = create_access_token(
        identity=str(user.id),
        additional_claims={'role': user.role, 'branch_id': user.branch_id}
    )
    response = jsonify({
        'success': True,
        'data': {
            'token': access_token,
            'user': user.to_dict()
        },
        'message': message
    })
    set_access_cookies(response, access_token)
    return response, status_code


@auth_bp.route('/login', methods=['POST'])
def login():
    data = LoginRequest.model_validate(request.get_json(silent=True) or {})

    user = User.query.filter_by(email=data.email).first()

    if not user or not user.is_active or not user.check_password(data.password):
        logger.info('Failed login attempt for %s', data.email)
        return jsonify({
            'success': False,
            'error': {
                'code': 'INVALID_CREDENTIALS',
                'message': 'Invalid email or password'
            }
        }), 401

    user.last_login = datetime.utcnow()
    db.session.commit()

    return _login_response(user, 'Login successful')


@auth_bp.route('/logout', methods=['POST'])
def logout():
    response = jsonify({
        'success': True,
        'message': 'Logout successful'
    })
    unset_jwt_cookies(response)
    return response, 200


@auth_bp.route('/user', methods=['GET'])
@jwt_required()
def get_current_user():
    return jsonify({
        'success': True,
        'data': {
            'user': current_user.to_dict()
        },
        'message': 'User retrieved successfully'
    }), 200


# First-time setup endpoint to create the initial superadmin
@auth_bp.route('/setup', methods=['POST'])
def setup():
    if User.query.count() > 0:
        return jsonify({
            'success': False,
            'error': {
                'code': 'ALREADY_SETUP',
                'message': 'Setup has already been completed'
            }
        }), 400

    data = SetupRequest.model_validate(request.get_json(silent=True) or {})

    admin_user = User(
        email=data.email,
        first_name=data.first_name,
        last_name=data.last_name,
        role='superadmin'
    )
    admin_user.set_password(data.password)

    db.session.add(admin_user)
    db.session.commit()
    logger.info('Initial superadmin %s created', admin_user.email)

    return _login_response(admin_user, 'Initial superadmin created successfully', 201)
