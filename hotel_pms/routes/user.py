from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.models.user import db, User
from hotel_pms.models.branch import Branch
from hotel_pms.permissions import forbidden
from hotel_pms.schemas import UserCreate, UserUpdate, ProfileUpdate

user_bp = Blueprint('user', __name__)


def _email_taken(email, user_id=None):
    existing_user = User.query.filter_by(email=email).first()
    return existing_user is not None and existing_user.id != user_id


def _email_exists_response():
    return jsonify({
        'success': False,
        'error': {
            'code': 'EMAIL_EXISTS',
            'message': 'Email already exists'
        }
    }), 409


def _branch_missing_response():
    return jsonify({
        'success': False,
        'error': {
            'code': 'BRANCH_NOT_FOUND',
            'message': 'Branch not found'
        }
    }), 404


@user_bp.route('/users', methods=['GET'])
@jwt_required()
def get_users():
    # Only superadmins can view all users
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can view users')

    users = User.query.order_by(User.id).all()

    return jsonify({
        'success': True,
        'data': {
            'users': [user.to_dict() for user in users]
        },
        'message': 'Users retrieved successfully'
    }), 200


@user_bp.route('/users', methods=['POST'])
@jwt_required()
def create_user():
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can create users')

    data = UserCreate.model_validate(request.get_json(silent=True) or {})

    if _email_taken(data.email):
        return _email_exists_response()

    if data.branch_id is not None and not db.session.get(Branch, data.branch_id):
        return _branch_missing_response()

    new_user = User(
        email=data.email,
        first_name=data.first_name,
        last_name=data.last_name,
        role=data.role,
        branch_id=data.branch_id,
        is_active=data.is_active,
        permissions=data.permissions
    )
    new_user.set_password(data.password)

    db.session.add(new_user)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'user': new_user.to_dict()
        },
        'message': 'User created successfully'
    }), 201


@user_bp.route('/users/<int:user_id>', methods=['PUT'])
@jwt_required()
def update_user(user_id):
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can update users')

    user = db.session.get(User, user_id)
    if not user:
        return jsonify({
            'success': False,
            'error': {
                'code': 'USER_NOT_FOUND',
                'message': 'User not found'
            }
        }), 404

    data = UserUpdate.model_validate(request.get_json(silent=True) or {}).model_dump(exclude_unset=True)

    if data.get('email') and _email_taken(data['email'], user.id):
        return _email_exists_response()

    if data.get('branch_id') is not None and not db.session.get(Branch, data['branch_id']):
        return _branch_missing_response()

    password = data.pop('password', None)
    if password:
        user.set_password(password)

    for field, value in data.items():
        setattr(user, field, value)

    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'user': user.to_dict()
        },
        'message': 'User updated successfully'
    }), 200


@user_bp.route('/users/<int:user_id>', methods=['DELETE'])
@jwt_required()
def delete_user(user_id):
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can delete users')

    # Prevent deactivating yourself
    if current_user.id == user_id:
        return jsonify({
            'success': False,
            'error': {
                'code': 'INVALID_OPERATION',
                'message': 'You cannot delete your own account'
            }
        }), 400

    user = db.session.get(User, user_id)
    if not user:
        return jsonify({
            'success': False,
            'error': {
                'code': 'USER_NOT_FOUND',
                'message': 'User not found'
            }
        }), 404

    user.is_active = False
    db.session.commit()

    return '', 204


@user_bp.route('/profile', methods=['GET'])
@jwt_required()
def get_profile():
    return jsonify({
        'success': True,
        'data': {
            'user': current_user.to_dict()
        },
        'message': 'Profile retrieved successfully'
    }), 200


@user_bp.route('/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    data = ProfileUpdate.model_validate(request.get_json(silent=True) or {})
    user = current_user

    if data.email and _email_taken(data.email, user.id):
        return _email_exists_response()

    if data.new_password:
        if not data.current_password or not user.check_password(data.current_password):
            return jsonify({
                'success': False,
                'error': {
                    'code': 'INVALID_PASSWORD',
                    'message': 'Current password is incorrect'
                }
            }), 401
        user.set_password(data.new_password)

    if data.email:
        user.email = data.email
    if data.first_name is not None:
        user.first_name = data.first_name
    if data.last_name is not None:
        user.last_name = data.last_name
    if data.profile_image_url is not None:
        user.profile_image_url = data.profile_image_url

    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'user': user.to_dict()
        },
        'message': 'Profile updated successfully'
    }), 200
