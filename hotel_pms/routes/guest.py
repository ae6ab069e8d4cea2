from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.models.user import db
from hotel_pms.models.guest import Guest
from hotel_pms.permissions import check_branch_permissions, scoped_branch_id, branch_forbidden
from hotel_pms.schemas import GuestCreate, GuestUpdate

guest_bp = Blueprint('guest', __name__)

SEARCH_LIMIT = 20


def _guest_not_found():
    return jsonify({
        'success': False,
        'error': {
            'code': 'GUEST_NOT_FOUND',
            'message': 'Guest not found'
        }
    }), 404


def _guests_response(guests, message):
    return jsonify({
        'success': True,
        'data': {
            'guests': [guest.to_dict() for guest in guests]
        },
        'message': message
    }), 200


def _scoped_guests():
    query = Guest.query.filter_by(is_active=True)
    branch_id = scoped_branch_id(current_user, request.args.get('branch_id', type=int))
    if branch_id:
        query = query.filter(Guest.branch_id == branch_id)
    return query


@guest_bp.route('/guests', methods=['GET'])
@jwt_required()
def get_guests():
    query = _scoped_guests()

    phone = request.args.get('phone')
    if phone:
        query = query.filter(Guest.phone == phone)

    guests = query.order_by(Guest.created_at.desc()).all()
    return _guests_response(guests, 'Guests retrieved successfully')


@guest_bp.route('/guests/search', methods=['GET'])
@jwt_required()
def search_guests():
    term = (request.args.get('q') or '').strip()
    if not term:
        return _guests_response([], 'Guests retrieved successfully')

    pattern = f'%{term}%'
    guests = _scoped_guests().filter(
        Guest.first_name.ilike(pattern)
        | Guest.last_name.ilike(pattern)
        | Guest.phone.ilike(pattern)
        | Guest.email.ilike(pattern)
    ).order_by(Guest.last_name, Guest.first_name).limit(SEARCH_LIMIT).all()

    return _guests_response(guests, 'Guests retrieved successfully')


@guest_bp.route('/guests/<int:guest_id>', methods=['GET'])
@jwt_required()
def get_guest(guest_id):
    guest = db.session.get(Guest, guest_id)
    if not guest:
        return _guest_not_found()

    if not check_branch_permissions(current_user.role, current_user.branch_id, guest.branch_id):
        return branch_forbidden()

    return jsonify({
        'success': True,
        'data': {
            'guest': guest.to_dict()
        },
        'message': 'Guest retrieved successfully'
    }), 200


@guest_bp.route('/guests', methods=['POST'])
@jwt_required()
def create_guest():
    data = GuestCreate.model_validate(request.get_json(silent=True) or {}).model_dump()

    # Staff always register guests in their own branch
    if not current_user.is_superadmin or not data.get('branch_id'):
        data['branch_id'] = current_user.branch_id

    if not data['branch_id']:
        return jsonify({
            'success': False,
            'error': {
                'code': 'VALIDATION_ERROR',
                'message': 'branch_id is required'
            }
        }), 400

    new_guest = Guest(**data)
    db.session.add(new_guest)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'guest': new_guest.to_dict()
        },
        'message': 'Guest created successfully'
    }), 201


@guest_bp.route('/guests/<int:guest_id>', methods=['PUT'])
@jwt_required()
def update_guest(guest_id):
    guest = db.session.get(Guest, guest_id)
    if not guest:
        return _guest_not_found()

    if not check_branch_permissions(current_user.role, current_user.branch_id, guest.branch_id):
        return branch_forbidden()

    data = GuestUpdate.model_validate(request.get_json(silent=True) or {})
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(guest, field, value)

    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'guest': guest.to_dict()
        },
        'message': 'Guest updated successfully'
    }), 200


@guest_bp.route('/guests/<int:guest_id>', methods=['DELETE'])
@jwt_required()
def delete_guest(guest_id):
    guest = db.session.get(Guest, guest_id)
    if not guest:
        return _guest_not_found()

    if not check_branch_permissions(current_user.role, current_user.branch_id, guest.branch_id):
        return branch_forbidden()

    guest.is_active = False
    db.session.commit()

    return '', 204
