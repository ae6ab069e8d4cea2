import logging
from datetime import datetime

from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.errors import ApiError
from hotel_pms.models.user import db
from hotel_pms.models.branch import Branch
from hotel_pms.models.room import Room, RoomType, MAINTENANCE_STATUSES
from hotel_pms.permissions import check_branch_permissions, scoped_branch_id, forbidden, branch_forbidden
from hotel_pms.schemas import RoomCreate, RoomUpdate
from hotel_pms.services import notifications
from hotel_pms.services.reservations import get_available_rooms, to_naive_utc

logger = logging.getLogger(__name__)

room_bp = Blueprint('room', __name__)


def parse_datetime_arg(name):
    value = request.args.get(name)
    if not value:
        raise ApiError('MISSING_FIELDS', 'branch_id, check_in and check_out are required', 400)
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ApiError('INVALID_DATE', f'{name} must be an ISO 8601 date or datetime', 400)
    return to_naive_utc(parsed)


def _room_not_found():
    return jsonify({
        'success': False,
        'error': {
            'code': 'ROOM_NOT_FOUND',
            'message': 'Room not found'
        }
    }), 404


def _room_exists():
    return jsonify({
        'success': False,
        'error': {
            'code': 'ROOM_EXISTS',
            'message': 'Room number already exists in this branch'
        }
    }), 409


def _number_taken(branch_id, number, room_id=None):
    existing_room = Room.query.filter_by(branch_id=branch_id, number=number).first()
    return existing_room is not None and existing_room.id != room_id


def _apply_room_changes(room, changes):
    """Update a room; returns the new status when it entered maintenance."""
    previous_status = room.status
    for field, value in changes.items():
        setattr(room, field, value)
    db.session.commit()

    if room.status != previous_status and room.status in MAINTENANCE_STATUSES:
        logger.info('Room %s marked %s', room.number, room.status)
        return room.status
    return None


def _room_response(room, message):
    return jsonify({
        'success': True,
        'data': {
            'room': room.to_dict()
        },
        'message': message
    }), 200


@room_bp.route('/rooms', methods=['GET'])
@jwt_required()
def get_rooms():
    status = request.args.get('status')
    branch_id = scoped_branch_id(current_user, request.args.get('branch_id', type=int))

    query = Room.query.filter_by(is_active=True)
    if branch_id:
        query = query.filter(Room.branch_id == branch_id)
    if status:
        query = query.filter(Room.status == status)

    rooms = query.order_by(Room.branch_id, Room.number).all()

    return jsonify({
        'success': True,
        'data': {
            'rooms': [room.to_dict() for room in rooms]
        },
        'message': 'Rooms retrieved successfully'
    }), 200


@room_bp.route('/rooms/availability', methods=['GET'])
@jwt_required()
def get_room_availability():
    branch_id = request.args.get('branch_id', type=int)
    if not branch_id:
        raise ApiError('MISSING_FIELDS', 'branch_id, check_in and check_out are required', 400)
    check_in = parse_datetime_arg('check_in')
    check_out = parse_datetime_arg('check_out')

    if check_out <= check_in:
        raise ApiError('INVALID_DATE', 'check_out must be after check_in', 400)

    if not check_branch_permissions(current_user.role, current_user.branch_id, branch_id):
        return branch_forbidden()

    rooms = get_available_rooms(branch_id, check_in, check_out)

    return jsonify({
        'success': True,
        'data': {
            'rooms': [room.to_dict() for room in rooms]
        },
        'message': 'Available rooms retrieved successfully'
    }), 200


@room_bp.route('/rooms/<int:room_id>', methods=['GET'])
@jwt_required()
def get_room(room_id):
    room = db.session.get(Room, room_id)
    if not room:
        return _room_not_found()

    if not check_branch_permissions(current_user.role, current_user.branch_id, room.branch_id):
        return branch_forbidden()

    return _room_response(room, 'Room retrieved successfully')


@room_bp.route('/rooms', methods=['POST'])
@jwt_required()
def create_room():
    if not current_user.is_admin:
        return forbidden('Only admins can create rooms')

    data = RoomCreate.model_validate(request.get_json(silent=True) or {})

    if not check_branch_permissions(current_user.role, current_user.branch_id, data.branch_id):
        return branch_forbidden()

    if not db.session.get(Branch, data.branch_id):
        return jsonify({
            'success': False,
            'error': {
                'code': 'BRANCH_NOT_FOUND',
                'message': 'Branch not found'
            }
        }), 404

    if not db.session.get(RoomType, data.room_type_id):
        return jsonify({
            'success': False,
            'error': {
                'code': 'ROOM_TYPE_NOT_FOUND',
                'message': 'Room type not found'
            }
        }), 404

    if _number_taken(data.branch_id, data.number):
        return _room_exists()

    new_room = Room(**data.model_dump())
    db.session.add(new_room)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'room': new_room.to_dict()
        },
        'message': 'Room created successfully'
    }), 201


@room_bp.route('/rooms/<int:room_id>', methods=['PUT', 'PATCH'])
@jwt_required()
def update_room(room_id):
    room = db.session.get(Room, room_id)
    if not room:
        return _room_not_found()

    if not check_branch_permissions(current_user.role, current_user.branch_id, room.branch_id):
        return branch_forbidden()

    changes = RoomUpdate.model_validate(request.get_json(silent=True) or {}).model_dump(exclude_unset=True)

    # Front desk may only move a room between statuses
    if not current_user.is_admin and (request.method == 'PUT' or set(changes) - {'status'}):
        return forbidden('Only admins can edit room details')

    if changes.get('number') and _number_taken(room.branch_id, changes['number'], room.id):
        return _room_exists()

    if changes.get('room_type_id') and not db.session.get(RoomType, changes['room_type_id']):
        return jsonify({
            'success': False,
            'error': {
                'code': 'ROOM_TYPE_NOT_FOUND',
                'message': 'Room type not found'
            }
        }), 404

    maintenance_status = _apply_room_changes(room, changes)
    if maintenance_status:
        notifications.dispatch_best_effort(
            notifications.send_maintenance_notification, room, room.branch, maintenance_status
        )

    return _room_response(room, 'Room updated successfully')


@room_bp.route('/rooms/<int:room_id>', methods=['DELETE'])
@jwt_required()
def delete_room(room_id):
    if not current_user.is_admin:
        return forbidden('Only admins can delete rooms')

    room = db.session.get(Room, room_id)
    if not room:
        return _room_not_found()

    if not check_branch_permissions(current_user.role, current_user.branch_id, room.branch_id):
        return branch_forbidden()

    room.is_active = False
    db.session.commit()

    return '', 204
