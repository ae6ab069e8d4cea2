from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.models.user import db
from hotel_pms.models.room import RoomType
from hotel_pms.permissions import forbidden
from hotel_pms.schemas import RoomTypeCreate, RoomTypeUpdate

room_type_bp = Blueprint('room_type', __name__)


def _room_type_not_found():
    return jsonify({
        'success': False,
        'error': {
            'code': 'ROOM_TYPE_NOT_FOUND',
            'message': 'Room type not found'
        }
    }), 404


@room_type_bp.route('/room-types', methods=['GET'])
@jwt_required()
def get_room_types():
    query = RoomType.query.filter_by(is_active=True)

    # Branch staff see their branch's types plus the shared ones
    if not current_user.is_superadmin:
        query = query.filter(
            (RoomType.branch_id == current_user.branch_id) | (RoomType.branch_id.is_(None))
        )

    room_types = query.order_by(RoomType.name).all()

    return jsonify({
        'success': True,
        'data': {
            'room_types': [room_type.to_dict() for room_type in room_types]
        },
        'message': 'Room types retrieved successfully'
    }), 200


@room_type_bp.route('/room-types', methods=['POST'])
@jwt_required()
def create_room_type():
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can create room types')

    data = RoomTypeCreate.model_validate(request.get_json(silent=True) or {})

    new_room_type = RoomType(**data.model_dump())
    db.session.add(new_room_type)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'room_type': new_room_type.to_dict()
        },
        'message': 'Room type created successfully'
    }), 201


@room_type_bp.route('/room-types/<int:room_type_id>', methods=['PATCH'])
@jwt_required()
def update_room_type(room_type_id):
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can update room types')

    room_type = db.session.get(RoomType, room_type_id)
    if not room_type:
        return _room_type_not_found()

    data = RoomTypeUpdate.model_validate(request.get_json(silent=True) or {})
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(room_type, field, value)

    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'room_type': room_type.to_dict()
        },
        'message': 'Room type updated successfully'
    }), 200


@room_type_bp.route('/room-types/<int:room_type_id>', methods=['DELETE'])
@jwt_required()
def delete_room_type(room_type_id):
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can delete room types')

    room_type = db.session.get(RoomType, room_type_id)
    if not room_type:
        return _room_type_not_found()

    room_type.is_active = False
    db.session.commit()

    return '', 204
