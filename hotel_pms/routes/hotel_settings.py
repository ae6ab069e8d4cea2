from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.models.user import db
from hotel_pms.models.branch import Branch
from hotel_pms.models.hotel_settings import HotelSettings
from hotel_pms.permissions import scoped_branch_id, forbidden
from hotel_pms.schemas import HotelSettingsPayload

hotel_settings_bp = Blueprint('hotel_settings', __name__)


def _settings_response(settings, message, status_code=200):
    return jsonify({
        'success': True,
        'data': {
            'settings': settings.to_dict() if settings else {}
        },
        'message': message
    }), status_code


@hotel_settings_bp.route('/hotel-settings', methods=['GET'])
@jwt_required()
def get_hotel_settings():
    branch_id = scoped_branch_id(current_user, request.args.get('branch_id', type=int))
    settings = HotelSettings.for_branch(branch_id)
    return _settings_response(settings, 'Hotel settings retrieved successfully')


@hotel_settings_bp.route('/hotel-settings', methods=['POST'])
@jwt_required()
def save_hotel_settings():
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can change hotel settings')

    data = HotelSettingsPayload.model_validate(request.get_json(silent=True) or {}).model_dump(exclude_unset=True)
    branch_id = data.pop('branch_id', None)

    if branch_id is not None and not db.session.get(Branch, branch_id):
        return jsonify({
            'success': False,
            'error': {
                'code': 'BRANCH_NOT_FOUND',
                'message': 'Branch not found'
            }
        }), 404

    # One settings row per branch, plus the global row without a branch
    settings = HotelSettings.query.filter(
        HotelSettings.branch_id == branch_id if branch_id is not None else HotelSettings.branch_id.is_(None)
    ).first()
    created = settings is None
    if created:
        settings = HotelSettings(branch_id=branch_id)
        db.session.add(settings)

    for field, value in data.items():
        if value is not None:
            setattr(settings, field, value)
    settings.is_active = True

    db.session.commit()

    return _settings_response(
        settings,
        'Hotel settings created successfully' if created else 'Hotel settings updated successfully',
        201 if created else 200
    )


@hotel_settings_bp.route('/hotel-settings/<int:settings_id>', methods=['PUT'])
@jwt_required()
def update_hotel_settings(settings_id):
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can change hotel settings')

    settings = db.session.get(HotelSettings, settings_id)
    if not settings:
        return jsonify({
            'success': False,
            'error': {
                'code': 'SETTINGS_NOT_FOUND',
                'message': 'Hotel settings not found'
            }
        }), 404

    data = HotelSettingsPayload.model_validate(request.get_json(silent=True) or {}).model_dump(exclude_unset=True)
    data.pop('branch_id', None)
    for field, value in data.items():
        if value is not None:
            setattr(settings, field, value)

    db.session.commit()

    return _settings_response(settings, 'Hotel settings updated successfully')
