from flask import Blueprint, Response, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.permissions import scoped_branch_id
from hotel_pms.services import analytics

analytics_bp = Blueprint('analytics', __name__)


def _branch_and_period():
    branch_id = scoped_branch_id(current_user, request.args.get('branch_id', type=int))
    period = request.args.get('period', '30d')
    return branch_id, period


def _analytics_response(data, message):
    return jsonify({
        'success': True,
        'data': data,
        'message': message
    }), 200


@analytics_bp.route('/analytics/revenue', methods=['GET'])
@jwt_required()
def get_revenue():
    branch_id, period = _branch_and_period()

    if request.args.get('format') == 'csv':
        return Response(
            analytics.revenue_csv(branch_id, period),
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename=revenue-{period}.csv'}
        )

    return _analytics_response(
        analytics.get_revenue_analytics(branch_id, period),
        'Revenue analytics retrieved successfully'
    )


@analytics_bp.route('/analytics/occupancy', methods=['GET'])
@jwt_required()
def get_occupancy():
    branch_id, period = _branch_and_period()
    return _analytics_response(
        analytics.get_occupancy_analytics(branch_id, period),
        'Occupancy analytics retrieved successfully'
    )


@analytics_bp.route('/analytics/guests', methods=['GET'])
@jwt_required()
def get_guests():
    branch_id, _ = _branch_and_period()
    return _analytics_response(
        analytics.get_guest_analytics(branch_id),
        'Guest analytics retrieved successfully'
    )


@analytics_bp.route('/analytics/rooms', methods=['GET'])
@jwt_required()
def get_rooms():
    branch_id, _ = _branch_and_period()
    return _analytics_response(
        analytics.get_room_performance_analytics(branch_id),
        'Room analytics retrieved successfully'
    )


@analytics_bp.route('/analytics/operations', methods=['GET'])
@jwt_required()
def get_operations():
    branch_id, _ = _branch_and_period()
    return _analytics_response(
        analytics.get_operational_analytics(branch_id),
        'Operational analytics retrieved successfully'
    )
