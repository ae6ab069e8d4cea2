from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.permissions import scoped_branch_id, forbidden
from hotel_pms.services.analytics import get_dashboard_metrics, get_super_admin_metrics

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/dashboard/metrics', methods=['GET'])
@jwt_required()
def get_metrics():
    branch_id = scoped_branch_id(current_user, request.args.get('branch_id', type=int))

    return jsonify({
        'success': True,
        'data': {
            'metrics': get_dashboard_metrics(branch_id)
        },
        'message': 'Dashboard metrics retrieved successfully'
    }), 200


@dashboard_bp.route('/dashboard/super-admin-metrics', methods=['GET'])
@jwt_required()
def get_all_branch_metrics():
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can view metrics across branches')

    return jsonify({
        'success': True,
        'data': get_super_admin_metrics(),
        'message': 'Super admin metrics retrieved successfully'
    }), 200
