from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.models.user import db
from hotel_pms.models.branch import Branch
from hotel_pms.permissions import check_branch_permissions, forbidden, branch_forbidden
from hotel_pms.schemas import BranchCreate, BranchUpdate

branch_bp = Blueprint('branch', __name__)


def _branch_not_found():
    return jsonify({
        'success': False,
        'error': {
            'code': 'BRANCH_NOT_FOUND',
            'message': 'Branch not found'
        }
    }), 404


@branch_bp.route('/branches', methods=['GET'])
@jwt_required()
def get_branches():
    query = Branch.query.filter_by(is_active=True)

    # Branch staff only see their own branch
    if not current_user.is_superadmin:
        query = query.filter(Branch.id == current_user.branch_id)

    branches = query.order_by(Branch.name).all()

    return jsonify({
        'success': True,
        'data': {
            'branches': [branch.to_dict() for branch in branches]
        },
        'message': 'Branches retrieved successfully'
    }), 200


@branch_bp.route('/branches/<int:branch_id>', methods=['GET'])
@jwt_required()
def get_branch(branch_id):
    branch = db.session.get(Branch, branch_id)
    if not branch:
        return _branch_not_found()

    if not check_branch_permissions(current_user.role, current_user.branch_id, branch.id):
        return branch_forbidden()

    return jsonify({
        'success': True,
        'data': {
            'branch': branch.to_dict()
        },
        'message': 'Branch retrieved successfully'
    }), 200


@branch_bp.route('/branches', methods=['POST'])
@jwt_required()
def create_branch():
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can create branches')

    data = BranchCreate.model_validate(request.get_json(silent=True) or {})

    new_branch = Branch(**data.model_dump())
    db.session.add(new_branch)
    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'branch': new_branch.to_dict()
        },
        'message': 'Branch created successfully'
    }), 201


@branch_bp.route('/branches/<int:branch_id>', methods=['PUT'])
@jwt_required()
def update_branch(branch_id):
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can update branches')

    branch = db.session.get(Branch, branch_id)
    if not branch:
        return _branch_not_found()

    data = BranchUpdate.model_validate(request.get_json(silent=True) or {})
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(branch, field, value)

    db.session.commit()

    return jsonify({
        'success': True,
        'data': {
            'branch': branch.to_dict()
        },
        'message': 'Branch updated successfully'
    }), 200


@branch_bp.route('/branches/<int:branch_id>', methods=['DELETE'])
@jwt_required()
def delete_branch(branch_id):
    if not current_user.is_superadmin:
        return forbidden('Only superadmins can delete branches')

    branch = db.session.get(Branch, branch_id)
    if not branch:
        return _branch_not_found()

    # Branches keep their history, so they are only deactivated
    branch.is_active = False
    db.session.commit()

    return '', 204
