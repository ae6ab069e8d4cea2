from flask import jsonify


def check_branch_permissions(user_role, user_branch_id, target_branch_id=None):
    if user_role == 'superadmin':
        return True

    # Operations that do not name a branch
    if not target_branch_id:
        return True

    if user_role in ('branch-admin', 'front-desk'):
        return user_branch_id == target_branch_id

    return False


def scoped_branch_id(user, requested_branch_id=None):
    """Branch a listing is restricted to; None means every branch."""
    if user.role == 'superadmin':
        return requested_branch_id
    return user.branch_id


def forbidden(message='Insufficient permissions'):
    return jsonify({
        'success': False,
        'error': {
            'code': 'FORBIDDEN',
            'message': message
        }
    }), 403


def branch_forbidden(message='Insufficient permissions for this branch'):
    return jsonify({
        'success': False,
        'error': {
            'code': 'BRANCH_FORBIDDEN',
            'message': message
        }
    }), 403
