import io
from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, request, jsonify, send_file
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.errors import ApiError
from hotel_pms.models.user import db
from hotel_pms.models.branch import Branch
from hotel_pms.models.reservation import Reservation
from hotel_pms.permissions import check_branch_permissions, scoped_branch_id, branch_forbidden
from hotel_pms.schemas import ReservationCreate, ReservationUpdate
from hotel_pms.services import reservations as reservation_service
from hotel_pms.services.billing import build_invoice, render_invoice_pdf

reservation_bp = Blueprint('reservation', __name__)


def get_reservation_or_error(reservation_id):
    """Load a reservation the current user may see, or raise the matching ApiError."""
    reservation = db.session.get(Reservation, reservation_id)
    if not reservation:
        raise ApiError('RESERVATION_NOT_FOUND', 'Reservation not found', 404)

    if not check_branch_permissions(current_user.role, current_user.branch_id, reservation.branch_id):
        raise ApiError('BRANCH_FORBIDDEN', 'Insufficient permissions for this branch', 403)
    return reservation


def _amount_arg(name):
    value = request.args.get(name)
    if value in (None, ''):
        return Decimal('0')
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise ApiError('INVALID_AMOUNT', f'{name} must be a number', 400)
    if not amount.is_finite() or amount < 0:
        raise ApiError('INVALID_AMOUNT', f'{name} must be zero or positive', 400)
    return amount


@reservation_bp.route('/reservations', methods=['GET'])
@jwt_required()
def get_reservations():
    query = Reservation.query

    branch_id = scoped_branch_id(current_user, request.args.get('branch_id', type=int))
    if branch_id:
        query = query.filter(Reservation.branch_id == branch_id)

    status = request.args.get('status')
    if status:
        query = query.filter(Reservation.status == status)

    reservations = query.order_by(Reservation.created_at.desc()).all()

    return jsonify({
        'success': True,
        'data': {
            'reservations': [reservation.to_dict() for reservation in reservations]
        },
        'message': 'Reservations retrieved successfully'
    }), 200


@reservation_bp.route('/reservations/<reservation_id>', methods=['GET'])
@jwt_required()
def get_reservation(reservation_id):
    reservation = get_reservation_or_error(reservation_id)

    return jsonify({
        'success': True,
        'data': {
            'reservation': reservation.to_dict()
        },
        'message': 'Reservation retrieved successfully'
    }), 200


@reservation_bp.route('/reservations', methods=['POST'])
@jwt_required()
def create_reservation():
    payload = ReservationCreate.model_validate(request.get_json(silent=True) or {})
    branch_id = payload.reservation.branch_id

    if not check_branch_permissions(current_user.role, current_user.branch_id, branch_id):
        return branch_forbidden('You can only create reservations for your own branch')

    if not db.session.get(Branch, branch_id):
        return jsonify({
            'success': False,
            'error': {
                'code': 'BRANCH_NOT_FOUND',
                'message': 'Branch not found'
            }
        }), 404

    reservation = reservation_service.create_reservation(
        current_user,
        payload.guest.model_dump(exclude={'branch_id'}),
        payload.reservation.model_dump(),
        [line.model_dump() for line in payload.rooms]
    )

    return jsonify({
        'success': True,
        'data': {
            'reservation': reservation.to_dict()
        },
        'message': 'Reservation created successfully'
    }), 201


@reservation_bp.route('/reservations/<reservation_id>', methods=['PATCH'])
@jwt_required()
def update_reservation(reservation_id):
    reservation = get_reservation_or_error(reservation_id)
    data = ReservationUpdate.model_validate(request.get_json(silent=True) or {}).model_dump(exclude_unset=True)

    reservation_service.update_reservation(reservation, data)

    return jsonify({
        'success': True,
        'data': {
            'reservation': reservation.to_dict()
        },
        'message': 'Reservation updated successfully'
    }), 200


@reservation_bp.route('/reservations/<reservation_id>', methods=['DELETE'])
@jwt_required()
def cancel_reservation(reservation_id):
    reservation = get_reservation_or_error(reservation_id)
    reservation_service.cancel_reservation(reservation)
    return '', 204


@reservation_bp.route('/reservations/<reservation_id>/invoice', methods=['GET'])
@jwt_required()
def get_invoice(reservation_id):
    reservation = get_reservation_or_error(reservation_id)

    invoice = build_invoice(
        reservation,
        additional_charges=_amount_arg('additional_charges'),
        discount=_amount_arg('discount'),
        tax=_amount_arg('tax')
    )

    if request.args.get('format', 'json') == 'pdf':
        return send_file(
            io.BytesIO(render_invoice_pdf(invoice, current_app.config.get('INVOICE_FALLBACK_FONTS', []))),
            mimetype='application/pdf',
            as_attachment=True,
            download_name=f'{invoice["invoice_number"]}.pdf'
        )

    return jsonify({
        'success': True,
        'data': {
            'invoice': invoice
        },
        'message': 'Invoice generated successfully'
    }), 200
