from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user

from hotel_pms.models.user import db
from hotel_pms.models.payment import Payment
from hotel_pms.permissions import check_branch_permissions, branch_forbidden
from hotel_pms.routes.reservation import get_reservation_or_error
from hotel_pms.schemas import PaymentCreate, PaymentStatusUpdate
from hotel_pms.services import reservations as reservation_service

payment_bp = Blueprint('payment', __name__)


@payment_bp.route('/reservations/<reservation_id>/payments', methods=['GET'])
@jwt_required()
def get_payments(reservation_id):
    reservation = get_reservation_or_error(reservation_id)

    payments = Payment.query.filter_by(reservation_id=reservation.id) \
        .order_by(Payment.payment_date.desc(), Payment.id.desc()).all()

    return jsonify({
        'success': True,
        'data': {
            'payments': [payment.to_dict() for payment in payments]
        },
        'message': 'Payments retrieved successfully'
    }), 200


@payment_bp.route('/reservations/<reservation_id>/payments', methods=['POST'])
@jwt_required()
def create_payment(reservation_id):
    reservation = get_reservation_or_error(reservation_id)
    data = PaymentCreate.model_validate(request.get_json(silent=True) or {})

    payment = reservation_service.record_payment(reservation, current_user, data.model_dump())

    return jsonify({
        'success': True,
        'data': {
            'payment': payment.to_dict(),
            'reservation': reservation.to_dict()
        },
        'message': 'Payment recorded successfully'
    }), 201


@payment_bp.route('/reservations/<reservation_id>/with-payments', methods=['GET'])
@jwt_required()
def get_reservation_with_payments(reservation_id):
    reservation = get_reservation_or_error(reservation_id)

    return jsonify({
        'success': True,
        'data': {
            'reservation': reservation.to_dict(include_payments=True)
        },
        'message': 'Reservation retrieved successfully'
    }), 200


@payment_bp.route('/payments/<int:payment_id>/status', methods=['PATCH'])
@jwt_required()
def update_payment_status(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        return jsonify({
            'success': False,
            'error': {
                'code': 'PAYMENT_NOT_FOUND',
                'message': 'Payment not found'
            }
        }), 404

    if not check_branch_permissions(current_user.role, current_user.branch_id, payment.reservation.branch_id):
        return branch_forbidden()

    data = PaymentStatusUpdate.model_validate(request.get_json(silent=True) or {})
    reservation_service.update_payment_status(payment, data.status)

    return jsonify({
        'success': True,
        'data': {
            'payment': payment.to_dict(),
            'reservation': payment.reservation.to_dict()
        },
        'message': 'Payment status updated successfully'
    }), 200
