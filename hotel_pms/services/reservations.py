"""Reservation, room-status and payment consistency rules.

Routes validate input and check permissions; everything that has to keep
reservations, their rooms and their payments in step lives here, so every
entry point (create, status change, date edit, cancel, payment) goes through
the same rules.
"""
import logging
import math
import time
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func

from hotel_pms.errors import ApiError
from hotel_pms.models.user import db
from hotel_pms.models.guest import Guest
from hotel_pms.models.room import Room, MAINTENANCE_STATUSES
from hotel_pms.models.reservation import Reservation, ReservationRoom, FINAL_STATUSES, HOLDING_STATUSES
from hotel_pms.models.payment import Payment
from hotel_pms.services import notifications

logger = logging.getLogger(__name__)

SECONDS_PER_NIGHT = 24 * 60 * 60

ALLOWED_TRANSITIONS = {
    'pending': {'confirmed', 'checked-in', 'cancelled', 'no-show'},
    'confirmed': {'pending', 'checked-in', 'cancelled', 'no-show'},
    'checked-in': {'checked-out'},
    'checked-out': set(),
    'cancelled': set(),
    'no-show': set(),
}

ROOM_STATUS_FOR_RESERVATION = {
    'pending': 'reserved',
    'confirmed': 'reserved',
    'checked-in': 'occupied',
    'checked-out': 'available',
    'cancelled': 'available',
    'no-show': 'available',
}

PAYMENT_TRANSITIONS = {
    'pending': {'completed', 'failed'},
    'completed': {'refunded'},
    'failed': set(),
    'refunded': set(),
}


def to_naive_utc(value):
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def calculate_nights(check_in, check_out):
    seconds = abs((to_naive_utc(check_out) - to_naive_utc(check_in)).total_seconds())
    return math.ceil(seconds / SECONDS_PER_NIGHT)


def calculate_room_total(rate_per_night, check_in, check_out):
    nights = calculate_nights(check_in, check_out)
    return (Decimal(nights) * Decimal(rate_per_night)).quantize(Decimal('0.01'))


def generate_confirmation_number():
    stamp = int(time.time() * 1000)
    while True:
        candidate = f'RES{str(stamp)[-8:]}'
        if not Reservation.query.filter_by(confirmation_number=candidate).first():
            return candidate
        stamp += 1


def is_room_available(room_id, check_in, check_out, exclude_reservation_id=None):
    query = ReservationRoom.query.join(Reservation).filter(
        ReservationRoom.room_id == room_id,
        Reservation.status.in_(HOLDING_STATUSES),
        ReservationRoom.check_in_date < check_out,
        ReservationRoom.check_out_date > check_in
    )
    if exclude_reservation_id:
        query = query.filter(Reservation.id != exclude_reservation_id)
    return query.first() is None


def get_available_rooms(branch_id, check_in, check_out):
    check_in = to_naive_utc(check_in)
    check_out = to_naive_utc(check_out)

    busy_room_ids = db.select(ReservationRoom.room_id).join(Reservation).where(
        Reservation.branch_id == branch_id,
        Reservation.status.in_(HOLDING_STATUSES),
        ReservationRoom.check_in_date < check_out,
        ReservationRoom.check_out_date > check_in
    )

    return Room.query.filter(
        Room.branch_id == branch_id,
        Room.is_active.is_(True),
        Room.status.notin_(MAINTENANCE_STATUSES),
        Room.id.notin_(busy_room_ids)
    ).order_by(Room.number).all()


def find_or_create_guest(guest_data, branch_id):
    """Reuse a branch guest with the same phone number, otherwise create one."""
    phone = guest_data.get('phone')
    if phone:
        guest = Guest.query.filter_by(phone=phone, branch_id=branch_id, is_active=True).first()
        if guest:
            return guest

    guest_data = dict(guest_data, branch_id=branch_id)
    guest = Guest(**guest_data)
    db.session.add(guest)
    return guest


def create_reservation(user, guest_data, reservation_data, rooms_data):
    branch_id = reservation_data['branch_id']

    reservation_rooms = []
    for line in rooms_data:
        check_in = to_naive_utc(line['check_in_date'])
        check_out = to_naive_utc(line['check_out_date'])

        room = db.session.get(Room, line['room_id'])
        if not room or not room.is_active:
            raise ApiError('ROOM_NOT_FOUND', f'Room {line["room_id"]} not found', 404)
        if room.branch_id != branch_id:
            raise ApiError('ROOM_BRANCH_MISMATCH', f'Room {room.number} does not belong to this branch', 400)
        if room.status in MAINTENANCE_STATUSES:
            raise ApiError('ROOM_UNAVAILABLE', f'Room {room.number} is under {room.status}', 409)
        if not is_room_available(room.id, check_in, check_out):
            raise ApiError('ROOM_UNAVAILABLE', f'Room {room.number} is already booked for these dates', 409)

        reservation_rooms.append(ReservationRoom(
            room_id=room.id,
            check_in_date=check_in,
            check_out_date=check_out,
            adults=line.get('adults', 1),
            children=line.get('children', 0),
            rate_per_night=line['rate_per_night'],
            total_amount=calculate_room_total(line['rate_per_night'], check_in, check_out),
            special_requests=line.get('special_requests')
        ))

    guest = find_or_create_guest(guest_data, branch_id)
    guest.reservation_count = (guest.reservation_count or 0) + 1

    reservation = Reservation(
        confirmation_number=generate_confirmation_number(),
        guest=guest,
        branch_id=branch_id,
        status=reservation_data.get('status', 'pending'),
        total_amount=sum((line.total_amount for line in reservation_rooms), Decimal('0')),
        paid_amount=Decimal('0'),
        notes=reservation_data.get('notes'),
        created_by_id=user.id,
        reservation_rooms=reservation_rooms
    )
    db.session.add(reservation)
    db.session.flush()

    for line in reservation_rooms:
        line.room.status = 'reserved'

    db.session.commit()
    logger.info('Reservation %s created for guest %s', reservation.confirmation_number, guest.id)

    first_line = reservation_rooms[0]
    notifications.dispatch_best_effort(
        notifications.send_new_reservation_notification,
        guest, first_line.room, reservation.branch, reservation,
        first_line.check_in_date, first_line.check_out_date
    )
    return reservation


def apply_status(reservation, new_status):
    """Move a reservation to ``new_status`` and bring its rooms along.

    Does not commit; the caller commits and then calls ``notify_status_change``.
    Returns True when the status actually changed.
    """
    current = reservation.status
    if new_status == current:
        return False
    if new_status not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ApiError(
            'INVALID_STATUS_TRANSITION',
            f'Cannot change reservation status from {current} to {new_status}',
            409
        )

    now = datetime.utcnow()
    room_status = ROOM_STATUS_FOR_RESERVATION[new_status]
    for line in reservation.reservation_rooms:
        line.room.status = room_status
        if new_status == 'checked-in':
            line.actual_check_in = now
        elif new_status == 'checked-out':
            line.actual_check_out = now

    reservation.status = new_status
    logger.info('Reservation %s status %s -> %s', reservation.confirmation_number, current, new_status)
    return True


def notify_status_change(reservation):
    if not reservation.reservation_rooms:
        logger.warning('Reservation %s has no rooms, skipping status notification', reservation.id)
        return None

    first_room = reservation.reservation_rooms[0].room
    if reservation.status == 'checked-in':
        send = notifications.send_check_in_notification
    elif reservation.status == 'checked-out':
        send = notifications.send_check_out_notification
    else:
        return None
    return notifications.dispatch_best_effort(
        send, reservation.guest, first_room, reservation.branch, reservation
    )


def reschedule_rooms(reservation, room_dates):
    """Apply edited stay dates and recompute line and reservation totals."""
    if reservation.status in FINAL_STATUSES:
        raise ApiError('RESERVATION_CLOSED', f'Cannot edit dates of a {reservation.status} reservation', 409)

    lines = {line.id: line for line in reservation.reservation_rooms}
    for change in room_dates:
        line = lines.get(change['id'])
        if not line:
            raise ApiError('RESERVATION_ROOM_NOT_FOUND',
                           f'Room line {change["id"]} is not part of this reservation', 404)

        check_in = to_naive_utc(change['check_in_date'])
        check_out = to_naive_utc(change['check_out_date'])
        if not is_room_available(line.room_id, check_in, check_out, exclude_reservation_id=reservation.id):
            raise ApiError('ROOM_UNAVAILABLE', f'Room {line.room.number} is already booked for these dates', 409)

        line.check_in_date = check_in
        line.check_out_date = check_out
        line.total_amount = calculate_room_total(line.rate_per_night, check_in, check_out)

    new_total = sum((Decimal(line.total_amount) for line in reservation.reservation_rooms), Decimal('0'))
    if new_total < Decimal(reservation.paid_amount or 0):
        raise ApiError('TOTAL_BELOW_PAID',
                       f'New total {new_total} is below the amount already paid ({reservation.paid_amount})', 400)
    reservation.total_amount = new_total


def update_reservation(reservation, data):
    if 'notes' in data:
        reservation.notes = data['notes']

    if data.get('rooms'):
        reschedule_rooms(reservation, data['rooms'])

    status_changed = False
    if data.get('status'):
        status_changed = apply_status(reservation, data['status'])

    db.session.commit()

    if status_changed:
        notify_status_change(reservation)
    return reservation


def cancel_reservation(reservation):
    if reservation.status in FINAL_STATUSES:
        raise ApiError('RESERVATION_CLOSED', f'Reservation is already {reservation.status}', 409)
    apply_status(reservation, 'cancelled')
    db.session.commit()
    return reservation


def completed_payments_total(reservation_id):
    total = db.session.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.reservation_id == reservation_id,
        Payment.status == 'completed'
    ).scalar()
    return Decimal(total or 0).quantize(Decimal('0.01'))


def sync_paid_amount(reservation):
    db.session.flush()
    reservation.paid_amount = completed_payments_total(reservation.id)
    return reservation.paid_amount


def record_payment(reservation, user, data):
    if reservation.status in ('cancelled', 'no-show'):
        raise ApiError('RESERVATION_CLOSED', f'Cannot record a payment for a {reservation.status} reservation', 409)

    amount = Decimal(data['amount'])
    remaining = reservation.balance_due
    if amount > remaining:
        raise ApiError('AMOUNT_EXCEEDS_BALANCE',
                       f'Amount cannot exceed remaining balance of {remaining:.2f}', 400)

    status = data.get('status') or ('pending' if data['payment_type'] == 'credit' else 'completed')
    due_date = data.get('due_date')

    payment = Payment(
        reservation_id=reservation.id,
        payment_type=data['payment_type'],
        payment_method=data['payment_method'],
        amount=amount,
        transaction_reference=data.get('transaction_reference'),
        notes=data.get('notes'),
        processed_by_id=user.id,
        status=status,
        due_date=to_naive_utc(due_date) if due_date else None
    )
    db.session.add(payment)
    sync_paid_amount(reservation)
    db.session.commit()

    logger.info('Payment %s of %s recorded for reservation %s (%s)',
                payment.id, amount, reservation.confirmation_number, status)
    return payment


def update_payment_status(payment, new_status):
    current = payment.status
    if new_status == current:
        return payment
    if new_status not in PAYMENT_TRANSITIONS.get(current, set()):
        raise ApiError('INVALID_STATUS_TRANSITION',
                       f'Cannot change payment status from {current} to {new_status}', 409)

    reservation = payment.reservation
    if new_status == 'completed' and Decimal(payment.amount) > reservation.balance_due:
        raise ApiError('AMOUNT_EXCEEDS_BALANCE',
                       f'Amount cannot exceed remaining balance of {reservation.balance_due:.2f}', 400)

    payment.status = new_status
    sync_paid_amount(reservation)
    db.session.commit()
    return payment
