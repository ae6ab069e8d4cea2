import uuid
from datetime import datetime
from decimal import Decimal

from hotel_pms.models.user import db

FINAL_STATUSES = ['checked-out', 'cancelled', 'no-show']
# Reservations in these states hold their rooms for the booked dates
HOLDING_STATUSES = ['pending', 'confirmed', 'checked-in']


def _new_id():
    return str(uuid.uuid4())


class Reservation(db.Model):
    __tablename__ = 'reservations'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    confirmation_number = db.Column(db.String(20), unique=True, nullable=False)
    guest_id = db.Column(db.Integer, db.ForeignKey('guests.id'), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    paid_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    reservation_rooms = db.relationship('ReservationRoom', backref='reservation', lazy=True,
                                        cascade='all, delete-orphan', order_by='ReservationRoom.id')
    payments = db.relationship('Payment', backref='reservation', lazy=True,
                               cascade='all, delete-orphan', order_by='Payment.id')
    created_by = db.relationship('User', foreign_keys=[created_by_id])

    @property
    def balance_due(self):
        balance = Decimal(self.total_amount or 0) - Decimal(self.paid_amount or 0)
        return max(Decimal('0'), balance)

    @property
    def payment_status(self):
        paid = Decimal(self.paid_amount or 0)
        if paid == 0:
            return 'unpaid'
        if Decimal(self.total_amount or 0) - paid > Decimal('0.01'):
            return 'partial'
        return 'paid'

    def to_dict(self, include_payments=False):
        data = {
            'id': self.id,
            'confirmation_number': self.confirmation_number,
            'guest_id': self.guest_id,
            'branch_id': self.branch_id,
            'status': self.status,
            'total_amount': float(self.total_amount),
            'paid_amount': float(self.paid_amount or 0),
            'balance_due': float(self.balance_due),
            'payment_status': self.payment_status,
            'notes': self.notes,
            'created_by_id': self.created_by_id,
            'guest': self.guest.to_dict() if self.guest else None,
            'reservation_rooms': [room.to_dict() for room in self.reservation_rooms],
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }
        if include_payments:
            data['payments'] = [payment.to_dict() for payment in self.payments]
        return data


class ReservationRoom(db.Model):
    __tablename__ = 'reservation_rooms'

    id = db.Column(db.Integer, primary_key=True)
    reservation_id = db.Column(db.String(36), db.ForeignKey('reservations.id'), nullable=False)
    room_id = db.Column(db.Integer, db.ForeignKey('rooms.id'), nullable=False)
    check_in_date = db.Column(db.DateTime, nullable=False)
    check_out_date = db.Column(db.DateTime, nullable=False)
    adults = db.Column(db.Integer, nullable=False, default=1)
    children = db.Column(db.Integer, nullable=False, default=0)
    rate_per_night = db.Column(db.Numeric(10, 2), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    special_requests = db.Column(db.Text, nullable=True)
    actual_check_in = db.Column(db.DateTime, nullable=True)
    actual_check_out = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'reservation_id': self.reservation_id,
            'room_id': self.room_id,
            'room': self.room.to_dict() if self.room else None,
            'check_in_date': self.check_in_date.isoformat(),
            'check_out_date': self.check_out_date.isoformat(),
            'adults': self.adults,
            'children': self.children,
            'rate_per_night': float(self.rate_per_night),
            'total_amount': float(self.total_amount),
            'special_requests': self.special_requests,
            'actual_check_in': self.actual_check_in.isoformat() if self.actual_check_in else None,
            'actual_check_out': self.actual_check_out.isoformat() if self.actual_check_out else None,
            'created_at': self.created_at.isoformat()
        }
