from datetime import datetime

from hotel_pms.models.user import db


class Payment(db.Model):
    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    reservation_id = db.Column(db.String(36), db.ForeignKey('reservations.id'), nullable=False)
    payment_type = db.Column(db.String(20), nullable=False)  # advance, partial, full or credit
    payment_method = db.Column(db.String(20), nullable=False)  # cash, card, online or bank-transfer
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    transaction_reference = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    processed_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='completed')
    payment_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    due_date = db.Column(db.DateTime, nullable=True)  # credit payments only
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    processed_by = db.relationship('User', foreign_keys=[processed_by_id])

    def to_dict(self):
        return {
            'id': self.id,
            'reservation_id': self.reservation_id,
            'payment_type': self.payment_type,
            'payment_method': self.payment_method,
            'amount': float(self.amount),
            'transaction_reference': self.transaction_reference,
            'notes': self.notes,
            'processed_by_id': self.processed_by_id,
            'status': self.status,
            'payment_date': self.payment_date.isoformat() if self.payment_date else None,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'created_at': self.created_at.isoformat()
        }
