from datetime import datetime

from hotel_pms.models.user import db

ROOM_STATUSES = ['available', 'occupied', 'maintenance', 'housekeeping', 'out-of-order', 'reserved']
MAINTENANCE_STATUSES = ['maintenance', 'out-of-order']


class RoomType(db.Model):
    __tablename__ = 'room_types'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    base_price = db.Column(db.Numeric(10, 2), nullable=False)
    max_occupancy = db.Column(db.Integer, nullable=False)
    amenities = db.Column(db.JSON, nullable=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=True)  # null = shared by every branch
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    rooms = db.relationship('Room', backref='room_type', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'base_price': float(self.base_price),
            'max_occupancy': self.max_occupancy,
            'amenities': self.amenities or [],
            'branch_id': self.branch_id,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }


class Room(db.Model):
    __tablename__ = 'rooms'
    __table_args__ = (
        db.UniqueConstraint('branch_id', 'number', name='uq_room_branch_number'),
    )

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(20), nullable=False)
    floor = db.Column(db.Integer, nullable=True)
    room_type_id = db.Column(db.Integer, db.ForeignKey('room_types.id'), nullable=False)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='available')
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    reservation_rooms = db.relationship('ReservationRoom', backref='room', lazy=True)

    def to_dict(self, include_type=True):
        data = {
            'id': self.id,
            'number': self.number,
            'floor': self.floor,
            'room_type_id': self.room_type_id,
            'branch_id': self.branch_id,
            'status': self.status,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }
        if include_type and self.room_type:
            data['room_type'] = self.room_type.to_dict()
        return data
