from datetime import datetime

from hotel_pms.models.user import db


class HotelSettings(db.Model):
    __tablename__ = 'hotel_settings'

    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branches.id'), nullable=True)  # null for global settings
    hotel_name = db.Column(db.String(255), nullable=True)
    hotel_chain = db.Column(db.String(255), nullable=True)
    logo = db.Column(db.Text, nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    country = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    website = db.Column(db.String(255), nullable=True)
    tax_number = db.Column(db.String(100), nullable=True)
    registration_number = db.Column(db.String(100), nullable=True)
    check_in_time = db.Column(db.String(10), nullable=False, default='15:00')
    check_out_time = db.Column(db.String(10), nullable=False, default='11:00')
    currency = db.Column(db.String(10), nullable=False, default='NPR')
    time_zone = db.Column(db.String(50), nullable=False, default='Asia/Kathmandu')
    billing_footer = db.Column(db.Text, nullable=True)
    terms_and_conditions = db.Column(db.Text, nullable=True)
    cancellation_policy = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @classmethod
    def for_branch(cls, branch_id=None):
        """Branch settings when they exist, otherwise the global row."""
        settings = None
        if branch_id:
            settings = cls.query.filter_by(branch_id=branch_id, is_active=True).first()
        if not settings:
            settings = cls.query.filter(cls.branch_id.is_(None), cls.is_active.is_(True)).first()
        return settings

    def to_dict(self):
        return {
            'id': self.id,
            'branch_id': self.branch_id,
            'hotel_name': self.hotel_name,
            'hotel_chain': self.hotel_chain,
            'logo': self.logo,
            'address': self.address,
            'city': self.city,
            'state': self.state,
            'country': self.country,
            'postal_code': self.postal_code,
            'phone': self.phone,
            'email': self.email,
            'website': self.website,
            'tax_number': self.tax_number,
            'registration_number': self.registration_number,
            'check_in_time': self.check_in_time,
            'check_out_time': self.check_out_time,
            'currency': self.currency,
            'time_zone': self.time_zone,
            'billing_footer': self.billing_footer,
            'terms_and_conditions': self.terms_and_conditions,
            'cancellation_policy': self.cancellation_policy,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }
