"""Mission model"""
from app import db
from .base import BaseModel

MISSION_STATUSES = ('pending', 'accepted', 'in-progress', 'completed', 'cancelled')
MISSION_PRIORITIES = ('low', 'normal', 'high', 'urgent')


class Mission(BaseModel):
    """
    Mission model - a scheduled field job performed by a technician
    """
    __tablename__ = 'missions'

    mission_number = db.Column(db.String(40), nullable=False, unique=True)
    service_type_id = db.Column(db.String(36), db.ForeignKey('service_types.id'))
    client_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    technician_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    quote_id = db.Column(db.String(36), db.ForeignKey('quotes.id'), nullable=False)
    invoice_id = db.Column(db.String(36), db.ForeignKey('invoices.id', ondelete='SET NULL'))

    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    priority = db.Column(db.String(20), nullable=False, default='normal')
    scheduled_date = db.Column(db.DateTime, nullable=False)
    address = db.Column(db.String(500), nullable=False)
    details = db.Column(db.Text)
    completed_at = db.Column(db.DateTime)

    client = db.relationship('User', foreign_keys=[client_id])
    technician = db.relationship('User', foreign_keys=[technician_id])
    quote = db.relationship('Quote')
    service_type = db.relationship('ServiceType')

    def __repr__(self):
        return f'<Mission {self.mission_number} ({self.status})>'

    def involves(self, user_id):
        return user_id in (self.client_id, self.technician_id)

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        data['client'] = self.client.to_summary() if self.client else None
        data['technician'] = self.technician.to_summary() if self.technician else None
        data['serviceType'] = self.service_type.to_summary() if self.service_type else None
        data['quote'] = {
            'id': self.quote.id,
            'reference': self.quote.reference,
            'total': self.quote.total,
            'status': self.quote.status,
        } if self.quote else None
        return data
