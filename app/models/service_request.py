"""Service request model"""
from app import db
from .base import BaseModel

REQUEST_PRIORITIES = ('low', 'normal', 'high', 'urgent')
REQUEST_STATUSES = ('pending', 'assigned', 'in-progress', 'completed', 'cancelled', 'quoted')
PREFERRED_TIMES = ('morning', 'afternoon', 'evening')


class ServiceRequest(BaseModel):
    """
    Client-submitted request for an intervention
    """
    __tablename__ = 'requests'

    reference = db.Column(db.String(30), nullable=False, unique=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), nullable=False)  # copied from the service type category
    service_type_id = db.Column(db.String(36), db.ForeignKey('service_types.id'), nullable=False)
    priority = db.Column(db.String(20), nullable=False, default='normal')
    status = db.Column(db.String(20), nullable=False, default='pending', index=True)

    address = db.Column(db.JSON, default=dict)  # {full, street, city, postalCode}
    contact_phone = db.Column(db.String(50), nullable=False)
    preferred_date = db.Column(db.DateTime)
    preferred_time = db.Column(db.String(20))
    equipment = db.Column(db.String(255), default='')
    symptoms = db.Column(db.JSON, default=list)
    access_instructions = db.Column(db.Text, default='')

    scheduled_date = db.Column(db.DateTime)
    assigned_date = db.Column(db.DateTime)
    completed_date = db.Column(db.DateTime)
    estimated_duration = db.Column(db.Float)
    actual_duration = db.Column(db.Float)
    notes = db.Column(db.Text)
    internal_notes = db.Column(db.Text)
    attachments = db.Column(db.JSON, default=list)

    client_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    assigned_technician = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id', ondelete='SET NULL'))

    client = db.relationship('User', foreign_keys=[client_id])
    technician = db.relationship('User', foreign_keys=[assigned_technician])
    service_type = db.relationship('ServiceType')

    def __repr__(self):
        return f'<ServiceRequest {self.reference} ({self.status})>'

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        data['client'] = self.client.to_summary() if self.client else None
        data['technician'] = self.technician.to_summary() if self.technician else None
        data['serviceType'] = self.service_type.to_summary() if self.service_type else None
        return data
