"""Quote model"""
from sqlalchemy import event

from app import db
from .base import BaseModel

QUOTE_STATUSES = ('draft', 'sent', 'accepted', 'rejected', 'expired', 'mission_assigned', 'paid')
ITEM_TYPES = ('service', 'equipment')


class Quote(BaseModel):
    """
    Quote model - priced proposal of service/equipment line items

    subtotal, tax_amount and total are derived from items and tax_rate on
    every insert/update and never taken from client input.
    """
    __tablename__ = 'quotes'

    reference = db.Column(db.String(30), nullable=False, unique=True)
    title = db.Column(db.String(255))
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='draft', index=True)

    # [{description, quantity, unitPrice, itemType, equipmentId?, serviceTypeId?}]
    items = db.Column(db.JSON, nullable=False, default=list)
    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    tax_rate = db.Column(db.Float, nullable=False, default=20.0)
    tax_amount = db.Column(db.Float, nullable=False, default=0.0)
    total = db.Column(db.Float, nullable=False, default=0.0)

    valid_until = db.Column(db.DateTime)
    sent_date = db.Column(db.DateTime)
    responded_date = db.Column(db.DateTime)
    client_response = db.Column(db.JSON)  # {accepted, comments, date}
    notes = db.Column(db.Text)
    terms = db.Column(db.Text)

    client_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    technician_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'), index=True)
    request_id = db.Column(db.String(36), db.ForeignKey('requests.id', ondelete='SET NULL'))
    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))

    client = db.relationship('User', foreign_keys=[client_id])
    technician = db.relationship('User', foreign_keys=[technician_id])

    def __repr__(self):
        return f'<Quote {self.reference} ({self.status}) {self.total}>'

    def recalculate_totals(self):
        """subtotal = sum(qty * unit price), tax = subtotal * rate / 100, total = subtotal + tax"""
        subtotal = 0.0
        for item in self.items or []:
            subtotal += float(item.get('quantity') or 0) * float(item.get('unitPrice') or 0)
        rate = float(self.tax_rate if self.tax_rate is not None else 20.0)

        self.subtotal = round(subtotal, 2)
        self.tax_amount = round(subtotal * rate / 100, 2)
        self.total = round(self.subtotal + self.tax_amount, 2)

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        data['client'] = self.client.to_summary() if self.client else None
        data['technician'] = self.technician.to_summary() if self.technician else None
        return data


@event.listens_for(Quote, 'before_insert')
@event.listens_for(Quote, 'before_update')
def _quote_totals(mapper, connection, target):
    target.recalculate_totals()
