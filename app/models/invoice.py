"""Invoice model"""
from app import db
from .base import BaseModel

INVOICE_STATUSES = ('pending', 'paid', 'cancelled', 'overdue')
PAYMENT_STATUSES = ('unpaid', 'partially_paid', 'paid')


class Invoice(BaseModel):
    """
    Invoice model - bills derived from completed missions and their quotes
    """
    __tablename__ = 'invoices'

    invoice_number = db.Column(db.String(30), nullable=False, unique=True)
    client_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False, index=True)
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id', ondelete='SET NULL'))

    issue_date = db.Column(db.DateTime, nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)
    items = db.Column(db.JSON, nullable=False, default=list)  # [{description, quantity, unitPrice, total}]
    total_amount = db.Column(db.Float, nullable=False, default=0.0)

    status = db.Column(db.String(20), nullable=False, default='pending', index=True)
    payment_status = db.Column(db.String(20), nullable=False, default='unpaid')
    related_quotes = db.Column(db.JSON, default=list)
    related_missions = db.Column(db.JSON, default=list)
    payment_details = db.Column(db.JSON, default=dict)
    notes = db.Column(db.Text)

    client = db.relationship('User')
    company = db.relationship('Company')

    def __repr__(self):
        return f'<Invoice {self.invoice_number} - {self.total_amount}>'

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        data['client'] = self.client.to_summary() if self.client else None
        data['company'] = {'id': self.company.id, 'name': self.company.name} if self.company else None
        return data
