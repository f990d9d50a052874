"""Payment model"""
from app import db
from .base import BaseModel

PAYMENT_STATUSES = ('pending', 'completed', 'failed', 'refunded')


class Payment(BaseModel):
    """
    Payment model - money received against a quote
    """
    __tablename__ = 'payments'

    quote_id = db.Column(db.String(36), db.ForeignKey('quotes.id'), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    payment_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='completed')
    payment_method = db.Column(db.String(50), nullable=False)  # card, transfer, check, cash...
    transaction_id = db.Column(db.String(255), unique=True)
    notes = db.Column(db.Text)
    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))

    quote = db.relationship('Quote')

    def __repr__(self):
        return f'<Payment {self.payment_method} - {self.amount}>'

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        quote = self.quote
        data['quote'] = {
            'id': quote.id,
            'reference': quote.reference,
            'total': quote.total,
            'status': quote.status,
            'clientId': quote.client_id,
        } if quote else None
        return data
