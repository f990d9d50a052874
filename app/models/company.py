"""Company model"""
from app import db
from .base import BaseModel

COMPANY_TYPES = ('restaurant', 'bakery', 'retail', 'cafe', 'office', 'hotel',
                 'pharmacy', 'supermarket', 'other')


class Company(BaseModel):
    """
    Company model - organisations the clients belong to
    """
    __tablename__ = 'companies'

    name = db.Column(db.String(100), nullable=False, index=True)
    type = db.Column(db.String(50), nullable=False)
    siret = db.Column(db.String(14), unique=True)
    address = db.Column(db.JSON, default=dict)  # {street, city, postalCode, country}
    contact = db.Column(db.JSON, default=dict)  # {firstName, lastName, phone, email, position}
    website = db.Column(db.String(255))
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Denormalised statistics, refreshed by PATCH /companies/:id/update-stats
    clients_count = db.Column(db.Integer, default=0)
    installations_count = db.Column(db.Integer, default=0)
    total_revenue = db.Column(db.Float, default=0.0)
    last_intervention_date = db.Column(db.DateTime)

    def __repr__(self):
        return f'<Company {self.name}>'
