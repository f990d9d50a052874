"""Intervention report model"""
from app import db
from .base import BaseModel

REPORT_TYPES = (
    'Installation borne de recharge',
    'Maintenance préventive',
    "Réparation d'urgence",
    'Diagnostic électrique',
    'Mise aux normes',
    'Remplacement équipement',
    'Autre',
)
REPORT_STATUSES = ('draft', 'pending', 'completed', 'sent')


class Report(BaseModel):
    """
    Report model - technician's record of the work performed on a mission
    """
    __tablename__ = 'reports'

    intervention_reference = db.Column(db.String(40), nullable=False, unique=True)
    mission_id = db.Column(db.String(36), db.ForeignKey('missions.id'), nullable=False, index=True)
    type = db.Column(db.String(100), nullable=False)
    date = db.Column(db.DateTime)
    start_time = db.Column(db.String(5))
    end_time = db.Column(db.String(5))
    location = db.Column(db.JSON, default=dict)  # {address, city, postalCode}

    equipment = db.Column(db.Text)
    selected_equipment = db.Column(db.JSON, default=list)  # equipment ids
    selected_products = db.Column(db.JSON, default=list)  # product ids
    work_performed = db.Column(db.Text)
    anomalies = db.Column(db.JSON, default=list)
    recommendations = db.Column(db.Text)
    notes = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default='draft', index=True)
    photos = db.Column(db.JSON, default=list)  # [{url, description, timestamp, coordinates}]
    client_signature = db.Column(db.Text)
    technician_signature = db.Column(db.Text)

    batutal_compliant = db.Column(db.Boolean, nullable=False, default=False)
    certificate_number = db.Column(db.String(40))
    batuta_sent_at = db.Column(db.DateTime)
    pdf_url = db.Column(db.String(500))

    created_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))

    mission = db.relationship('Mission')

    def __repr__(self):
        return f'<Report {self.intervention_reference} ({self.status})>'

    def to_dict(self, exclude=None):
        data = super().to_dict(exclude=exclude)
        mission = self.mission
        data['mission'] = {
            'id': mission.id,
            'missionNumber': mission.mission_number,
            'address': mission.address,
            'scheduledDate': mission.scheduled_date.isoformat() if mission.scheduled_date else None,
            'client': mission.client.to_summary() if mission.client else None,
            'technician': mission.technician.to_summary() if mission.technician else None,
        } if mission else None
        return data
