"""User model"""
from app import db
from app.utils.auth import hash_password, verify_password
from .base import BaseModel

ROLES = ('admin', 'technician', 'client')


class User(BaseModel):
    """
    User model - admins, technicians and clients
    """
    __tablename__ = 'users'

    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(50))
    avatar = db.Column(db.String(500))

    role = db.Column(db.String(20), nullable=False, default='client', index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Client organisation: display name as entered, plus the resolved record
    company = db.Column(db.String(255))
    company_id = db.Column(db.String(36), db.ForeignKey('companies.id', ondelete='SET NULL'))
    departement = db.Column(db.String(100))

    address = db.Column(db.JSON, default=dict)  # {street, city, postalCode, country}
    availability = db.Column(db.JSON, default=dict)  # {status, nextDayOff}
    permissions = db.Column(db.JSON, default=list)

    refresh_token = db.Column(db.Text)
    last_login = db.Column(db.DateTime)

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = hash_password(password)

    def check_password(self, password):
        """Verify password against hash"""
        return verify_password(password, self.password_hash)

    @property
    def full_name(self):
        return f'{self.first_name} {self.last_name}'

    def is_admin(self):
        return self.role == 'admin'

    def is_technician(self):
        return self.role == 'technician'

    def is_client(self):
        return self.role == 'client'

    def to_dict(self, exclude=None):
        """Public profile, never includes credentials"""
        exclude = list(exclude or []) + ['password_hash', 'refresh_token']
        data = super().to_dict(exclude=exclude)
        data['fullName'] = self.full_name
        return data

    def to_summary(self):
        """Short form embedded in other resources"""
        return {
            'id': self.id,
            'firstName': self.first_name,
            'lastName': self.last_name,
            'email': self.email,
            'phone': self.phone,
            'company': self.company,
            'role': self.role,
        }
