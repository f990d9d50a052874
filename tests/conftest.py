"""
Pytest configuration and fixtures for the field-service CRM tests
"""
import itertools
import os
import shutil
from datetime import timedelta

import pytest

from app import create_app, db
from app.models import Company, Mission, Quote, ServiceType, User
from app.utils import generate_access_token, utcnow

_sequence = itertools.count(1)


class RecordingPublisher:
    """Stands in for the Socket.IO publisher and keeps every push"""

    def __init__(self):
        self.events = []

    def __call__(self, recipient_id, event, payload):
        self.events.append((recipient_id, event, payload))

    def for_user(self, user_id):
        return [payload for recipient, _, payload in self.events if recipient == user_id]


@pytest.fixture(scope='session')
def app():
    """Create application instance for testing"""
    os.environ['FLASK_ENV'] = 'testing'
    app = create_app('testing')

    with app.app_context():
        yield app

    shutil.rmtree(app.config['UPLOAD_FOLDER'], ignore_errors=True)


@pytest.fixture(autouse=True)
def database(app):
    """Fresh schema for every test"""
    db.create_all()
    yield db
    db.session.remove()
    db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def published(app):
    """Replace the realtime publisher with a recorder for the duration of a test"""
    original = app.extensions['notification_publisher']
    recorder = RecordingPublisher()
    app.extensions['notification_publisher'] = recorder
    yield recorder
    app.extensions['notification_publisher'] = original


@pytest.fixture
def make_user():
    def _make_user(role='client', email=None, password='Password123', **kwargs):
        defaults = {
            'email': email or f'{role}-{next(_sequence)}@crm.test',
            'first_name': kwargs.pop('first_name', role.capitalize()),
            'last_name': kwargs.pop('last_name', 'Test'),
            'role': role,
            'is_active': True,
            'departement': '75',
        }
        defaults.update(kwargs)
        user = User(**defaults)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user('admin', email='admin@crm.test', first_name='Alice', last_name='Admin')


@pytest.fixture
def technician(make_user):
    return make_user('technician', email='tech@crm.test', first_name='Thomas', last_name='Martin',
                     availability={'status': 'available', 'nextDayOff': '2026-12-24'})


@pytest.fixture
def other_technician(make_user):
    return make_user('technician', email='tech2@crm.test', first_name='Sophie', last_name='Bernard')


@pytest.fixture
def client_user(make_user):
    return make_user('client', email='client@crm.test', first_name='Claire', last_name='Dupont',
                     company='Dupont SARL')


@pytest.fixture
def other_client(make_user):
    return make_user('client', email='client2@crm.test', first_name='Paul', last_name='Durand')


def _headers(user):
    return {'Authorization': f'Bearer {generate_access_token(user.id, user.role)}'}


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture
def technician_headers(technician):
    return _headers(technician)


@pytest.fixture
def other_technician_headers(other_technician):
    return _headers(other_technician)


@pytest.fixture
def client_headers(client_user):
    return _headers(client_user)


@pytest.fixture
def other_client_headers(other_client):
    return _headers(other_client)


@pytest.fixture
def company():
    company = Company(name='Dupont SARL', type='office', contact={'email': 'contact@dupont.test'})
    db.session.add(company)
    db.session.commit()
    return company


@pytest.fixture
def service_type():
    service_type = ServiceType(name='Installation borne', category='installation',
                               description='Pose de borne de recharge', images=[], sub_types=[])
    db.session.add(service_type)
    db.session.commit()
    return service_type


@pytest.fixture
def make_quote(client_user, technician, admin):
    def _make_quote(status='draft', items=None, client=None, tech=technician, **kwargs):
        from app.services.references import next_quote_reference
        quote = Quote(
            reference=next_quote_reference(),
            title='Installation borne 7kW',
            items=items or [{'description': 'Cable', 'quantity': 10, 'unitPrice': 5, 'itemType': 'service'}],
            tax_rate=20.0,
            status=status,
            client_id=(client or client_user).id,
            technician_id=tech.id if tech else None,
            created_by=admin.id,
            **kwargs
        )
        db.session.add(quote)
        db.session.commit()
        return quote

    return _make_quote


@pytest.fixture
def make_mission(client_user, technician, service_type, make_quote):
    def _make_mission(status='pending', quote=None, tech=technician, **kwargs):
        from app.services.references import next_mission_number
        quote = quote or make_quote(status='mission_assigned')
        mission = Mission(
            mission_number=next_mission_number(),
            service_type_id=service_type.id,
            client_id=quote.client_id,
            technician_id=tech.id,
            quote_id=quote.id,
            status=status,
            scheduled_date=kwargs.pop('scheduled_date', utcnow() + timedelta(days=1)),
            address='12 rue de la Paix, 75002 Paris',
            **kwargs
        )
        db.session.add(mission)
        db.session.commit()
        return mission

    return _make_mission
