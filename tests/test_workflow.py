"""
Unit tests for status transitions, references, helpers and realtime delivery
"""
import json
import re
from datetime import datetime

import pytest

from app import db
from app.errors import InvalidTransitionError, ValidationError
from app.extensions import socketio
from app.models import Quote
from app.services.email import send_email
from app.services.references import (
    next_intervention_reference, next_mission_number, next_quote_reference, next_request_reference,
)
from app.services.uploads import url_to_path
from app.services.workflow import apply_transition, can_transition
from app.utils import generate_access_token, parse_datetime, utcnow
from app.utils.helpers import format_currency, to_camel
from app.utils.validators import validate_phone, validate_time


class TestTransitions:

    @pytest.mark.parametrize('entity,current,new', [
        ('quote', 'draft', 'sent'),
        ('quote', 'sent', 'accepted'),
        ('quote', 'accepted', 'mission_assigned'),
        ('quote', 'mission_assigned', 'paid'),
        ('mission', 'pending', 'completed'),
        ('report', 'completed', 'sent'),
        ('invoice', 'overdue', 'paid'),
        ('request', 'pending', 'quoted'),
    ])
    def test_allowed(self, entity, current, new):
        assert can_transition(entity, current, new)

    @pytest.mark.parametrize('entity,current,new', [
        ('quote', 'rejected', 'accepted'),
        ('quote', 'paid', 'draft'),
        ('mission', 'completed', 'in-progress'),
        ('report', 'sent', 'draft'),
        ('invoice', 'cancelled', 'paid'),
    ])
    def test_rejected(self, entity, current, new):
        assert not can_transition(entity, current, new)

    def test_same_status_is_noop(self, make_quote):
        quote = make_quote(status='sent')

        assert apply_transition('quote', quote, 'sent') is None
        assert quote.status == 'sent'

    def test_apply_returns_previous(self, make_quote):
        quote = make_quote(status='sent')

        assert apply_transition('quote', quote, 'accepted') == 'sent'
        assert quote.status == 'accepted'

    def test_invalid_move_leaves_status(self, make_quote):
        quote = make_quote(status='draft')

        with pytest.raises(InvalidTransitionError):
            apply_transition('quote', quote, 'accepted')
        assert quote.status == 'draft'

    def test_unknown_status(self, make_quote):
        with pytest.raises(ValidationError):
            apply_transition('quote', make_quote(), 'archived')


class TestTotals:

    def test_recalculate(self):
        quote = Quote(items=[{'description': 'Cable', 'quantity': 10, 'unitPrice': 5}], tax_rate=20)

        quote.recalculate_totals()

        assert (quote.subtotal, quote.tax_amount, quote.total) == (50, 10, 60)

    def test_rounding(self):
        quote = Quote(items=[{'description': 'Vis', 'quantity': 3, 'unitPrice': 0.333}], tax_rate=5.5)

        quote.recalculate_totals()

        assert quote.subtotal == 1.0
        assert quote.tax_amount == 0.05
        assert quote.total == 1.05

    def test_totals_on_insert(self, make_quote):
        quote = make_quote(items=[{'description': 'Borne', 'quantity': 2, 'unitPrice': 450}])

        assert quote.total == 1080


class TestReferences:

    def test_formats(self):
        year = utcnow().year

        assert next_request_reference() == f'REQ-{year}-0001'
        assert next_quote_reference() == f'DEV-{year}-001'
        assert re.match(r'^MISS-\d{13,}$', next_mission_number())
        assert re.match(r'^INT-\d{13,}-\d{1,4}$', next_intervention_reference())

    def test_sequence_skips_taken_numbers(self, make_quote):
        first = make_quote()
        second = make_quote()
        db.session.delete(first)
        db.session.commit()

        # one row left, so the count suggests 002 which is taken
        assert next_quote_reference() == f'DEV-{utcnow().year}-003'
        assert second.reference.endswith('-002')


class TestHelpers:

    def test_to_camel(self):
        assert to_camel('batutal_compliant') == 'batutalCompliant'
        assert to_camel('last_intervention_date') == 'lastInterventionDate'

    def test_parse_datetime(self):
        assert parse_datetime('2026-11-03') == datetime(2026, 11, 3)
        assert parse_datetime('2026-11-03T10:00:00Z') == datetime(2026, 11, 3, 10)
        assert parse_datetime('2026-11-03T10:00:00+01:00') == datetime(2026, 11, 3, 9)
        assert parse_datetime('tomorrow') is None

    def test_validators(self):
        assert validate_phone('+33612345678')
        assert not validate_phone('06 12')
        assert validate_time('23:59')
        assert not validate_time('24:00')

    def test_format_currency(self):
        assert format_currency(1234.5) == '1 234,50 €'

    def test_url_to_path(self, app):
        assert url_to_path('https://cdn.example.com/a.png') is None
        assert url_to_path('/uploads/reports/a.png').endswith('a.png')

    def test_email_suppressed_in_tests(self):
        assert send_email('client@crm.test', 'Sujet', '<p>Bonjour</p>') is True
        assert send_email(None, 'Sujet', '<p>Bonjour</p>') is False


class TestRealtime:

    def test_join_and_receive_push(self, app, technician):
        sio = socketio.test_client(app)
        sio.emit('join', {'token': generate_access_token(technician.id, 'technician')})
        assert any(event['name'] == 'joined' for event in sio.get_received())

        app.extensions['notification_publisher'](technician.id, 'newNotification', {'message': 'Bonjour'})

        received = sio.get_received()
        assert [event['name'] for event in received] == ['newNotification']
        assert received[0]['args'][0] == {'message': 'Bonjour'}
        sio.disconnect()

    def test_join_without_token(self, app):
        sio = socketio.test_client(app)
        sio.emit('join', {})

        errors = [event for event in sio.get_received() if event['name'] == 'error']
        assert errors[0]['args'][0] == {'message': 'Access token required'}
        sio.disconnect()


class TestHealth:

    def test_health(self, client):
        response = client.get('/api/health')

        data = json.loads(response.data)
        assert response.status_code == 200
        assert data['environment'] == 'testing'

    def test_request_id_echoed(self, client):
        response = client.get('/api/health', headers={'X-Request-ID': 'front-42'})

        assert response.headers['X-Request-ID'] == 'front-42'

    def test_unsafe_request_id_replaced(self, client):
        response = client.get('/api/health', headers={'X-Request-ID': 'bad id <script>'})

        assert re.match(r'^[0-9a-f]{32}$', response.headers['X-Request-ID'])
